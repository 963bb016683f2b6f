"""
Lifetime Value Conformance Tests

INVARIANTS, for every account and at all times:
    cumulative_quote_value never decreases
    rewarded never goes from True back to False
    registered ⟺ cumulative_quote_value > 0, and each address registers once
    total_quote_value() = Σ_{registered} cumulative_quote_value ≤ deposit cap
    with a working registry: rewarded ⟺ cumulative_quote_value ≥ threshold,
                             and at most one credential per account
"""

from hypothesis import given, settings, note

from custody import REWARD_THRESHOLD

from tests.conformance.operations import (
    USERS, CAP, build_world, apply, operation_sequences,
)


class TestLifetimeValueProperties:

    @given(operation_sequences)
    @settings(max_examples=100)
    def test_cumulative_value_and_flag_are_monotonic(self, ops):
        world = build_world()
        bank = world.bank
        previous = {u: bank.get_account(u) for u in USERS}

        for op in ops:
            note(f"{op} -> {apply(bank, op)!r}")
            for user in USERS:
                now = bank.get_account(user)
                assert now.cumulative_quote_value >= previous[user].cumulative_quote_value
                assert now.rewarded or not previous[user].rewarded
                previous[user] = now

    @given(operation_sequences)
    @settings(max_examples=100)
    def test_registration(self, ops):
        world = build_world()
        bank = world.bank

        for op in ops:
            apply(bank, op)
            registered = bank.registered_accounts()
            assert len(registered) == len(set(registered))
            assert bank.registered_account_count() == len(registered)
            for user in USERS:
                valued = bank.get_account(user).cumulative_quote_value > 0
                assert (user in registered) == valued

    @given(operation_sequences)
    @settings(max_examples=100)
    def test_aggregate_never_exceeds_cap(self, ops):
        world = build_world()
        bank = world.bank

        for op in ops:
            apply(bank, op)
            total = bank.total_quote_value()
            assert total == sum(
                bank.get_account(u).cumulative_quote_value for u in bank.registered_accounts()
            )
            assert total <= CAP

    @given(operation_sequences)
    @settings(max_examples=100)
    def test_reward_tracks_threshold(self, ops):
        world = build_world()
        bank = world.bank

        for op in ops:
            apply(bank, op)
            for user in USERS:
                account = bank.get_account(user)
                assert account.rewarded == (account.cumulative_quote_value >= REWARD_THRESHOLD)
                assert world.registry.balance_of(user) == int(account.rewarded)
