"""
Determinism Conformance Tests

INVARIANT: The bank is a pure function of its operation history.

    ∀ sequence S: replay(S) on a fresh bank = replay(S) on another fresh bank

The same history produces the same errors, the same ledger state and the
same published notifications, and a cloned ledger evolves independently.
"""

from hypothesis import given, settings

from custody import AssetKind

from tests.fakes import state_of
from tests.conformance.operations import (
    USERS, build_world, run, operation_sequences,
)


def outcome(errors):
    return [type(e).__name__ if e is not None else None for e in errors]


class TestDeterminismProperties:

    @given(operation_sequences)
    @settings(max_examples=50)
    def test_replay_is_identical(self, ops):
        first, second = build_world(), build_world()

        errors_1 = run(first.bank, ops)
        errors_2 = run(second.bank, ops)

        assert outcome(errors_1) == outcome(errors_2)
        assert state_of(first.bank, *USERS) == state_of(second.bank, *USERS)
        assert first.bank.notifications == second.bank.notifications
        assert first.bank.ledger.checkpoint() == second.bank.ledger.checkpoint()

    @given(operation_sequences, operation_sequences)
    @settings(max_examples=50)
    def test_clone_is_unaffected_by_later_operations(self, history, later):
        world = build_world()
        run(world.bank, history)
        cloned = world.bank.ledger.clone()
        saved = cloned.checkpoint()

        run(world.bank, later)

        assert cloned.checkpoint() == saved
        assert cloned.liabilities(AssetKind.NATIVE) == saved.native_custody
