"""
Tests for AccountLedger bookkeeping, checkpoints and audit.
"""

import pytest

from custody import (
    AccountLedger, AssetKind, InsufficientBalance, NothingPending,
)

from tests.fakes import ETH, USD6, QUOTE


@pytest.fixture
def ledger():
    return AccountLedger()


class TestCreditAndRegistration:

    def test_unknown_address_reads_as_zero(self, ledger):
        snap = ledger.snapshot("ghost")
        assert snap.native_balance == 0
        assert not snap.rewarded
        assert ledger.registered_count() == 0
        # Reading does not create the account
        assert ledger.checkpoint().accounts == ()

    def test_first_credit_registers(self, ledger):
        ledger.credit("alice", AssetKind.NATIVE, ETH, 2000 * QUOTE)
        ledger.credit("bob", AssetKind.EXTERNAL, USD6, QUOTE)
        ledger.credit("alice", AssetKind.EXTERNAL, USD6, QUOTE)

        assert ledger.registered_accounts == ["alice", "bob"]
        assert ledger.aggregate_quote_value() == 2002 * QUOTE

    def test_zero_valued_credit_does_not_register(self, ledger):
        ledger.credit("dust", AssetKind.NATIVE, 1, 0)
        assert ledger.snapshot("dust").native_balance == 1
        assert ledger.registered_accounts == []

        ledger.credit("dust", AssetKind.NATIVE, ETH, 2000 * QUOTE)
        assert ledger.registered_accounts == ["dust"]

    def test_registered_accounts_is_a_copy(self, ledger):
        ledger.credit("alice", AssetKind.NATIVE, ETH, QUOTE)
        ledger.registered_accounts.append("mallory")
        assert ledger.registered_accounts == ["alice"]


class TestWithdrawalBookkeeping:

    def test_reserve_and_release(self, ledger):
        ledger.credit("alice", AssetKind.NATIVE, 3 * ETH, QUOTE)
        ledger.reserve_for_withdrawal("alice", AssetKind.NATIVE, ETH)
        ledger.reserve_for_withdrawal("alice", AssetKind.NATIVE, ETH)

        snap = ledger.snapshot("alice")
        assert snap.native_balance == ETH
        assert snap.pending_native_withdrawal == 2 * ETH
        assert ledger.liabilities(AssetKind.NATIVE) == 3 * ETH

        assert ledger.release_pending("alice", AssetKind.NATIVE) == 2 * ETH
        assert ledger.snapshot("alice").pending_native_withdrawal == 0
        assert ledger.liabilities(AssetKind.NATIVE) == ETH

    def test_reserve_more_than_balance(self, ledger):
        with pytest.raises(InsufficientBalance):
            ledger.reserve_for_withdrawal("alice", AssetKind.EXTERNAL, 1)

    def test_release_nothing(self, ledger):
        with pytest.raises(NothingPending):
            ledger.release_pending("alice", AssetKind.NATIVE)

    def test_native_custody(self, ledger):
        ledger.add_native_custody(ETH)
        ledger.remove_native_custody(ETH // 2)
        assert ledger.native_custody == ETH // 2
        with pytest.raises(InsufficientBalance):
            ledger.remove_native_custody(ETH)

    def test_rewarded_flag(self, ledger):
        assert not ledger.is_rewarded("alice")
        ledger.mark_rewarded("alice")
        assert ledger.is_rewarded("alice")


class TestAtomicity:

    def test_atomic_rolls_back_everything(self, ledger):
        ledger.credit("alice", AssetKind.NATIVE, ETH, QUOTE)
        ledger.add_native_custody(ETH)
        before = ledger.checkpoint()

        with pytest.raises(RuntimeError):
            with ledger.atomic():
                ledger.credit("bob", AssetKind.NATIVE, ETH, QUOTE)
                ledger.add_native_custody(ETH)
                ledger.record_deposit_op()
                ledger.reserve_for_withdrawal("alice", AssetKind.NATIVE, ETH)
                ledger.mark_rewarded("alice")
                raise RuntimeError("abort")

        assert ledger.checkpoint() == before
        assert ledger.registered_accounts == ["alice"]
        assert ledger.snapshot("bob").native_balance == 0

    def test_atomic_commits_on_success(self, ledger):
        with ledger.atomic():
            ledger.credit("alice", AssetKind.NATIVE, ETH, QUOTE)
        assert ledger.snapshot("alice").native_balance == ETH

    def test_checkpoint_is_not_aliased(self, ledger):
        ledger.credit("alice", AssetKind.NATIVE, ETH, QUOTE)
        saved = ledger.checkpoint()
        ledger.credit("alice", AssetKind.NATIVE, ETH, QUOTE)

        ledger.rollback(saved)
        assert ledger.snapshot("alice").native_balance == ETH

    def test_clone_is_independent(self, ledger):
        ledger.credit("alice", AssetKind.NATIVE, ETH, QUOTE)
        cloned = ledger.clone()
        cloned.credit("alice", AssetKind.NATIVE, ETH, QUOTE)
        cloned.credit("bob", AssetKind.EXTERNAL, USD6, QUOTE)

        assert ledger.snapshot("alice").native_balance == ETH
        assert ledger.registered_accounts == ["alice"]
        assert cloned.registered_accounts == ["alice", "bob"]


class TestConservationAudit:

    def test_balanced(self, ledger):
        ledger.credit("alice", AssetKind.NATIVE, ETH, QUOTE)
        ledger.credit("alice", AssetKind.EXTERNAL, USD6, QUOTE)
        ledger.reserve_for_withdrawal("alice", AssetKind.EXTERNAL, USD6)

        result = ledger.verify_conservation({
            AssetKind.NATIVE: ETH, AssetKind.EXTERNAL: USD6,
        })
        assert result['valid']
        assert result['liabilities'] == {AssetKind.NATIVE: ETH, AssetKind.EXTERNAL: USD6}

    def test_surplus_reported(self, ledger):
        result = ledger.verify_conservation({AssetKind.EXTERNAL: 5})
        assert not result['valid']
        assert result['discrepancies'] == [{
            'asset': AssetKind.EXTERNAL, 'custody': 5, 'liabilities': 0, 'difference': 5,
        }]
