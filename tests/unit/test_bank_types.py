"""
test_bank_types.py - Unit tests for core data structures and amount helpers

Tests:
- BankConfig: validation, immutability
- CallResult: ok semantics
- Account / AccountSnapshot
- Notification: rendering
- parse_units / format_units / require_amount
"""

import dataclasses

import pytest

from custody import (
    Account, AccountSnapshot, AssetKind, BankConfig, CallResult,
    Notification, NotificationType,
    BankError, ZeroAmount, ExceedsCap, ReentrantCall,
    parse_units, format_units, require_amount,
    NATIVE_DECIMALS, EXTERNAL_DECIMALS, QUOTE_DECIMALS, REWARD_THRESHOLD,
)


class TestBankConfig:

    def test_defaults(self):
        config = BankConfig(owner="admin", deposit_cap=100, max_withdrawal_per_request=10)
        assert config.address == "bank"
        assert config.reward_threshold == REWARD_THRESHOLD == 1000 * 10 ** 8

    def test_frozen(self):
        config = BankConfig(owner="admin", deposit_cap=100, max_withdrawal_per_request=10)
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.deposit_cap = 200

    @pytest.mark.parametrize("kwargs, message", [
        (dict(owner=""), "owner cannot be empty"),
        (dict(address="  "), "address cannot be empty"),
        (dict(owner="bank"), "must be different"),
        (dict(deposit_cap=-1), "deposit_cap cannot be negative"),
        (dict(max_withdrawal_per_request=1.5), "max_withdrawal_per_request must be int"),
    ])
    def test_invalid(self, kwargs, message):
        base = dict(owner="admin", deposit_cap=100, max_withdrawal_per_request=10)
        base.update(kwargs)
        with pytest.raises(ValueError, match=message):
            BankConfig(**base)


class TestCallResult:

    def test_returned_value(self):
        assert CallResult(success=True, value=True).ok
        assert CallResult(success=True, value=None).ok
        assert CallResult(success=True, value=7).ok

    def test_false_payload_is_not_ok(self):
        assert not CallResult(success=True, value=False).ok

    def test_raised(self):
        result = CallResult(success=False, error="RuntimeError: boom")
        assert not result.ok


class TestAccount:

    def test_fresh_account_is_zero(self):
        snap = AccountSnapshot.of("alice", Account())
        assert snap == AccountSnapshot("alice", 0, 0, 0, 0, 0, False)

    def test_balance_and_pending_by_asset(self):
        account = Account(native_balance=1, external_balance=2,
                          pending_native_withdrawal=3, pending_external_withdrawal=4)
        assert account.balance(AssetKind.NATIVE) == 1
        assert account.balance(AssetKind.EXTERNAL) == 2
        assert account.pending(AssetKind.NATIVE) == 3
        assert account.pending(AssetKind.EXTERNAL) == 4

    def test_copy_is_independent(self):
        account = Account(native_balance=5)
        copied = account.copy()
        copied.native_balance = 0
        assert account.native_balance == 5


class TestExceptions:

    def test_hierarchy(self):
        for exc in (ZeroAmount, ExceedsCap, ReentrantCall):
            assert issubclass(exc, BankError)


class TestNotification:

    def test_repr(self):
        note = Notification(
            sequence=3, kind=NotificationType.DEPOSIT, account="alice",
            asset=AssetKind.NATIVE, amount=10, quote_value=20,
        )
        assert repr(note) == "Notification(#3 deposit alice 10 native quote=20)"

    def test_repr_with_data(self):
        note = Notification(
            sequence=0, kind=NotificationType.REWARD_EARNED, account="alice",
            data={'credential': 1},
        )
        assert repr(note) == "Notification(#0 reward_earned alice credential=1)"


class TestUnits:

    @pytest.mark.parametrize("text, decimals, raw", [
        ("0.1", NATIVE_DECIMALS, 10 ** 17),
        ("500", EXTERNAL_DECIMALS, 500 * 10 ** 6),
        ("2000", QUOTE_DECIMALS, 2000 * 10 ** 8),
        ("1.0000009", EXTERNAL_DECIMALS, 1_000_000),
        ("0", NATIVE_DECIMALS, 0),
    ])
    def test_parse_units(self, text, decimals, raw):
        assert parse_units(text, decimals) == raw

    def test_parse_units_float_goes_through_str(self):
        assert parse_units(0.1, NATIVE_DECIMALS) == 10 ** 17

    @pytest.mark.parametrize("value", ["NaN", "Infinity"])
    def test_parse_units_rejects_non_finite(self, value):
        with pytest.raises(ValueError):
            parse_units(value, NATIVE_DECIMALS)

    @pytest.mark.parametrize("raw, decimals, text", [
        (10 ** 17, NATIVE_DECIMALS, "0.1"),
        (500 * 10 ** 6, EXTERNAL_DECIMALS, "500"),
        (0, QUOTE_DECIMALS, "0"),
        (123_456_789, QUOTE_DECIMALS, "1.23456789"),
    ])
    def test_format_units(self, raw, decimals, text):
        assert format_units(raw, decimals) == text

    def test_require_amount(self):
        assert require_amount(0) == 0
        assert require_amount(2 ** 255) == 2 ** 255

    @pytest.mark.parametrize("bad", [True, 1.0, "1", None, -1])
    def test_require_amount_rejects(self, bad):
        with pytest.raises(ValueError):
            require_amount(bad)
