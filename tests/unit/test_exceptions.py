"""Unit tests for the banking error taxonomy."""

import copy
import pickle
from decimal import Decimal

import pytest

from account_ledger.domain.exceptions import (
    AccountInactive,
    AuthenticationFailure,
    BankingError,
    DailyLimitExceeded,
    ErrorKind,
    InsufficientBalance,
    InvalidAccount,
    InvalidAmount,
    ServiceUnavailable,
    TransactionFailed,
)


class TestErrorKind:
    """Tests for ErrorKind codes."""

    def test_codes_are_unique(self) -> None:
        """Every kind has its own error code."""
        codes = [kind.code for kind in ErrorKind]
        assert len(codes) == len(set(codes))

    @pytest.mark.parametrize(
        ("kind", "code"),
        [
            (ErrorKind.INSUFFICIENT_BALANCE, "BANK_ERR_001"),
            (ErrorKind.INVALID_ACCOUNT, "BANK_ERR_002"),
            (ErrorKind.ACCOUNT_INACTIVE, "BANK_ERR_003"),
            (ErrorKind.DAILY_LIMIT_EXCEEDED, "BANK_ERR_004"),
            (ErrorKind.TRANSACTION_FAILED, "BANK_ERR_005"),
            (ErrorKind.AUTHENTICATION_FAILED, "BANK_ERR_006"),
            (ErrorKind.SERVICE_UNAVAILABLE, "BANK_ERR_007"),
            (ErrorKind.INVALID_AMOUNT, "BANK_ERR_008"),
        ],
    )
    def test_code_mapping(self, kind: ErrorKind, code: str) -> None:
        """Kinds map to stable machine-readable codes."""
        assert kind.code == code


class TestErrorPayloads:
    """Tests for the derived fields and messages of error payloads."""

    def test_insufficient_balance_shortfall(self) -> None:
        """Available balance excludes the minimum; shortfall is what is missing."""
        detail = InsufficientBalance(
            account_number="100200300400",
            current_balance=Decimal("30000.00"),
            requested_amount=Decimal("35000.00"),
            minimum_balance=Decimal("1000.00"),
        )

        assert detail.available_balance == Decimal("29000.00")
        assert detail.shortfall == Decimal("6000.00")
        assert detail.message() == (
            "Insufficient balance. Available: 29000.00, Required: 35000.00, Shortfall: 6000.00"
        )

    def test_insufficient_balance_never_negative_available(self) -> None:
        """Balance below minimum reports zero available."""
        detail = InsufficientBalance("100200300400", Decimal("500"), Decimal("100"), Decimal("1000"))
        assert detail.available_balance == Decimal("0")

    def test_authentication_failure_remaining_attempts(self) -> None:
        """Non-final failure reports remaining attempts."""
        detail = AuthenticationFailure(account_number="100200300400", attempt_number=1, max_attempts=3)

        assert detail.remaining_attempts == 2
        assert detail.account_locked is False
        assert detail.message() == "PIN authentication failed. Attempt 1 of 3."

    def test_authentication_failure_locks_on_last_attempt(self) -> None:
        """Reaching the maximum attempts reports the account as locked."""
        detail = AuthenticationFailure(account_number="100200300400", attempt_number=3, max_attempts=3)

        assert detail.remaining_attempts == 0
        assert detail.account_locked is True
        assert "Account locked after 3 attempts" in detail.message()

    def test_daily_limit_remaining(self) -> None:
        """Remaining limit is the limit minus what was already used."""
        detail = DailyLimitExceeded(
            account_number="100200300400",
            limit_type="WITHDRAWAL",
            daily_limit=Decimal("100000"),
            already_used=Decimal("20000"),
            attempted_amount=Decimal("85000"),
        )

        assert detail.remaining_limit == Decimal("80000")
        assert "Remaining: 80000.00" in detail.message()

    def test_invalid_account_recoverability(self) -> None:
        """Unknown accounts are business outcomes; malformed identifiers are caller defects."""
        assert InvalidAccount("999").recoverable is True
        assert InvalidAccount("bad", "Invalid UPI ID format", malformed=True).recoverable is False

    def test_invalid_amount_is_not_recoverable(self) -> None:
        """Invalid amounts indicate a caller defect."""
        assert InvalidAmount(Decimal("-1")).recoverable is False

    def test_invalid_amount_range_message(self) -> None:
        """Amounts with bounds report the allowed range."""
        detail = InvalidAmount(
            Decimal("0"),
            "Amount out of allowed range",
            min_allowed=Decimal("1"),
            max_allowed=Decimal("100000"),
        )
        assert detail.message() == "Amount 0 out of range. Allowed: 1.00 - 100000.00"

    def test_service_unavailable_message_includes_retry_hint(self) -> None:
        """Retry-after hint is part of the message when present."""
        detail = ServiceUnavailable("PaymentGateway", "Down for maintenance", retry_after_minutes=30)
        assert detail.message() == (
            "Service unavailable: PaymentGateway - Down for maintenance. Retry after 30 minutes"
        )

    def test_transaction_failed_message(self) -> None:
        """Failure stage and reason appear in the message."""
        detail = TransactionFailed("TXN1", "TRANSFER", "CREDIT", reason="Destination closed")
        assert detail.message() == "Transaction TXN1 failed at CREDIT: Destination closed"

    def test_account_inactive_message(self) -> None:
        """Status and reason appear in the message."""
        detail = AccountInactive("100200300400", "LOCKED", "Too many failed PIN attempts")
        assert detail.message() == "Account 100200300400 is LOCKED: Too many failed PIN attempts"


class TestBankingError:
    """Tests for the BankingError wrapper."""

    def test_exposes_kind_code_and_message(self) -> None:
        """Error delegates kind, code and message to its payload."""
        error = BankingError(InvalidAccount("100200300400", "Account not found"))

        assert error.kind is ErrorKind.INVALID_ACCOUNT
        assert error.code == "BANK_ERR_002"
        assert str(error) == "Invalid account: 100200300400 - Account not found"
        assert error.recoverable is True

    def test_structural_matching(self) -> None:
        """Callers branch on the payload with match statements."""
        error = BankingError(AuthenticationFailure("100200300400", 3, 3))

        match error.detail:
            case AuthenticationFailure(account_locked=True):
                outcome = "locked"
            case AuthenticationFailure():
                outcome = "retry"
            case _:
                outcome = "other"

        assert outcome == "locked"

    def test_cause_is_preserved(self) -> None:
        """Wrapped errors keep their original cause."""
        inner = BankingError(AccountInactive("500600700800", "CLOSED"))

        with pytest.raises(BankingError) as exc_info:
            try:
                raise inner
            except BankingError as exc:
                raise BankingError(TransactionFailed("TXN1", "TRANSFER", "CREDIT")) from exc

        assert exc_info.value.cause is inner
        assert exc_info.value.kind is ErrorKind.TRANSACTION_FAILED

    def test_to_dict_serializes_decimals(self) -> None:
        """Decimal fields are rendered as strings."""
        error = BankingError(
            InsufficientBalance("100200300400", Decimal("30000.00"), Decimal("35000.00"), Decimal("1000.00"))
        )

        payload = error.to_dict()

        assert payload["code"] == "BANK_ERR_001"
        assert payload["kind"] == "INSUFFICIENT_BALANCE"
        assert payload["recoverable"] is True
        assert payload["detail"]["current_balance"] == "30000.00"
        assert payload["detail"]["requested_amount"] == "35000.00"
        assert payload["cause"] is None

    def test_repr_shows_payload(self) -> None:
        """repr names the payload type."""
        error = BankingError(ServiceUnavailable("Database"))
        assert repr(error).startswith("BankingError(ServiceUnavailable(")

    def test_survives_pickle(self) -> None:
        """Errors cross process boundaries with payload and message intact."""
        error = BankingError(
            InsufficientBalance("100200300400", Decimal("30000.00"), Decimal("35000.00"), Decimal("1000.00"))
        )

        restored = pickle.loads(pickle.dumps(error))

        assert isinstance(restored, BankingError)
        assert restored.detail == error.detail
        assert restored.code == "BANK_ERR_001"
        assert str(restored) == str(error)

    def test_copy_keeps_detail(self) -> None:
        """copy and deepcopy rebuild the error from its payload."""
        error = BankingError(AuthenticationFailure("100200300400", 3, 3))

        assert copy.copy(error).detail == error.detail
        assert copy.deepcopy(error).detail == error.detail
        assert str(copy.deepcopy(error)) == str(error)
