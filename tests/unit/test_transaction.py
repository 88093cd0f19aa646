"""Unit tests for the Transaction lifecycle."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from account_ledger.domain.exceptions import (
    BankingError,
    InvalidAccount,
    InvalidAmount,
    ServiceUnavailable,
    TransactionFailed,
)
from account_ledger.domain.models import TransactionStatus, TransactionType
from account_ledger.domain.transaction import Transaction
from account_ledger.infrastructure.metrics import TRANSACTIONS_HOLDING_RESOURCES


def _transfer(amount: str = "1000", **kwargs: object) -> Transaction:
    kwargs.setdefault("resource_failure_rate", 0.0)
    kwargs.setdefault("execution_failure_rate", 0.0)
    kwargs.setdefault("draw", lambda: 1.0)
    return Transaction.create(
        TransactionType.TRANSFER,
        "100200300400",
        "500600700800",
        amount,
        **kwargs,  # type: ignore[arg-type]
    )


def _holding() -> float:
    return TRANSACTIONS_HOLDING_RESOURCES._value.get()


class TestTransactionCreate:
    """Tests for Transaction.create."""

    def test_starts_initiated(self) -> None:
        """New transactions are INITIATED with no resources held."""
        txn = _transfer("1000.5")

        assert txn.status is TransactionStatus.INITIATED
        assert txn.amount == Decimal("1000.50")
        assert txn.resources_acquired is False
        assert txn.end_time is None
        assert txn.transaction_id.startswith("TXN")

    def test_explicit_transaction_id(self) -> None:
        """Caller-provided ids are kept."""
        assert _transfer(transaction_id="TXN-fixed").transaction_id == "TXN-fixed"


class TestTransactionLifecycle:
    """Tests for acquire, validate, execute and release."""

    def test_successful_run_releases_once(self) -> None:
        """Happy path returns the work result and releases resources once."""
        before = _holding()

        with _transfer() as txn:
            txn.acquire_resources()
            assert _holding() == before + 1
            txn.validate()
            assert txn.status is TransactionStatus.VALIDATED
            result = txn.execute(lambda: "done")

        assert result == "done"
        assert txn.status is TransactionStatus.SUCCESS
        assert txn.release_count == 1
        assert txn.resources_acquired is False
        assert txn.end_time is not None
        assert _holding() == before

    def test_acquire_failure(self) -> None:
        """Resource acquisition fails transiently before validation."""
        with pytest.raises(BankingError) as exc_info:
            with _transfer(resource_failure_rate=0.5, draw=lambda: 0.1) as txn:
                txn.acquire_resources()

        detail = exc_info.value.detail
        assert isinstance(detail, ServiceUnavailable)
        assert detail.service_name == "Database"
        assert detail.retry_safe is False
        assert txn.status is TransactionStatus.FAILED
        assert txn.release_count == 0

    def test_validation_failure_still_releases(self) -> None:
        """Resources acquired before a validation error are released."""
        with pytest.raises(BankingError) as exc_info:
            with _transfer("0") as txn:
                txn.acquire_resources()
                txn.validate()

        assert isinstance(exc_info.value.detail, InvalidAmount)
        assert txn.status is TransactionStatus.FAILED
        assert txn.error_message == str(exc_info.value)
        assert txn.release_count == 1

    def test_transfer_requires_destination(self) -> None:
        """Transfers without a destination fail validation."""
        txn = Transaction.create(TransactionType.TRANSFER, "100200300400", None, "100")

        with pytest.raises(BankingError) as exc_info:
            txn.validate()

        assert isinstance(exc_info.value.detail, InvalidAccount)

    def test_source_is_required(self) -> None:
        """Every transaction needs a source account."""
        txn = Transaction.create(TransactionType.DEPOSIT, None, None, "100")

        with pytest.raises(BankingError) as exc_info:
            txn.validate()

        assert exc_info.value.detail == InvalidAccount("NULL", "Source account is required")

    def test_withdrawal_needs_no_destination(self) -> None:
        """Only transfers require a destination."""
        txn = Transaction.create(TransactionType.WITHDRAWAL, "100200300400", None, "100")
        txn.validate()
        assert txn.status is TransactionStatus.VALIDATED

    def test_execute_without_resources(self) -> None:
        """Executing before acquisition is a failed transaction."""
        txn = _transfer()
        work = MagicMock()

        with pytest.raises(BankingError) as exc_info:
            txn.execute(work)

        detail = exc_info.value.detail
        assert isinstance(detail, TransactionFailed)
        assert detail.reason == "Resources not acquired"
        assert txn.status is TransactionStatus.FAILED
        work.assert_not_called()

    def test_execution_failure_skips_work(self) -> None:
        """A simulated network timeout fires before the work runs."""
        work = MagicMock()
        draws = iter([0.9, 0.01])

        with pytest.raises(BankingError) as exc_info:
            with _transfer(resource_failure_rate=0.1, execution_failure_rate=0.05, draw=lambda: next(draws)) as txn:
                txn.acquire_resources()
                txn.validate()
                txn.execute(work)

        detail = exc_info.value.detail
        assert isinstance(detail, TransactionFailed)
        assert detail.failure_stage == "EXECUTE"
        assert detail.reason == "Network timeout"
        assert txn.error_message == "Network timeout"
        assert txn.release_count == 1
        work.assert_not_called()

    def test_work_errors_propagate(self) -> None:
        """Errors raised by the work mark the transaction failed and propagate."""
        failure = BankingError(InvalidAccount("500600700800", "Account not found"))

        with pytest.raises(BankingError) as exc_info:
            with _transfer() as txn:
                txn.acquire_resources()
                txn.validate()
                txn.execute(MagicMock(side_effect=failure))

        assert exc_info.value is failure
        assert txn.status is TransactionStatus.FAILED
        assert txn.release_count == 1

    def test_release_is_idempotent(self) -> None:
        """Releasing twice and closing afterwards releases only once."""
        txn = _transfer()
        txn.acquire_resources()

        txn.release_resources()
        txn.release_resources()
        txn.close()

        assert txn.release_count == 1
