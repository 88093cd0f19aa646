import random
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from types import TracebackType
from typing import Self, TypeVar

import structlog

from account_ledger.config import settings
from account_ledger.domain.exceptions import (
    BankingError,
    InvalidAccount,
    InvalidAmount,
    ServiceUnavailable,
    TransactionFailed,
)
from account_ledger.domain.models import TransactionStatus, TransactionType, to_amount
from account_ledger.infrastructure.ids import default_id_generator
from account_ledger.infrastructure.metrics import TRANSACTIONS_HOLDING_RESOURCES


T = TypeVar("T")

logger = structlog.get_logger()


@dataclass
class Transaction:
    """
    Lifecycle record for one operation: acquire, validate, execute, release.

    Used as a context manager so resources are released exactly once on every
    exit path::

        with Transaction.create(TransactionType.TRANSFER, "ACC1", "ACC2", amount) as txn:
            txn.acquire_resources()
            txn.validate()
            ...
            txn.execute()
    """

    transaction_id: str
    type: TransactionType
    source_account: str | None
    destination_account: str | None
    amount: Decimal
    status: TransactionStatus = TransactionStatus.INITIATED
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    error_message: str | None = None
    resources_acquired: bool = False
    resource_failure_rate: float = field(default=0.0, repr=False)
    execution_failure_rate: float = field(default=0.0, repr=False)
    draw: Callable[[], float] = field(default=random.random, repr=False)
    release_count: int = field(default=0, repr=False)

    @classmethod
    def create(
        cls,
        type: TransactionType,
        source_account: str | None,
        destination_account: str | None,
        amount: Decimal | int | str,
        *,
        transaction_id: str | None = None,
        resource_failure_rate: float | None = None,
        execution_failure_rate: float | None = None,
        draw: Callable[[], float] | None = None,
    ) -> "Transaction":
        txn = cls(
            transaction_id=transaction_id or default_id_generator.new_id("TXN"),
            type=type,
            source_account=source_account,
            destination_account=destination_account,
            amount=to_amount(amount),
            resource_failure_rate=(
                settings.resource_failure_rate if resource_failure_rate is None else resource_failure_rate
            ),
            execution_failure_rate=(
                settings.execution_failure_rate if execution_failure_rate is None else execution_failure_rate
            ),
            draw=draw or random.random,
        )
        logger.info("transaction_created", transaction_id=txn.transaction_id, type=type.value)
        return txn

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_val is not None and self.status is not TransactionStatus.FAILED:
            self.mark_failed(str(exc_val))
        self.close()

    def acquire_resources(self) -> None:
        """Simulate taking a connection/lock; fails transiently at ``resource_failure_rate``."""
        if self.draw() < self.resource_failure_rate:
            logger.warning("transaction_resources_unavailable", transaction_id=self.transaction_id)
            raise BankingError(
                ServiceUnavailable(
                    service_name="Database",
                    reason="Connection pool exhausted",
                    retry_after_minutes=5,
                    retry_safe=False,
                )
            )
        if not self.resources_acquired:
            self.resources_acquired = True
            TRANSACTIONS_HOLDING_RESOURCES.inc()
        logger.debug("transaction_resources_acquired", transaction_id=self.transaction_id)

    def validate(self) -> None:
        if self.amount <= 0:
            raise BankingError(InvalidAmount(self.amount, "Amount must be positive"))
        if not self.source_account:
            raise BankingError(InvalidAccount("NULL", "Source account is required"))
        if self.type is TransactionType.TRANSFER and not self.destination_account:
            raise BankingError(InvalidAccount("NULL", "Destination account is required for transfer"))

        self.status = TransactionStatus.VALIDATED
        logger.debug("transaction_validated", transaction_id=self.transaction_id)

    def execute(self, work: Callable[[], T] | None = None) -> T | None:
        """
        Run the operation's body while holding resources.

        ``work`` is invoked after the simulated network step; its result is
        returned and its exceptions propagate unchanged.
        """
        if not self.resources_acquired:
            self.mark_failed("Resources not acquired")
            raise BankingError(
                TransactionFailed(
                    transaction_id=self.transaction_id,
                    transaction_type=self.type.value,
                    failure_stage="EXECUTE",
                    reason="Resources not acquired",
                )
            )

        if self.draw() < self.execution_failure_rate:
            self.mark_failed("Network timeout")
            raise BankingError(
                TransactionFailed(
                    transaction_id=self.transaction_id,
                    transaction_type=self.type.value,
                    failure_stage="EXECUTE",
                    reason="Network timeout",
                    source_account=self.source_account,
                    destination_account=self.destination_account,
                    amount=self.amount,
                )
            )

        result = work() if work is not None else None

        self.status = TransactionStatus.SUCCESS
        self.end_time = datetime.now(UTC)
        logger.info("transaction_executed", transaction_id=self.transaction_id, status=self.status.value)
        return result

    def release_resources(self) -> None:
        if self.resources_acquired:
            self.resources_acquired = False
            self.release_count += 1
            TRANSACTIONS_HOLDING_RESOURCES.dec()
            logger.debug("transaction_resources_released", transaction_id=self.transaction_id)

    def close(self) -> None:
        self.release_resources()
        self.end_time = datetime.now(UTC)
        logger.info(
            "transaction_closed",
            transaction_id=self.transaction_id,
            status=self.status.value,
            error=self.error_message,
        )

    def mark_failed(self, error: str) -> None:
        self.status = TransactionStatus.FAILED
        self.error_message = error
        self.end_time = datetime.now(UTC)
