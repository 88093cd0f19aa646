import random
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal

import structlog

from account_ledger.application.services import PaymentService
from account_ledger.config import settings
from account_ledger.domain.account import Account
from account_ledger.domain.exceptions import (
    AuthenticationFailure,
    BankingError,
    InsufficientBalance,
    ServiceUnavailable,
    TransactionFailed,
)
from account_ledger.domain.models import TransactionStatus, TransactionType
from account_ledger.domain.transaction import Transaction
from account_ledger.infrastructure.ids import IdGenerator, default_id_generator


logger = structlog.get_logger()


@dataclass
class ProcessResult:
    transaction_id: str
    status: TransactionStatus
    error_code: str | None = None
    error_message: str | None = None
    processed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def succeeded(self) -> bool:
        return self.status is TransactionStatus.SUCCESS


@dataclass(frozen=True)
class ProcessorStatistics:
    success_count: int = 0
    failure_count: int = 0

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count

    @property
    def success_rate(self) -> float:
        """Percentage of successful operations, 0.0 when nothing ran yet."""
        if self.total == 0:
            return 0.0
        return self.success_count * 100.0 / self.total


class TransactionProcessor:
    """
    Runs ledger operations for a caller and keeps success/failure counts.

    Deposit, withdrawal and transfer report outcomes as ``ProcessResult``;
    ``process_payment`` re-raises failures wrapped in ``TransactionFailed``.
    Writes are never retried; only the balance enquiry is.
    """

    def __init__(
        self,
        ids: IdGenerator | None = None,
        resource_failure_rate: float | None = None,
        execution_failure_rate: float | None = None,
        draw: Callable[[], float] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        base_delay: float | None = None,
        max_delay: float | None = None,
    ) -> None:
        self._ids = ids or default_id_generator
        self._resource_failure_rate = resource_failure_rate
        self._execution_failure_rate = execution_failure_rate
        self._draw = draw
        self._sleep = sleep
        self._base_delay = base_delay if base_delay is not None else settings.balance_retry_base_delay_seconds
        self._max_delay = max_delay if max_delay is not None else settings.balance_retry_max_delay_seconds
        self._lock = threading.Lock()
        self._stats = ProcessorStatistics()

    @property
    def statistics(self) -> ProcessorStatistics:
        with self._lock:
            return self._stats

    def process_deposit(self, account: Account, amount: Decimal | int | str) -> ProcessResult:
        transaction_id = self._ids.new_id("DEP")
        try:
            account.deposit(amount)
        except BankingError as exc:
            return self._failure(transaction_id, exc)
        return self._success(transaction_id)

    def process_withdrawal(self, account: Account, amount: Decimal | int | str, pin: str | None) -> ProcessResult:
        transaction_id = self._ids.new_id("WDL")
        try:
            account.withdraw(amount, pin)
        except BankingError as exc:
            if isinstance(exc.detail, AuthenticationFailure) and exc.detail.account_locked:
                logger.warning("withdrawal_account_locked", account_number=account.account_number)
            return self._failure(transaction_id, exc)
        return self._success(transaction_id)

    def process_transfer(
        self,
        source: Account,
        destination: Account | None,
        amount: Decimal | int | str,
        pin: str | None,
    ) -> ProcessResult:
        """Transfer inside a ``Transaction`` scope; resources are always released."""
        transaction_id = self._ids.new_id("TXN")
        try:
            with Transaction.create(
                TransactionType.TRANSFER,
                source.account_number,
                destination.account_number if destination is not None else None,
                amount,
                transaction_id=transaction_id,
                resource_failure_rate=self._resource_failure_rate,
                execution_failure_rate=self._execution_failure_rate,
                draw=self._draw,
            ) as txn:
                txn.acquire_resources()
                txn.validate()
                txn.execute(lambda: source.transfer(destination, txn.amount, pin, transaction_id=transaction_id))
        except BankingError as exc:
            return self._failure(transaction_id, exc)
        return self._success(transaction_id)

    def process_payment(self, account: Account, amount: Decimal | int | str, pin: str | None) -> str:
        transaction_id = self._ids.new_id("PAY")
        try:
            account.withdraw(amount, pin)
        except BankingError as exc:
            self._record(success=False)
            match exc.detail:
                case AuthenticationFailure():
                    detail = TransactionFailed(transaction_id, TransactionType.PAYMENT.value, "AUTHENTICATION")
                case InsufficientBalance(requested_amount=requested):
                    detail = TransactionFailed(
                        transaction_id,
                        TransactionType.PAYMENT.value,
                        "DEBIT",
                        reason="Insufficient balance",
                        source_account=account.account_number,
                        amount=requested,
                    )
                case _:
                    detail = TransactionFailed(transaction_id, TransactionType.PAYMENT.value, "PROCESSING")
            raise BankingError(detail) from exc

        self._record(success=True)
        logger.info("payment_processed", transaction_id=transaction_id, account_number=account.account_number)
        return transaction_id

    def check_balance_with_retry(
        self,
        service: PaymentService,
        account: Account,
        pin: str | None,
        max_attempts: int | None = None,
    ) -> Decimal:
        """Balance enquiry retried on retry-safe ``ServiceUnavailable`` with backoff."""
        attempts = max_attempts or settings.balance_retry_attempts
        attempt = 0
        while True:
            attempt += 1
            try:
                return service.check_balance(account, pin)
            except BankingError as exc:
                match exc.detail:
                    case ServiceUnavailable(retry_safe=True) if attempt < attempts:
                        delay = self._calculate_backoff_delay(attempt - 1)
                        logger.warning(
                            "balance_check_retry_scheduled",
                            account_number=account.account_number,
                            attempt=attempt,
                            next_delay_seconds=delay,
                        )
                        self._sleep(delay)
                    case _:
                        raise

    def _calculate_backoff_delay(self, retry_count: int) -> float:
        """Calculate exponential backoff delay with jitter."""
        delay: float = min(
            self._base_delay * (2**retry_count),
            self._max_delay,
        )
        jitter: float = random.uniform(0, delay * 0.1)
        return delay + jitter

    def _success(self, transaction_id: str) -> ProcessResult:
        self._record(success=True)
        return ProcessResult(transaction_id=transaction_id, status=TransactionStatus.SUCCESS)

    def _failure(self, transaction_id: str, exc: BankingError) -> ProcessResult:
        self._record(success=False)
        logger.info(
            "operation_failed",
            transaction_id=transaction_id,
            error_code=exc.code,
            error=str(exc),
            recoverable=exc.recoverable,
        )
        return ProcessResult(
            transaction_id=transaction_id,
            status=TransactionStatus.FAILED,
            error_code=exc.code,
            error_message=str(exc),
        )

    def _record(self, success: bool) -> None:
        with self._lock:
            if success:
                self._stats = ProcessorStatistics(self._stats.success_count + 1, self._stats.failure_count)
            else:
                self._stats = ProcessorStatistics(self._stats.success_count, self._stats.failure_count + 1)
