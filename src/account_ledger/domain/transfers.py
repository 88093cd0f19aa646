import threading
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import TYPE_CHECKING

import structlog

from account_ledger.domain.exceptions import (
    AccountInactive,
    BankingError,
    InvalidAccount,
    TransactionFailed,
)
from account_ledger.domain.models import EntryType, LedgerEntry, TransactionType, to_amount
from account_ledger.domain.unit_of_work import TransferUnitOfWork
from account_ledger.infrastructure.audit import EventLogger, default_event_logger
from account_ledger.infrastructure.ids import IdGenerator, default_id_generator
from account_ledger.infrastructure.metrics import (
    LEDGER_OPERATIONS_TOTAL,
    LEDGER_VOLUME_TOTAL,
    TRANSFER_REVERSALS_TOTAL,
    track_duration,
)


if TYPE_CHECKING:
    from account_ledger.domain.account import Account

logger = structlog.get_logger()


@dataclass(frozen=True)
class TransferStatistics:
    completed: int = 0
    failed: int = 0
    reversed: int = 0
    volume: Decimal = Decimal("0.00")


@contextmanager
def _hold_locks(*accounts: "Account") -> Iterator[None]:
    # Fixed acquisition order keeps opposite-direction transfers from deadlocking.
    with ExitStack() as stack:
        for account in sorted(accounts, key=lambda a: a.account_number):
            stack.enter_context(account.lock)
        yield


class TransferOrchestrator:
    """
    Debit-then-credit transfer between two accounts.

    The debit is journaled in a ``TransferUnitOfWork``; when the credit leg
    fails the debit is compensated and the caller receives a
    ``TransactionFailed`` describing whether the reversal completed.
    """

    def __init__(self, ids: IdGenerator | None = None, events: EventLogger | None = None) -> None:
        self._ids = ids or default_id_generator
        self._events = events or default_event_logger
        self._lock = threading.Lock()
        self._stats = TransferStatistics()
        self._journal: list[LedgerEntry] = []

    @property
    def statistics(self) -> TransferStatistics:
        with self._lock:
            return self._stats

    @property
    def journal(self) -> list[LedgerEntry]:
        with self._lock:
            return list(self._journal)

    @track_duration("transfer")
    def transfer(
        self,
        source: "Account",
        destination: "Account | None",
        amount: Decimal | int | str,
        pin: str | None,
        *,
        transaction_id: str | None = None,
    ) -> str:
        transaction_id = transaction_id or self._ids.new_id("TXN")
        log = logger.bind(
            transaction_id=transaction_id,
            source=source.account_number,
            destination=destination.account_number if destination is not None else None,
            amount=str(amount),
        )
        uow = TransferUnitOfWork(transaction_id)

        try:
            if destination is None:
                raise BankingError(InvalidAccount("NULL", "Destination account is null"))

            with _hold_locks(source, destination), uow:
                self._validate_destination(source, destination)

                source.withdraw(amount, pin)
                value = to_amount(amount)
                uow.record(
                    LedgerEntry.create(
                        transaction_id, source.account_number, EntryType.DEBIT, value, source.balance
                    )
                )
                uow.on_rollback("reverse_debit", lambda: self._reverse_debit(uow, source, value))
                log.info("transfer_debited", step="1/2", source_balance=str(source.balance))

                try:
                    destination.deposit(value)
                except BankingError as exc:
                    reversal_completed = uow.rollback()
                    TRANSFER_REVERSALS_TOTAL.labels(completed=str(reversal_completed).lower()).inc()
                    log.warning(
                        "transfer_credit_failed",
                        error_code=exc.code,
                        reversal_completed=reversal_completed,
                    )
                    raise BankingError(
                        TransactionFailed(
                            transaction_id=transaction_id,
                            transaction_type=TransactionType.TRANSFER.value,
                            failure_stage="CREDIT",
                            reason=str(exc),
                            source_account=source.account_number,
                            destination_account=destination.account_number,
                            amount=value,
                            reversal_required=True,
                            reversal_completed=reversal_completed,
                        )
                    ) from exc

                uow.record(
                    LedgerEntry.create(
                        transaction_id, destination.account_number, EntryType.CREDIT, value, destination.balance
                    )
                )
                uow.commit()
                log.info("transfer_credited", step="2/2", destination_balance=str(destination.balance))

        except BankingError as exc:
            self._finish(uow, failed=True, volume=None)
            LEDGER_OPERATIONS_TOTAL.labels(operation="transfer", outcome=exc.kind.name).inc()
            log.info("transfer_failed", error_code=exc.code, error=str(exc))
            raise
        except Exception as exc:
            self._finish(uow, failed=True, volume=None)
            LEDGER_OPERATIONS_TOTAL.labels(operation="transfer", outcome="UNEXPECTED").inc()
            log.error("transfer_unexpected_error", error=str(exc), exc_info=True)
            raise BankingError(
                TransactionFailed(
                    transaction_id=transaction_id,
                    transaction_type=TransactionType.TRANSFER.value,
                    failure_stage="UNEXPECTED",
                    reason=str(exc),
                    source_account=source.account_number,
                    destination_account=destination.account_number if destination is not None else None,
                    reversal_required=uow.reversal_required,
                    reversal_completed=uow.reversal_completed,
                )
            ) from exc

        self._finish(uow, failed=False, volume=value)
        LEDGER_OPERATIONS_TOTAL.labels(operation="transfer", outcome="SUCCESS").inc()
        LEDGER_VOLUME_TOTAL.labels(operation="transfer").inc(float(value))
        self._events.record(
            "TRANSACTION",
            transaction_id,
            "TRANSFER",
            f"{source.account_number} -> {destination.account_number} amount={value}",
        )
        log.info("transfer_completed", status="SUCCESS")
        return transaction_id

    def _validate_destination(self, source: "Account", destination: "Account") -> None:
        if not destination.is_active:
            raise BankingError(
                AccountInactive(
                    destination.account_number,
                    destination.status.value,
                    "Destination account is inactive",
                )
            )
        if destination.account_number == source.account_number:
            raise BankingError(InvalidAccount(destination.account_number, "Cannot transfer to same account"))

    def _reverse_debit(self, uow: TransferUnitOfWork, source: "Account", amount: Decimal) -> None:
        source.reverse_withdrawal(amount)
        uow.record(
            LedgerEntry.create(
                uow.transaction_id, source.account_number, EntryType.REVERSAL, amount, source.balance
            )
        )

    def _finish(self, uow: TransferUnitOfWork, failed: bool, volume: Decimal | None) -> None:
        with self._lock:
            self._journal.extend(uow.entries)
            stats = self._stats
            if failed:
                stats = replace(
                    stats,
                    failed=stats.failed + 1,
                    reversed=stats.reversed + (1 if uow.reversal_required else 0),
                )
            else:
                stats = replace(stats, completed=stats.completed + 1, volume=stats.volume + (volume or 0))
            self._stats = stats
