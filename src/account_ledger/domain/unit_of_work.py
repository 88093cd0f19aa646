from collections.abc import Callable
from types import TracebackType
from typing import Self

import structlog

from account_ledger.domain.models import LedgerEntry


logger = structlog.get_logger()


class TransferUnitOfWork:
    """
    Journal plus compensation stack for one multi-step ledger operation.

    Each committed step registers an undo action. Leaving the ``with`` block
    with an exception, or calling ``rollback()``, runs the pending undo actions
    in reverse order exactly once; ``commit()`` discards them.
    """

    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        self.entries: list[LedgerEntry] = []
        self._compensations: list[tuple[str, Callable[[], None]]] = []
        self._committed = False
        self._rolled_back = False
        self.reversal_required = False
        self.reversal_completed = False

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None and not self._committed:
            self.rollback()

    @property
    def committed(self) -> bool:
        return self._committed

    def record(self, entry: LedgerEntry) -> None:
        self.entries.append(entry)

    def on_rollback(self, step: str, action: Callable[[], None]) -> None:
        self._compensations.append((step, action))

    def commit(self) -> None:
        self._committed = True
        self._compensations.clear()

    def rollback(self) -> bool:
        """Run pending compensations; returns whether all of them completed."""
        if self._rolled_back:
            return self.reversal_completed
        self._rolled_back = True
        self.reversal_required = bool(self._compensations)

        completed = True
        while self._compensations:
            step, action = self._compensations.pop()
            try:
                action()
            except Exception as e:
                completed = False
                logger.error(
                    "compensation_failed",
                    transaction_id=self.transaction_id,
                    step=step,
                    error=str(e),
                    exc_info=True,
                )
            else:
                logger.info("compensation_applied", transaction_id=self.transaction_id, step=step)

        self.reversal_completed = self.reversal_required and completed
        return self.reversal_completed
