import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol

import structlog

from account_ledger.config import settings


@dataclass(frozen=True)
class AuditEvent:
    category: str
    subject_id: str
    action: str
    detail: str = ""
    recorded_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class EventLogger(Protocol):
    """Fire-and-forget sink for audit events. Implementations never raise."""

    def record(self, category: str, subject_id: str, action: str, detail: str = "") -> None: ...


class StructlogEventLogger:
    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._logger = logger or structlog.get_logger("account_ledger.audit")

    def record(self, category: str, subject_id: str, action: str, detail: str = "") -> None:
        try:
            self._logger.info(
                "audit_event",
                category=category,
                subject_id=subject_id,
                action=action,
                detail=detail,
            )
        except Exception:
            logging.getLogger(__name__).exception(
                "audit_event_dropped category=%s subject_id=%s action=%s",
                category,
                subject_id,
                action,
            )


class InMemoryEventLogger:
    """Keeps the most recent ``max_events`` audit events for inspection."""

    def __init__(self, max_events: int | None = None) -> None:
        self._events: deque[AuditEvent] = deque(maxlen=max_events or settings.audit_max_events)
        self._lock = threading.Lock()

    def record(self, category: str, subject_id: str, action: str, detail: str = "") -> None:
        event = AuditEvent(category=category, subject_id=subject_id, action=action, detail=detail)
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[AuditEvent]:
        with self._lock:
            return list(self._events)

    def by_category(self, category: str) -> list[AuditEvent]:
        return [event for event in self.events if event.category == category]

    def last(self, n: int) -> list[AuditEvent]:
        if n <= 0:
            return []
        return self.events[-n:]

    def actions_for(self, subject_id: str) -> list[str]:
        return [event.action for event in self.events if event.subject_id == subject_id]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


default_event_logger = StructlogEventLogger()
