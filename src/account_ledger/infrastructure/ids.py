import threading
from collections import defaultdict
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from ulid import ULID


class IdGenerator(Protocol):
    def new_id(self, prefix: str = "") -> str: ...


class UlidIdGenerator:
    """Prefix followed by a ULID; lexicographically sortable by creation time."""

    def new_id(self, prefix: str = "") -> str:
        return f"{prefix}{ULID()}"


class DatedSequenceIdGenerator:
    """
    Channel-style identifiers: prefix + UTC date + zero-padded sequence.

    Each prefix keeps its own counter, e.g. ``UPI202610190000000001``.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._counters: defaultdict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def new_id(self, prefix: str = "") -> str:
        with self._lock:
            self._counters[prefix] += 1
            sequence = self._counters[prefix]
        return f"{prefix}{self._clock():%Y%m%d}{sequence:010d}"

    @property
    def total_issued(self) -> int:
        with self._lock:
            return sum(self._counters.values())


default_id_generator = UlidIdGenerator()
