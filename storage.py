from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import threading
from typing import Any

from config import DERIVATIVE, GENERAL
from normalize import NewsRecord


LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheSnapshot:
    general: tuple[NewsRecord, ...] = ()
    derivative: tuple[NewsRecord, ...] = ()
    last_updated: datetime | None = None
    general_updated: datetime | None = None
    derivative_updated: datetime | None = None

    def records(self, category: str) -> tuple[NewsRecord, ...]:
        if category == GENERAL:
            return self.general
        if category == DERIVATIVE:
            return self.derivative
        raise KeyError(category)

    def updated_at(self, category: str) -> datetime | None:
        """When this category last refreshed successfully; may trail ``last_updated``."""
        if category == GENERAL:
            return self.general_updated
        if category == DERIVATIVE:
            return self.derivative_updated
        raise KeyError(category)

    @property
    def is_empty(self) -> bool:
        return self.last_updated is None

    def age_seconds(self, now: datetime | None = None) -> float | None:
        if self.last_updated is None:
            return None
        now = now or datetime.now(timezone.utc)
        return (now - self.last_updated).total_seconds()

    def to_dict(self) -> dict[str, Any]:
        return {
            GENERAL: [record.to_dict() for record in self.general],
            DERIVATIVE: [record.to_dict() for record in self.derivative],
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }


class CacheStore:
    """Single in-memory slot for the latest news snapshot.

    Snapshots are immutable, so ``read`` hands out the stored object itself and
    ``replace`` swaps the whole reference at once.
    ``last_updated`` marks the last refresh cycle; a category whose sources all
    failed keeps its older records and its own ``updated_at`` timestamp.
    """

    def __init__(self, snapshot: CacheSnapshot | None = None) -> None:
        self._lock = threading.Lock()
        self._snapshot = snapshot or CacheSnapshot()

    def read(self) -> CacheSnapshot:
        with self._lock:
            return self._snapshot

    def replace(self, snapshot: CacheSnapshot) -> None:
        with self._lock:
            self._snapshot = snapshot
        LOGGER.info(
            "News cache replaced: general=%s derivative=%s at %s",
            len(snapshot.general),
            len(snapshot.derivative),
            snapshot.last_updated.isoformat() if snapshot.last_updated else None,
        )

    def clear(self) -> None:
        with self._lock:
            self._snapshot = CacheSnapshot()

    def is_stale(self, max_age_seconds: float, now: datetime | None = None) -> bool:
        age = self.read().age_seconds(now)
        return age is None or age >= max_age_seconds
