from __future__ import annotations

import logging
from typing import Any

from scheduler import RefreshScheduler
from storage import CacheSnapshot, CacheStore


LOGGER = logging.getLogger(__name__)


class NewsService:
    """Read-only access to the cached news snapshot."""

    def __init__(self, store: CacheStore, scheduler: RefreshScheduler | None = None) -> None:
        self.store = store
        self.scheduler = scheduler

    def get_snapshot(self) -> CacheSnapshot:
        # TTL refreshes run in the background; readers always get the last complete snapshot.
        if self.scheduler is not None:
            self.scheduler.maybe_refresh()
        return self.store.read()

    def get_news(self) -> dict[str, Any]:
        return self.get_snapshot().to_dict()
