from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
import signal
import threading
import time

from pipeline import NewsRefreshPipeline
from storage import CacheStore


LOGGER = logging.getLogger(__name__)

IDLE = "idle"
REFRESHING = "refreshing"


@dataclass
class ScheduleConfig:
    interval_minutes: int = 30
    policy: str = "interval"
    ttl_seconds: int = 60


class RefreshScheduler:
    """Owns the single write path into the news cache.

    ``interval`` policy refreshes on start and then every ``interval_minutes``
    from a background thread. ``ttl`` policy refreshes on start and then only
    when a reader finds the snapshot older than ``ttl_seconds``. Either way at
    most one refresh cycle runs at a time; extra triggers are no-ops.
    """

    def __init__(self, config: ScheduleConfig, pipeline: NewsRefreshPipeline, store: CacheStore) -> None:
        self.config = config
        self.pipeline = pipeline
        self.store = store
        self._running = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def state(self) -> str:
        return REFRESHING if self._running.locked() else IDLE

    @property
    def interval_seconds(self) -> float:
        return max(1, self.config.interval_minutes) * 60

    def refresh_now(self) -> bool:
        """Run one refresh cycle; returns False if another cycle was already running."""
        if not self._running.acquire(blocking=False):
            LOGGER.info("News refresh already in progress, skipping trigger")
            return False
        try:
            result = self.pipeline.run()
            if result.any_succeeded:
                self.store.replace(result.build_snapshot(self.store.read()))
            else:
                LOGGER.warning("News refresh produced nothing, keeping previous snapshot")
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("News refresh failed: %s", exc)
        finally:
            self._running.release()
        return True

    def trigger_async(self) -> bool:
        if self._running.locked():
            return False
        thread = threading.Thread(target=self.refresh_now, name="news-refresh", daemon=True)
        thread.start()
        return True

    def maybe_refresh(self, now: datetime | None = None) -> bool:
        if self.config.policy != "ttl":
            return False
        if not self.store.is_stale(self.config.ttl_seconds, now):
            return False
        LOGGER.info("News cache older than %ss, refreshing", self.config.ttl_seconds)
        return self.trigger_async()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        if self.config.policy == "ttl":
            LOGGER.info("News scheduler started with %ss TTL", self.config.ttl_seconds)
            self.trigger_async()
            return
        LOGGER.info("News scheduler started with %s minutes interval", self.config.interval_minutes)
        self._thread = threading.Thread(target=self._loop, name="news-scheduler", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        LOGGER.info("News scheduler stopping...")

    def _loop(self) -> None:
        while not self._stop.is_set():
            start = time.monotonic()
            LOGGER.info("News refresh triggered at %s", datetime.now().isoformat(timespec="seconds"))
            self.refresh_now()
            elapsed = time.monotonic() - start
            self._stop.wait(max(0.0, self.interval_seconds - elapsed))

    def _handle_stop(self, *_: object) -> None:
        self.stop()

    def run_forever(self) -> None:
        signal.signal(signal.SIGINT, self._handle_stop)
        signal.signal(signal.SIGTERM, self._handle_stop)
        LOGGER.info("News scheduler running in foreground, %s minutes interval", self.config.interval_minutes)
        self._loop()
