from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Callable

from config import CATEGORIES, DERIVATIVE, GENERAL, Settings
from data_sources import AnchorHeadlineClient, FetchError, MarkupNewsClient, StructuredNewsClient
from normalize import NewsRecord
from storage import CacheSnapshot


LOGGER = logging.getLogger(__name__)


@dataclass
class StrategyResult:
    strategy: str
    records: list[NewsRecord] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class FetchStrategy:
    name: str
    fetch: Callable[[], list[NewsRecord]]

    def attempt(self) -> StrategyResult:
        try:
            records = list(self.fetch())
        except FetchError as exc:
            return StrategyResult(self.name, error=exc)
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Unexpected error in strategy %s", self.name, exc_info=True)
            return StrategyResult(self.name, error=exc)
        return StrategyResult(self.name, records=records)


@dataclass
class CategoryResult:
    category: str
    records: list[NewsRecord]
    succeeded: bool
    strategy: str | None = None
    errors: list[StrategyResult] = field(default_factory=list)


def sort_by_date_desc(records: list[NewsRecord]) -> list[NewsRecord]:
    """Best-effort newest-first ordering.

    Upstreams are assumed to be newest-first already. Records whose raw date
    parses are re-sorted by that date, descending; the rest keep upstream order
    and are appended after them. Mixed or inconsistent date formats can still
    produce a poor order.
    """
    dated: list[tuple[object, NewsRecord]] = []
    undated: list[NewsRecord] = []
    for record in records:
        key = record.sort_key()
        if key is None:
            undated.append(record)
        else:
            dated.append((key, record))
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [record for _, record in dated] + undated


@dataclass
class CategoryChain:
    category: str
    strategies: list[FetchStrategy]
    limit: int

    def collect(self) -> CategoryResult:
        failures: list[StrategyResult] = []
        for strategy in self.strategies:
            result = strategy.attempt()
            if not result.ok:
                LOGGER.warning(
                    "News strategy %s failed for %s: %s",
                    strategy.name,
                    self.category,
                    result.error,
                )
                failures.append(result)
                continue
            if failures:
                LOGGER.info("News fallback used for %s: %s", self.category, strategy.name)
            records = sort_by_date_desc(result.records)[: max(0, self.limit)]
            return CategoryResult(self.category, records, True, strategy.name, failures)
        LOGGER.error("All news strategies failed for %s", self.category)
        return CategoryResult(self.category, [], False, None, failures)


@dataclass
class RefreshResult:
    categories: dict[str, CategoryResult]
    finished_at: datetime

    @property
    def any_succeeded(self) -> bool:
        return any(result.succeeded for result in self.categories.values())

    def build_snapshot(self, previous: CacheSnapshot | None = None) -> CacheSnapshot:
        """Assemble the next snapshot; failed categories keep their previous records."""
        previous = previous or CacheSnapshot()
        lists: dict[str, tuple[NewsRecord, ...]] = {}
        updated: dict[str, datetime | None] = {}
        for category in CATEGORIES:
            result = self.categories.get(category)
            if result is not None and result.succeeded:
                lists[category] = tuple(result.records)
                updated[category] = self.finished_at
            else:
                lists[category] = previous.records(category)
                updated[category] = previous.updated_at(category)
        return CacheSnapshot(
            general=lists[GENERAL],
            derivative=lists[DERIVATIVE],
            last_updated=self.finished_at,
            general_updated=updated[GENERAL],
            derivative_updated=updated[DERIVATIVE],
        )


class NewsRefreshPipeline:
    def __init__(
        self,
        settings: Settings,
        chains: dict[str, CategoryChain] | None = None,
    ) -> None:
        self.settings = settings
        self.chains = chains if chains is not None else self._build_chains(settings)

    @staticmethod
    def _build_chains(settings: Settings) -> dict[str, CategoryChain]:
        structured = StructuredNewsClient(
            settings.http_timeout,
            settings.http_retries,
            settings.http_backoff,
            user_agent=settings.user_agent,
            referer=settings.referer,
            display_timezone=settings.display_timezone,
        )
        markup = MarkupNewsClient(
            settings.http_timeout,
            settings.http_retries,
            settings.http_backoff,
            user_agent=settings.scrape_user_agent,
        )
        anchors = AnchorHeadlineClient(
            settings.http_timeout,
            settings.http_retries,
            settings.http_backoff,
            user_agent=settings.scrape_user_agent,
            max_items=settings.anchor_max_items,
            min_length=settings.anchor_min_length,
        )
        return {
            GENERAL: CategoryChain(
                GENERAL,
                [
                    FetchStrategy("acesphere-json", lambda: structured.fetch(settings.general_url)),
                    FetchStrategy("nirmalbang-html", lambda: markup.fetch(settings.general_markup_url)),
                    FetchStrategy("nirmalbang-links", lambda: anchors.fetch(settings.general_fallback_url)),
                ],
                settings.limit_for(GENERAL),
            ),
            DERIVATIVE: CategoryChain(
                DERIVATIVE,
                [
                    FetchStrategy("acesphere-json", lambda: structured.fetch(settings.derivative_url)),
                    FetchStrategy("nirmalbang-html", lambda: markup.fetch(settings.derivative_markup_url)),
                ],
                settings.limit_for(DERIVATIVE),
            ),
        }

    def collect(self, category: str) -> CategoryResult:
        return self.chains[category].collect()

    def run(self) -> RefreshResult:
        LOGGER.info("News refresh started")
        categories = [category for category in CATEGORIES if category in self.chains]
        if self.settings.fetch_in_parallel and len(categories) > 1:
            with ThreadPoolExecutor(max_workers=len(categories)) as executor:
                results = dict(zip(categories, executor.map(self.collect, categories)))
        else:
            results = {category: self.collect(category) for category in categories}
        finished_at = datetime.now(timezone.utc)
        LOGGER.info(
            "News refresh completed: %s",
            ", ".join(
                f"{category}={len(result.records)} via {result.strategy or 'none'}"
                for category, result in results.items()
            ),
        )
        return RefreshResult(results, finished_at)
