from __future__ import annotations

import json
import random
from datetime import datetime, timedelta, timezone

from config import DERIVATIVE, GENERAL, Settings
from data_sources import StructuredNewsClient, TransportError, UpstreamShapeError
from normalize import NewsRecord
from pipeline import (
    CategoryChain,
    FetchStrategy,
    NewsRefreshPipeline,
    RefreshResult,
    sort_by_date_desc,
)
from storage import CacheSnapshot


def _failing(error: Exception):
    def fetch():
        raise error

    return fetch


def _records(*headlines: str) -> list[NewsRecord]:
    return [NewsRecord(headline=headline) for headline in headlines]


def _dated_records(count: int) -> list[NewsRecord]:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    records = [
        NewsRecord(
            headline=f"Headline {i}",
            date_raw=(start + timedelta(minutes=37 * i)).isoformat(),
        )
        for i in range(count)
    ]
    random.Random(7).shuffle(records)
    return records


def test_news_list_scenario_is_sorted_and_formatted():
    payload = {
        "NewsList": [
            {"Title": "A", "DateTime": "2024-01-02T15:04:00Z"},
            {"Title": "B", "DateTime": "2024-01-03T09:00:00Z"},
        ]
    }
    client = StructuredNewsClient()
    chain = CategoryChain(
        GENERAL,
        [FetchStrategy("json", lambda: client.parse(json.dumps(payload)))],
        limit=6,
    )

    result = chain.collect()

    assert result.succeeded
    assert [record.to_dict() for record in result.records] == [
        {"headline": "B", "date": "03-01-2024 09:00"},
        {"headline": "A", "date": "02-01-2024 15:04"},
    ]


def test_sort_puts_undated_records_last_in_upstream_order():
    records = [
        NewsRecord("undated-1"),
        NewsRecord("old", date_raw="2024-01-01 10:00"),
        NewsRecord("bad-date", date_raw="whenever"),
        NewsRecord("new", date_raw="2024-01-02 10:00"),
        NewsRecord("undated-2"),
    ]
    ordered = [record.headline for record in sort_by_date_desc(records)]
    assert ordered == ["new", "old", "undated-1", "bad-date", "undated-2"]


def test_fallback_result_matches_second_strategy_alone():
    second = FetchStrategy("second", lambda: _dated_records(12))
    with_failure = CategoryChain(
        GENERAL,
        [FetchStrategy("first", _failing(TransportError("timeout"))), second],
        limit=6,
    )
    alone = CategoryChain(GENERAL, [second], limit=6)

    fallback_result = with_failure.collect()

    assert fallback_result.succeeded
    assert fallback_result.strategy == "second"
    assert [error.strategy for error in fallback_result.errors] == ["first"]
    assert fallback_result.records == alone.collect().records


def test_markup_from_structured_endpoint_falls_through_without_retry():
    calls = {"structured": 0}

    def structured():
        calls["structured"] += 1
        raise UpstreamShapeError("markup")

    chain = CategoryChain(
        GENERAL,
        [FetchStrategy("json", structured), FetchStrategy("html", lambda: _records("From markup"))],
        limit=6,
    )

    result = chain.collect()

    assert calls["structured"] == 1
    assert result.strategy == "html"
    assert [record.headline for record in result.records] == ["From markup"]


def test_exhausted_chain_yields_empty_result_without_raising():
    chain = CategoryChain(
        DERIVATIVE,
        [
            FetchStrategy("a", _failing(TransportError("down"))),
            FetchStrategy("b", _failing(RuntimeError("selector blew up"))),
        ],
        limit=4,
    )

    result = chain.collect()

    assert not result.succeeded
    assert result.records == []
    assert len(result.errors) == 2


def test_empty_extraction_is_a_success():
    chain = CategoryChain(
        GENERAL,
        [FetchStrategy("a", lambda: []), FetchStrategy("b", lambda: _records("unused"))],
        limit=6,
    )
    result = chain.collect()
    assert result.succeeded
    assert result.strategy == "a"
    assert result.records == []


def test_caps_are_prefix_of_sorted_list():
    records = _dated_records(50)
    expected = sort_by_date_desc(records)
    pipeline = NewsRefreshPipeline(
        Settings(),
        chains={
            GENERAL: CategoryChain(GENERAL, [FetchStrategy("s", lambda: list(records))], 6),
            DERIVATIVE: CategoryChain(DERIVATIVE, [FetchStrategy("s", lambda: list(records))], 4),
        },
    )

    result = pipeline.run()

    assert result.categories[GENERAL].records == expected[:6]
    assert result.categories[DERIVATIVE].records == expected[:4]
    assert expected[0].headline == "Headline 49"


def test_category_failure_is_isolated():
    pipeline = NewsRefreshPipeline(
        Settings(),
        chains={
            GENERAL: CategoryChain(
                GENERAL,
                [
                    FetchStrategy("a", _failing(TransportError("down"))),
                    FetchStrategy("b", _failing(UpstreamShapeError("html"))),
                ],
                6,
            ),
            DERIVATIVE: CategoryChain(DERIVATIVE, [FetchStrategy("a", lambda: _records("Options expiry"))], 4),
        },
    )
    earlier = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
    previous = CacheSnapshot(
        general=tuple(_records("Old general")),
        last_updated=earlier,
        general_updated=earlier,
        derivative_updated=earlier,
    )

    result = pipeline.run()
    snapshot = result.build_snapshot(previous)

    assert result.any_succeeded
    assert not result.categories[GENERAL].succeeded
    assert [record.headline for record in snapshot.derivative] == ["Options expiry"]
    assert [record.headline for record in snapshot.general] == ["Old general"]
    assert snapshot.last_updated == result.finished_at
    assert snapshot.updated_at(GENERAL) == earlier
    assert snapshot.updated_at(DERIVATIVE) == result.finished_at


def test_sequential_run_matches_parallel_run():
    chains = {
        GENERAL: CategoryChain(GENERAL, [FetchStrategy("a", lambda: _records("G"))], 6),
        DERIVATIVE: CategoryChain(DERIVATIVE, [FetchStrategy("a", lambda: _records("D"))], 4),
    }
    parallel = NewsRefreshPipeline(Settings(), chains=chains).run()
    sequential = NewsRefreshPipeline(Settings(fetch_in_parallel=False), chains=chains).run()
    for category in (GENERAL, DERIVATIVE):
        assert parallel.categories[category].records == sequential.categories[category].records


def test_default_chains_follow_configured_order_and_limits():
    settings = Settings(category_limits={GENERAL: 3, DERIVATIVE: 2})
    pipeline = NewsRefreshPipeline(settings)

    assert [s.name for s in pipeline.chains[GENERAL].strategies] == [
        "acesphere-json",
        "nirmalbang-html",
        "nirmalbang-links",
    ]
    assert [s.name for s in pipeline.chains[DERIVATIVE].strategies] == ["acesphere-json", "nirmalbang-html"]
    assert pipeline.chains[GENERAL].limit == 3
    assert pipeline.chains[DERIVATIVE].limit == 2


def test_refresh_result_without_success_reports_it():
    result = RefreshResult(categories={}, finished_at=datetime.now(timezone.utc))
    assert not result.any_succeeded


def test_one_out_of_range_date_keeps_structured_strategy_alive():
    payload = {
        "NewsList": [
            {"Title": "Good", "DateTime": "2024-01-02T15:04:00Z"},
            {"Title": "Odd", "DateTime": "/Date(99999999999999999)/"},
        ]
    }
    client = StructuredNewsClient()
    chain = CategoryChain(
        GENERAL,
        [
            FetchStrategy("json", lambda: client.parse(json.dumps(payload))),
            FetchStrategy("html", lambda: _records("From markup")),
        ],
        limit=6,
    )

    result = chain.collect()

    assert result.succeeded
    assert result.strategy == "json"
    assert [record.to_dict() for record in result.records] == [
        {"headline": "Good", "date": "02-01-2024 15:04"},
        {"headline": "Odd", "date": ""},
    ]
