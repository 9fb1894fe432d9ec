from __future__ import annotations

from datetime import datetime, timezone

from fastapi.testclient import TestClient

from api import create_app
from normalize import NewsRecord
from service import NewsService
from storage import CacheSnapshot, CacheStore


def test_news_endpoint_serializes_snapshot():
    store = CacheStore(
        CacheSnapshot(
            general=(NewsRecord("B", "03-01-2024 09:00", "2024-01-03T09:00:00Z"),),
            derivative=(NewsRecord("Nifty OI builds up", ""),),
            last_updated=datetime(2024, 1, 3, 9, 5, tzinfo=timezone.utc),
        )
    )
    client = TestClient(create_app(NewsService(store), start_scheduler=False))

    response = client.get("/news")

    assert response.status_code == 200
    assert response.json() == {
        "general": [{"date": "03-01-2024 09:00", "headline": "B"}],
        "derivative": [{"date": "", "headline": "Nifty OI builds up"}],
        "lastUpdated": "2024-01-03T09:05:00+00:00",
    }


def test_health_endpoint_without_scheduler():
    client = TestClient(create_app(NewsService(CacheStore()), start_scheduler=False))
    assert client.get("/health").json() == {
        "status": "ok",
        "state": None,
        "lastUpdated": None,
        "categoriesUpdated": {"general": None, "derivative": None},
    }
