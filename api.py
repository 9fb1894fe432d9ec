"""HTTP exposure of the cached news snapshot."""
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import Any

from fastapi import FastAPI

from config import CATEGORIES
from service import NewsService


LOGGER = logging.getLogger(__name__)


def create_app(service: NewsService, start_scheduler: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI):
        scheduler = service.scheduler
        if start_scheduler and scheduler is not None:
            scheduler.start()
        try:
            yield
        finally:
            if start_scheduler and scheduler is not None:
                scheduler.stop()

    app = FastAPI(
        title="Market News Cache",
        description="Cached general and derivative market headlines",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/news")
    def get_news() -> dict[str, Any]:
        return service.get_news()

    @app.get("/health")
    def health() -> dict[str, Any]:
        snapshot = service.store.read()
        return {
            "status": "ok",
            "state": service.scheduler.state if service.scheduler is not None else None,
            "lastUpdated": snapshot.last_updated.isoformat() if snapshot.last_updated else None,
            "categoriesUpdated": {
                category: (snapshot.updated_at(category).isoformat() if snapshot.updated_at(category) else None)
                for category in CATEGORIES
            },
        }

    return app
