from __future__ import annotations

import argparse
import json
import logging

from config import Settings
from pipeline import NewsRefreshPipeline
from scheduler import RefreshScheduler, ScheduleConfig
from service import NewsService
from storage import CacheStore


def build_service(settings: Settings, interval_minutes: int | None = None, policy: str | None = None) -> NewsService:
    config = ScheduleConfig(
        interval_minutes=max(1, interval_minutes or settings.refresh_interval_minutes),
        policy=policy or settings.refresh_policy,
        ttl_seconds=settings.cache_ttl_seconds,
    )
    store = CacheStore()
    scheduler = RefreshScheduler(config, NewsRefreshPipeline(settings), store)
    return NewsService(store, scheduler)


def run_once(service: NewsService) -> dict:
    if service.scheduler is not None:
        service.scheduler.refresh_now()
    return service.store.read().to_dict()


def serve(service: NewsService, settings: Settings) -> None:
    import uvicorn

    from api import create_app

    uvicorn.run(create_app(service), host=settings.api_host, port=settings.api_port)


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    parser = argparse.ArgumentParser(description="Market news headline cache")
    parser.add_argument("--daemon", action="store_true", help="Refresh continuously on a schedule")
    parser.add_argument("--serve", action="store_true", help="Serve cached news over HTTP")
    parser.add_argument("--interval-minutes", type=int, help="Refresh interval in minutes")
    parser.add_argument("--policy", choices=["interval", "ttl"], help="Refresh policy")
    args = parser.parse_args()

    settings = Settings.from_env()
    service = build_service(settings, args.interval_minutes, args.policy)

    if args.serve:
        serve(service, settings)
    elif args.daemon:
        service.scheduler.run_forever()
    else:
        print(json.dumps(run_once(service), ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
