from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os

from dotenv import load_dotenv


LOGGER = logging.getLogger(__name__)

GENERAL = "general"
DERIVATIVE = "derivative"
CATEGORIES = (GENERAL, DERIVATIVE)

ACESPHERE_ORIGIN = "https://responsiveweb.acesphereonline.com/"
DEFAULT_GENERAL_URL = "https://responsiveweb.acesphereonline.com/AjaxPages/AjaxNewsUpdates.aspx"
DEFAULT_DERIVATIVE_URL = (
    "https://responsiveweb.acesphereonline.com/AjaxPages/AjaxNewsUpdates.aspx"
    "?SecID=4&SubSecID=47&pageNo=1&PageSize=50"
)
DEFAULT_GENERAL_MARKUP_URL = (
    "https://www.nirmalbang.com/ajaxpages/AjaxNewsUpdates.aspx?SecID=7&SubSecID=15&pageNo=1&PageSize=20"
)
DEFAULT_DERIVATIVE_MARKUP_URL = (
    "https://www.nirmalbang.com/ajaxpages/AjaxNewsUpdates.aspx?SecID=4&SubSecID=47&pageNo=1&PageSize=20"
)
DEFAULT_GENERAL_FALLBACK_URL = "https://www.nirmalbang.com/news/stock-market-corporate-news.aspx"

DEFAULT_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0)"
DEFAULT_SCRAPE_USER_AGENT = "Mozilla/5.0"

DEFAULT_CATEGORY_LIMITS: dict[str, int] = {
    GENERAL: 6,
    DERIVATIVE: 4,
}


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in {"0", "false", "no", "off"}


def _parse_limits(value: str | None, default: dict[str, int]) -> dict[str, int]:
    """Parse ``general:6,derivative:4`` into a per-category cap mapping."""
    limits = dict(default)
    if not value:
        return limits
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        name, _, raw = item.partition(":")
        name = name.strip().lower()
        if name not in CATEGORIES:
            LOGGER.warning("Ignoring limit for unknown news category: %s", name)
            continue
        try:
            limit = int(raw)
        except ValueError:
            LOGGER.warning("Ignoring malformed news limit: %r", item)
            continue
        if limit < 0:
            LOGGER.warning("Ignoring negative news limit: %r", item)
            continue
        limits[name] = limit
    return limits


@dataclass(frozen=True)
class Settings:
    general_url: str = DEFAULT_GENERAL_URL
    derivative_url: str = DEFAULT_DERIVATIVE_URL
    general_markup_url: str = DEFAULT_GENERAL_MARKUP_URL
    derivative_markup_url: str = DEFAULT_DERIVATIVE_MARKUP_URL
    general_fallback_url: str = DEFAULT_GENERAL_FALLBACK_URL
    referer: str | None = ACESPHERE_ORIGIN
    user_agent: str = DEFAULT_USER_AGENT
    scrape_user_agent: str = DEFAULT_SCRAPE_USER_AGENT
    category_limits: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_CATEGORY_LIMITS))
    refresh_policy: str = "interval"
    refresh_interval_minutes: int = 30
    cache_ttl_seconds: int = 60
    display_timezone: str = "UTC"
    anchor_max_items: int = 10
    anchor_min_length: int = 5
    http_timeout: int = 15
    http_retries: int = 2
    http_backoff: float = 0.5
    fetch_in_parallel: bool = True
    api_host: str = "127.0.0.1"
    api_port: int = 3000

    def limit_for(self, category: str) -> int:
        return self.category_limits.get(category, DEFAULT_CATEGORY_LIMITS.get(category, 0))

    @staticmethod
    def from_env() -> "Settings":
        load_dotenv(override=False)
        policy = os.getenv("NEWS_REFRESH_POLICY", "interval").strip().lower()
        if policy not in {"interval", "ttl"}:
            raise ValueError("NEWS_REFRESH_POLICY must be 'interval' or 'ttl'")
        return Settings(
            general_url=os.getenv("NEWS_GENERAL_URL", DEFAULT_GENERAL_URL),
            derivative_url=os.getenv("NEWS_DERIVATIVE_URL", DEFAULT_DERIVATIVE_URL),
            general_markup_url=os.getenv("NEWS_GENERAL_MARKUP_URL", DEFAULT_GENERAL_MARKUP_URL),
            derivative_markup_url=os.getenv("NEWS_DERIVATIVE_MARKUP_URL", DEFAULT_DERIVATIVE_MARKUP_URL),
            general_fallback_url=os.getenv("NEWS_GENERAL_FALLBACK_URL", DEFAULT_GENERAL_FALLBACK_URL),
            referer=os.getenv("NEWS_REFERER", ACESPHERE_ORIGIN) or None,
            user_agent=os.getenv("NEWS_USER_AGENT", DEFAULT_USER_AGENT),
            scrape_user_agent=os.getenv("NEWS_SCRAPE_USER_AGENT", DEFAULT_SCRAPE_USER_AGENT),
            category_limits=_parse_limits(os.getenv("NEWS_CATEGORY_LIMITS"), DEFAULT_CATEGORY_LIMITS),
            refresh_policy=policy,
            refresh_interval_minutes=int(os.getenv("NEWS_REFRESH_INTERVAL_MINUTES", "30")),
            cache_ttl_seconds=int(os.getenv("NEWS_CACHE_TTL_SECONDS", "60")),
            display_timezone=os.getenv("NEWS_DISPLAY_TIMEZONE", "UTC"),
            anchor_max_items=int(os.getenv("NEWS_ANCHOR_MAX_ITEMS", "10")),
            anchor_min_length=int(os.getenv("NEWS_ANCHOR_MIN_LENGTH", "5")),
            http_timeout=int(os.getenv("HTTP_TIMEOUT", "15")),
            http_retries=int(os.getenv("HTTP_RETRIES", "2")),
            http_backoff=float(os.getenv("HTTP_BACKOFF", "0.5")),
            fetch_in_parallel=_parse_bool(os.getenv("NEWS_FETCH_IN_PARALLEL"), True),
            api_host=os.getenv("API_HOST", "127.0.0.1"),
            api_port=int(os.getenv("API_PORT", "3000")),
        )
