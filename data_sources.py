from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import re

from bs4 import BeautifulSoup
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import DEFAULT_SCRAPE_USER_AGENT, DEFAULT_USER_AGENT
from normalize import NewsRecord, clean_markup_date, clean_text, parse_payload


LOGGER = logging.getLogger(__name__)

_ANCHOR_PATTERN = re.compile(
    r"<a[^>]*href=[\"'][^\"']*[\"'][^>]*>(.*?)</a>",
    re.IGNORECASE | re.DOTALL,
)


class FetchError(Exception):
    """Base class for every way a single upstream fetch can fail."""


class TransportError(FetchError):
    """Network, DNS, timeout or non-2xx HTTP status."""


class UpstreamShapeError(FetchError):
    """The upstream answered, but with markup where structured data was expected."""


class MalformedPayloadError(FetchError):
    """The structured payload could not be decoded."""


def _create_session(retries: int, backoff: float) -> requests.Session:
    retry = Retry(
        total=retries,
        backoff_factor=backoff,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session = requests.Session()
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def _get_text(session: requests.Session, url: str, headers: dict, timeout: int) -> str:
    try:
        response = session.get(url, headers=headers, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise TransportError(f"GET {url} failed: {exc}") from exc
    return response.text


@dataclass
class StructuredNewsClient:
    """Client for AJAX news endpoints that answer with JSON."""

    timeout: int = 15
    retries: int = 2
    backoff: float = 0.5
    user_agent: str = DEFAULT_USER_AGENT
    referer: str | None = None
    display_timezone: str | None = "UTC"
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = _create_session(self.retries, self.backoff)

    def fetch(self, url: str) -> list[NewsRecord]:
        LOGGER.info("Fetch structured news %s", url)
        text = _get_text(self._session, url, self._build_headers(), self.timeout)
        return self.parse(text)

    def parse(self, text: str) -> list[NewsRecord]:
        # HTML error pages are often served with 200 OK.
        if text.lstrip().startswith("<"):
            raise UpstreamShapeError("structured endpoint returned markup")
        try:
            payload = json.loads(text)
        except ValueError as exc:
            raise MalformedPayloadError(f"invalid JSON payload: {exc}") from exc
        return parse_payload(payload, self.display_timezone)

    def _build_headers(self) -> dict:
        headers = {
            "X-Requested-With": "XMLHttpRequest",
            "User-Agent": self.user_agent,
            "Accept": "application/json, text/plain, */*",
        }
        if self.referer:
            headers["Referer"] = self.referer
        return headers


@dataclass
class MarkupNewsClient:
    """Scrapes news blocks identified by CSS classes out of an HTML page."""

    timeout: int = 15
    retries: int = 2
    backoff: float = 0.5
    user_agent: str = DEFAULT_SCRAPE_USER_AGENT
    container_class: str = "GrNewsMainCont"
    headline_class: str = "GrNewsHead"
    date_class: str = "GrNewsDate"
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._session = _create_session(self.retries, self.backoff)

    def fetch(self, url: str) -> list[NewsRecord]:
        LOGGER.info("Fetch markup news %s", url)
        text = _get_text(self._session, url, {"User-Agent": self.user_agent}, self.timeout)
        return self.parse(text)

    def parse(self, text: str) -> list[NewsRecord]:
        soup = BeautifulSoup(text, "html.parser")
        records: list[NewsRecord] = []
        for container in soup.select(f".{self.container_class}"):
            headline_node = container.select_one(f".{self.headline_class}")
            date_node = container.select_one(f".{self.date_class}")
            if headline_node is None or date_node is None:
                continue
            headline = clean_text(headline_node.get_text(" "))
            date_text = clean_markup_date(date_node.get_text(" "))
            if headline and date_text:
                records.append(NewsRecord(headline=headline, date=date_text))
        return records


@dataclass
class AnchorHeadlineClient(MarkupNewsClient):
    """Last-resort scraper: falls back to link texts when no news blocks exist."""

    max_items: int = 10
    min_length: int = 5

    def parse(self, text: str) -> list[NewsRecord]:
        records = super().parse(text)
        if records:
            return records[: self.max_items]
        return self.parse_anchors(text)

    def parse_anchors(self, text: str) -> list[NewsRecord]:
        records: list[NewsRecord] = []
        for match in _ANCHOR_PATTERN.finditer(text):
            if len(records) >= self.max_items:
                break
            headline = clean_text(match.group(1))
            # Short link texts are navigation, not headlines.
            if len(headline) > self.min_length:
                records.append(NewsRecord(headline=headline))
        return records
