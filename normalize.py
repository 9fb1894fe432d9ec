"""Projection of heterogeneous upstream news records into ``NewsRecord``.

Upstream endpoints disagree on field names (``Title`` vs ``NewsHeading``,
``DateTime`` vs ``NewsDate`` and so on) and on where the record list lives in
the response envelope. Everything here is tolerant: bad input degrades to an
empty value or a skipped record, never an exception.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
import html
import logging
import re
from typing import Any, Iterable

import pandas as pd


LOGGER = logging.getLogger(__name__)

HEADLINE_FIELDS = ("Title", "Headline", "NewsHeading", "Heading", "NewsTitle", "NewsDesc")
DATE_FIELDS = ("DateTime", "Date", "TimeStamp", "NewsDate", "CreatedOn", "NewsDateTime")
LIST_FIELDS = ("NewsList", "ListNewsBean", "newsList", "Data", "News")

MARKUP_DATE_NOISE = ("Hrs IST",)

# ASP.NET JSON dates, e.g. /Date(1704207840000)/ or /Date(1704207840000+0530)/
_ASPNET_DATE = re.compile(r"^/Date\((-?\d+)([+-]\d{4})?\)/$")
# Epoch values above this are taken as milliseconds.
_EPOCH_MS_THRESHOLD = 100_000_000_000


@dataclass(frozen=True)
class NewsRecord:
    headline: str
    date: str = ""
    date_raw: Any = None

    def to_dict(self) -> dict[str, str]:
        return {"date": self.date, "headline": self.headline}

    def sort_key(self) -> pd.Timestamp | None:
        return parse_timestamp(self.date_raw)


def _to_timestamp(value: Any) -> pd.Timestamp | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            unit = "ms" if abs(value) >= _EPOCH_MS_THRESHOLD else "s"
            parsed = pd.to_datetime(value, unit=unit, utc=True)
        elif isinstance(value, str):
            text = value.strip()
            if not any(ch.isdigit() for ch in text):
                # Relative words such as "today" or "now" are not dates.
                return None
            match = _ASPNET_DATE.match(text)
            if match:
                parsed = pd.to_datetime(int(match.group(1)), unit="ms", utc=True)
            else:
                parsed = pd.to_datetime(text, errors="coerce")
        elif isinstance(value, (datetime, date)):
            parsed = pd.Timestamp(value)
        else:
            return None
    except Exception as exc:  # noqa: BLE001
        LOGGER.debug("Unparseable news date %r: %s", value, exc)
        return None
    if parsed is None or pd.isna(parsed):
        return None
    if not 1 <= parsed.year <= 9999:
        LOGGER.debug("News date out of range: %r", value)
        return None
    return parsed


def _render(parsed: pd.Timestamp) -> str:
    # Built from fields: strftime rejects out-of-range timestamps and does not pad years.
    return (
        f"{parsed.day:02d}-{parsed.month:02d}-{parsed.year:04d} "
        f"{parsed.hour:02d}:{parsed.minute:02d}"
    )


def parse_timestamp(value: Any) -> pd.Timestamp | None:
    """Parse a raw upstream date into a naive UTC timestamp for ordering."""
    parsed = _to_timestamp(value)
    if parsed is None:
        return None
    if parsed.tzinfo is not None:
        try:
            parsed = parsed.tz_convert("UTC").tz_localize(None)
        except Exception as exc:  # noqa: BLE001
            LOGGER.debug("Cannot normalize news date %r: %s", value, exc)
            return None
    return parsed


def format_date(value: Any, display_timezone: str | None = "UTC") -> str:
    """Render a raw date as ``DD-MM-YYYY HH:MM``; unparseable input gives ``""``.

    Timezone-aware values are converted to ``display_timezone`` first, naive
    values are printed as they are.
    """
    parsed = _to_timestamp(value)
    if parsed is None:
        return ""
    if parsed.tzinfo is not None and display_timezone:
        try:
            parsed = parsed.tz_convert(display_timezone)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Cannot convert news date to %s: %s", display_timezone, exc)
    try:
        return _render(parsed)
    except Exception as exc:  # noqa: BLE001
        LOGGER.debug("Cannot format news date %r: %s", value, exc)
        return ""


def clean_markup_date(text: str | None) -> str:
    """Strip decorative noise from a scraped date; the upstream format is kept."""
    if not text:
        return ""
    cleaned = text.replace("&nbsp;", " ").replace("\xa0", " ")
    for noise in MARKUP_DATE_NOISE:
        cleaned = cleaned.replace(noise, "")
    return re.sub(r"\s+", " ", cleaned).strip()


def clean_text(text: str | None, strip_tags: bool = True) -> str:
    """Unescape entities and collapse whitespace; markup sources also drop tags."""
    if not text:
        return ""
    cleaned = html.unescape(text)
    if strip_tags:
        cleaned = re.sub(r"<[^>]+>", "", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def _first_text(item: dict, fields: Iterable[str]) -> str:
    for name in fields:
        value = item.get(name)
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            continue
        text = clean_text(str(value), strip_tags=False)
        if text:
            return text
    return ""


def _first_value(item: dict, fields: Iterable[str]) -> Any:
    for name in fields:
        value = item.get(name)
        if value is None or value == "":
            continue
        return value
    return None


def extract_record_list(payload: Any) -> list:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for name in LIST_FIELDS:
            value = payload.get(name)
            if isinstance(value, list):
                return value
    return []


def normalize_record(item: Any, display_timezone: str | None = "UTC") -> NewsRecord | None:
    if not isinstance(item, dict):
        return None
    headline = _first_text(item, HEADLINE_FIELDS)
    if not headline:
        return None
    date_raw = _first_value(item, DATE_FIELDS)
    return NewsRecord(
        headline=headline,
        date=format_date(date_raw, display_timezone),
        date_raw=date_raw,
    )


def parse_payload(payload: Any, display_timezone: str | None = "UTC") -> list[NewsRecord]:
    records: list[NewsRecord] = []
    skipped = 0
    for item in extract_record_list(payload):
        record = normalize_record(item, display_timezone)
        if record is None:
            skipped += 1
            continue
        records.append(record)
    if skipped:
        LOGGER.debug("Skipped %s upstream records without a headline", skipped)
    return records
