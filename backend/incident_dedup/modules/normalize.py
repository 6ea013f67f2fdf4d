"""Field normalisation shared by the record model, the stores and the scorer.

Collectors hand over whatever each reporting centre publishes: ISO strings,
"dd/mm/YYYY HH:MM" dates, coordinates as strings, blank strings for missing
values. Everything here maps those shapes onto one representation.
"""
from __future__ import annotations

import math
import re
from datetime import datetime, timezone
from typing import Any

from unidecode import unidecode


# --- Timestamps ---

_COMMON_TIMESTAMP_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%d %b %Y %H:%M",
    "%d %b %Y",
    "%d %B %Y",
]


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp_flexible(ts: Any) -> datetime | None:
    """Parse a timestamp from various formats.

    Returns a timezone-aware UTC datetime or None if parsing fails.
    Supports: datetime objects, ISO 8601 (including a trailing "Z"),
    Unix epoch seconds, and the date formats the reporting centres publish.
    """
    if isinstance(ts, datetime):
        return ensure_utc(ts)

    # Unix epoch (int or float)
    if isinstance(ts, (int, float)) and not isinstance(ts, bool) and ts > 1_000_000_000:
        try:
            return datetime.fromtimestamp(ts, tz=timezone.utc)
        except (OSError, ValueError, OverflowError):
            return None

    if isinstance(ts, str):
        ts_str = ts.strip()
        if not ts_str:
            return None

        try:
            return ensure_utc(datetime.fromisoformat(ts_str.replace("Z", "+00:00")))
        except ValueError:
            pass

        for fmt in _COMMON_TIMESTAMP_FORMATS:
            try:
                return datetime.strptime(ts_str, fmt).replace(tzinfo=timezone.utc)
            except ValueError:
                continue

    return None


def hours_between(dt1: datetime, dt2: datetime) -> float:
    """Absolute difference in hours between two datetimes."""
    return abs((ensure_utc(dt1) - ensure_utc(dt2)).total_seconds()) / 3600.0


# --- Scalars ---

def blank_to_none(value: Any) -> Any:
    """Map blank / whitespace-only strings to None; strip other strings."""
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def coerce_float(value: Any) -> float | None:
    """Parse a coordinate-like value; None when absent or not numeric."""
    value = blank_to_none(value)
    if value is None or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def coerce_str_list(value: Any) -> list[str]:
    """Normalise a list-valued field: accepts None, a string, or an iterable.

    Comma/newline separated strings are split. Blank entries are dropped and
    the first occurrence order is kept.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items = re.split(r"[\n,;]", value)
    else:
        items = [str(v) for v in value if v is not None]
    result: list[str] = []
    for item in items:
        cleaned = item.strip()
        if cleaned and cleaned not in result:
            result.append(cleaned)
    return result


# --- Free text ---

_TOKEN_RE = re.compile(r"[a-z0-9]+")

# Words that appear in nearly every incident report and carry no signal
_STOPWORDS: frozenset[str] = frozenset({
    "the", "and", "was", "were", "has", "had", "have", "been", "with", "from",
    "into", "onto", "that", "this", "their", "they", "its", "for", "not",
    "all", "any", "are", "but", "who", "while", "when", "after", "before",
    "vessel", "ship", "crew", "reported", "report", "incident", "position",
    "utc", "hrs", "approx", "approximately",
})


def text_tokens(*texts: str | None) -> set[str]:
    """Lower-cased ASCII word tokens of the given texts, minus stopwords."""
    tokens: set[str] = set()
    for text in texts:
        if not text:
            continue
        for tok in _TOKEN_RE.findall(unidecode(text).lower()):
            if len(tok) > 2 and tok not in _STOPWORDS:
                tokens.add(tok)
    return tokens


def normalize_source(source: Any) -> str | None:
    """Upper-case reporting centre name ("recaap" → "RECAAP")."""
    source = blank_to_none(source)
    if source is None:
        return None
    return str(source).upper()
