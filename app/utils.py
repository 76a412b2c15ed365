"""Utility helpers for the GlassFlix service."""

from __future__ import annotations

import json
import re
import time
import unicodedata
from datetime import date, datetime, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo


JSON_BLOCK_RE = re.compile(r"```(?:json)?\s*(\[.*?\])\s*```", re.DOTALL)
BARE_JSON_RE = re.compile(r"\[.*\]", re.DOTALL)
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")

FALLBACK_RELEASE_DATE = date(1900, 1, 1)

_TMDB_LOCALES = {"en": "en-US", "fr": "fr-FR"}


def tmdb_locale(language: str) -> str:
    """Return the TMDB locale code for an interface language."""

    return _TMDB_LOCALES.get(language, "en-US")


def now_millis() -> int:
    """Return the current wall-clock time as epoch milliseconds."""

    return int(time.time() * 1000)


def resolve_timezone(name: str) -> tzinfo | None:
    """Return the tzinfo for a configured name; ``None`` means process local."""

    if name == "local":
        return None
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def today_iso(timezone_name: str = "UTC") -> str:
    """Return today's calendar date as ``YYYY-MM-DD`` in the given timezone."""

    tz = resolve_timezone(timezone_name)
    if tz is None:
        return datetime.now().date().isoformat()
    return datetime.now(tz).date().isoformat()


def parse_iso_date(value: Any) -> date | None:
    """Parse the leading ``YYYY-MM-DD`` part of a value, if any."""

    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not ISO_DATE_RE.match(value):
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def collation_key(value: str) -> tuple[str, str]:
    """Sort key approximating a locale-aware string comparison.

    Accents and case are folded for the primary ordering; the raw value breaks
    ties so that distinct strings never compare equal.
    """

    decomposed = unicodedata.normalize("NFKD", value)
    stripped = "".join(char for char in decomposed if not unicodedata.combining(char))
    return stripped.casefold(), value


def extract_json_array(content: str) -> list[Any]:
    """Extract and parse the first JSON array from a model response."""

    stripped = content.strip()
    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return parsed

    match = JSON_BLOCK_RE.search(content)
    if match:
        payload = match.group(1)
    else:
        match = BARE_JSON_RE.search(content)
        if not match:
            raise ValueError("No JSON array found in response")
        payload = match.group(0)

    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ValueError("Invalid JSON payload produced by the model") from exc
    if not isinstance(parsed, list):
        raise ValueError("Model response is not a JSON array")
    return parsed
