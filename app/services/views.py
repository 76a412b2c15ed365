"""Filtered and sorted collection views."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Iterable, Literal

from ..models import CollectionEntry, CollectionStatus
from ..utils import FALLBACK_RELEASE_DATE, collation_key, parse_iso_date

SortKey = Literal["date_added", "release_date", "rating", "title"]
SortOrder = Literal["asc", "desc"]

SORT_KEYS: tuple[str, ...] = ("date_added", "release_date", "rating", "title")


def _release_date(entry: CollectionEntry) -> date:
    return parse_iso_date(entry.primary_date) or FALLBACK_RELEASE_DATE


_SORT_FUNCTIONS: dict[str, Callable[[CollectionEntry], Any]] = {
    "date_added": lambda entry: entry.added_at or 0,
    "release_date": _release_date,
    "rating": lambda entry: entry.rating or 0.0,
    "title": lambda entry: collation_key(entry.title or ""),
}


@dataclass(frozen=True, slots=True)
class SortState:
    """Current sort selection for collection views."""

    key: SortKey = "date_added"
    order: SortOrder = "desc"

    def select(self, key: SortKey) -> "SortState":
        """Flip the order for the active key; start descending for a new one."""

        if key == self.key:
            return SortState(key=key, order="asc" if self.order == "desc" else "desc")
        return SortState(key=key, order="desc")


def build_view(
    entries: Iterable[CollectionEntry],
    status: CollectionStatus,
    sort_key: SortKey = "date_added",
    sort_order: SortOrder = "desc",
) -> list[CollectionEntry]:
    """Return entries with ``status``, sorted by the chosen key and order."""

    try:
        key_function = _SORT_FUNCTIONS[sort_key]
    except KeyError as exc:
        raise ValueError(f"Unsupported sort key: {sort_key}") from exc
    selected = [entry for entry in entries if entry.status == status]
    return sorted(selected, key=key_function, reverse=sort_order == "desc")
