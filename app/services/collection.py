"""In-memory collection of tagged media, keyed by catalog id."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Sequence

from ..models import (
    AgendaEvent,
    CollectionEntry,
    CollectionStatus,
    MediaRecord,
    parse_entries,
)
from ..utils import now_millis

logger = logging.getLogger(__name__)

ChangeListener = Callable[["CollectionStore"], None]


class CollectionStore:
    """Single source of truth for what the user has tagged.

    Every method is synchronous and free of suspension points, so on a single
    event loop no two mutations can interleave. Listeners are notified after
    each effective change.
    """

    def __init__(
        self,
        entries: Iterable[CollectionEntry] = (),
        *,
        clock: Callable[[], int] = now_millis,
    ) -> None:
        self._entries: dict[int, CollectionEntry] = {}
        self._clock = clock
        self._listeners: list[ChangeListener] = []
        for entry in entries:
            self._entries[entry.id] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, media_id: object) -> bool:
        return media_id in self._entries

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def get(self, media_id: int) -> CollectionEntry | None:
        return self._entries.get(media_id)

    def entries(self) -> list[CollectionEntry]:
        """Return entries in insertion order."""

        return list(self._entries.values())

    def upsert_status(
        self, record: MediaRecord, status: CollectionStatus
    ) -> list[CollectionEntry]:
        """Tag a record, keeping ``added_at`` when the entry already exists."""

        existing = self._entries.get(record.id)
        if existing is not None:
            update: dict[str, Any] = {"status": status}
            if status != "watchlist":
                update["events"] = None
            entry = existing.model_copy(update=update)
        else:
            entry = CollectionEntry.from_record(
                record, status=status, added_at=self._clock()
            )
        self._entries[record.id] = entry
        self._notify()
        return self.entries()

    def remove(self, media_id: int) -> None:
        if self._entries.pop(media_id, None) is None:
            return
        self._notify()

    def attach_events(self, media_id: int, events: Sequence[AgendaEvent]) -> bool:
        """Replace events on a still-watchlisted entry; drop stale writes."""

        entry = self._entries.get(media_id)
        if entry is None or entry.status != "watchlist":
            logger.debug("Dropping late agenda events for %s", media_id)
            return False
        self._entries[media_id] = entry.model_copy(update={"events": list(events)})
        self._notify()
        return True

    def replace_all(self, entries: Iterable[CollectionEntry]) -> None:
        """Swap the whole collection, keeping the last entry per id."""

        self._entries = {}
        for entry in entries:
            self._entries[entry.id] = entry
        self._notify()

    def dump(self) -> list[dict[str, Any]]:
        """Return the collection as a JSON-ready list."""

        return [entry.to_payload() for entry in self._entries.values()]

    @classmethod
    def load(cls, payload: Any, **kwargs: Any) -> "CollectionStore":
        return cls(parse_entries(payload), **kwargs)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


