"""Tests for the in-memory collection store."""

from __future__ import annotations

from itertools import count
from typing import Callable

from app.models import AgendaEvent, MediaRecord
from app.services.collection import CollectionStore


def _clock() -> Callable[[], int]:
    ticks = count(1000, 1000)
    return lambda: next(ticks)


def _movie(media_id: int = 1, title: str = "Dune") -> MediaRecord:
    return MediaRecord(id=media_id, kind="movie", title=title, primary_date="2099-01-01")


def _event(date: str = "2099-01-01", label: str = "Movie Release") -> AgendaEvent:
    return AgendaEvent(date=date, label=label)


def test_upsert_creates_entry_with_timestamp() -> None:
    store = CollectionStore(clock=_clock())

    store.upsert_status(_movie(), "watchlist")

    entry = store.get(1)
    assert entry is not None
    assert entry.status == "watchlist"
    assert entry.added_at == 1000
    assert entry.events is None
    assert len(store) == 1


def test_retagging_keeps_added_at_and_single_entry() -> None:
    store = CollectionStore(clock=_clock())
    store.upsert_status(_movie(), "watchlist")

    store.upsert_status(_movie(title="Dune: Part One"), "seen")
    store.upsert_status(_movie(), "watchlist")

    entry = store.get(1)
    assert entry is not None
    assert entry.added_at == 1000
    assert entry.status == "watchlist"
    assert len(store) == 1


def test_marking_seen_strips_events() -> None:
    store = CollectionStore(clock=_clock())
    store.upsert_status(_movie(), "watchlist")
    assert store.attach_events(1, [_event()]) is True

    store.upsert_status(_movie(), "seen")

    entry = store.get(1)
    assert entry is not None
    assert entry.events is None


def test_attach_events_only_applies_to_watchlisted_entries() -> None:
    store = CollectionStore(clock=_clock())
    store.upsert_status(_movie(1), "seen")

    assert store.attach_events(1, [_event()]) is False
    assert store.attach_events(99, [_event()]) is False
    entry = store.get(1)
    assert entry is not None and entry.events is None
    assert 99 not in store


def test_attach_events_replaces_previous_events() -> None:
    store = CollectionStore(clock=_clock())
    store.upsert_status(_movie(), "watchlist")
    store.attach_events(1, [_event("2099-01-01"), _event("2099-02-01", "Other")])

    store.attach_events(1, [_event("2099-03-01")])

    entry = store.get(1)
    assert entry is not None and entry.events is not None
    assert [event.date for event in entry.events] == ["2099-03-01"]


def test_remove_missing_id_is_a_silent_no_op() -> None:
    store = CollectionStore(clock=_clock())
    notified: list[int] = []
    store.subscribe(lambda changed: notified.append(len(changed)))

    store.remove(123)

    assert notified == []


def test_listeners_see_every_effective_change() -> None:
    store = CollectionStore(clock=_clock())
    sizes: list[int] = []
    store.subscribe(lambda changed: sizes.append(len(changed)))

    store.upsert_status(_movie(1), "watchlist")
    store.upsert_status(_movie(2, "Heat"), "seen")
    store.attach_events(1, [_event()])
    store.remove(2)

    assert sizes == [1, 2, 2, 1]


def test_replace_all_keeps_last_entry_per_id() -> None:
    store = CollectionStore.load(
        [
            {"id": 1, "kind": "movie", "title": "First", "status": "seen"},
            {"id": 1, "kind": "movie", "title": "Second", "status": "watchlist"},
            {"id": 2, "kind": "series", "title": "Show", "status": "seen"},
        ]
    )

    entry = store.get(1)
    assert len(store) == 2
    assert entry is not None and entry.title == "Second"


def test_dump_and_load_preserve_entries() -> None:
    store = CollectionStore(clock=_clock())
    store.upsert_status(_movie(1), "watchlist")
    store.attach_events(1, [_event()])
    store.upsert_status(_movie(2, "Heat"), "seen")

    reloaded = CollectionStore.load(store.dump())

    assert reloaded.entries() == store.entries()
