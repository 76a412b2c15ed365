"""Tests for agenda event resolution and the flattened agenda view."""

from __future__ import annotations

import asyncio

from app.models import (
    AgendaEvent,
    CollectionEntry,
    MediaDetail,
    MediaKind,
    MediaRecord,
    SeasonDetail,
)
from app.services.agenda import EventResolver, project_agenda

TODAY = "2030-06-15"


class StubCatalog:
    """Series lookups served from canned payloads."""

    def __init__(
        self,
        detail: dict | None = None,
        season: dict | None = None,
        *,
        fail: bool = False,
    ) -> None:
        self._detail = detail
        self._season = season
        self._fail = fail
        self.detail_calls: list[tuple[int, str]] = []
        self.season_calls: list[tuple[int, int]] = []

    async def media_detail(
        self, media_id: int, kind: MediaKind, locale: str
    ) -> MediaDetail | None:
        self.detail_calls.append((media_id, locale))
        if self._fail:
            raise RuntimeError("catalog unavailable")
        if self._detail is None:
            return None
        return MediaDetail.from_catalog_payload({"id": media_id, **self._detail}, kind=kind)

    async def season_detail(
        self, media_id: int, season_number: int, locale: str
    ) -> SeasonDetail | None:
        self.season_calls.append((media_id, season_number))
        if self._season is None:
            return None
        return SeasonDetail.model_validate(self._season)


def _resolver(catalog: StubCatalog) -> EventResolver:
    return EventResolver(catalog, lambda: TODAY)


def _season_payload() -> dict:
    return {
        "season_number": 2,
        "episodes": [
            {"season_number": 2, "episode_number": 1, "air_date": "2030-06-01", "name": "Old"},
            {"season_number": 2, "episode_number": 2, "air_date": TODAY, "name": "Today"},
            {"season_number": 2, "episode_number": 3, "air_date": "2030-06-22", "name": "Next"},
            {"season_number": 2, "episode_number": 4, "air_date": None, "name": "TBA"},
        ],
    }


def test_future_movie_yields_exactly_one_release_event() -> None:
    record = MediaRecord(id=1, kind="movie", title="Future", primary_date="2099-01-01")

    events = asyncio.run(_resolver(StubCatalog()).resolve(record, locale="en-US"))

    assert events == [AgendaEvent(date="2099-01-01", label="Movie Release")]


def test_released_or_undated_movie_yields_nothing() -> None:
    resolver = _resolver(StubCatalog())
    released = MediaRecord(id=1, kind="movie", title="Past", primary_date="2001-01-01")
    undated = MediaRecord(id=2, kind="movie", title="Unknown")

    assert asyncio.run(resolver.resolve(released, locale="en-US")) == []
    assert asyncio.run(resolver.resolve(undated, locale="en-US")) == []


def test_movie_releasing_today_is_included() -> None:
    record = MediaRecord(id=1, kind="movie", title="Today", primary_date=TODAY)

    events = asyncio.run(_resolver(StubCatalog()).resolve(record, locale="en-US"))

    assert [event.date for event in events] == [TODAY]


def test_series_events_cover_remaining_episodes_of_next_season() -> None:
    catalog = StubCatalog(
        detail={
            "name": "Show",
            "next_episode_to_air": {"season_number": 2, "episode_number": 2},
        },
        season=_season_payload(),
    )
    record = MediaRecord(id=7, kind="series", title="Show")

    events = asyncio.run(_resolver(catalog).resolve(record, locale="fr-FR"))

    assert [(event.date, event.label, event.subtitle) for event in events] == [
        (TODAY, "S2E2", "Today"),
        ("2030-06-22", "S2E3", "Next"),
    ]
    assert catalog.detail_calls == [(7, "fr-FR")]
    assert catalog.season_calls == [(7, 2)]


def test_series_without_next_episode_yields_nothing() -> None:
    catalog = StubCatalog(detail={"name": "Ended"}, season=_season_payload())
    record = MediaRecord(id=8, kind="series", title="Ended")

    events = asyncio.run(_resolver(catalog).resolve(record, locale="en-US"))

    assert events == []
    assert catalog.season_calls == []


def test_loaded_series_detail_skips_the_detail_lookup() -> None:
    catalog = StubCatalog(season=_season_payload())
    detail = MediaDetail.from_catalog_payload(
        {
            "id": 9,
            "name": "Loaded",
            "seasons": [{"season_number": 2}],
            "next_episode_to_air": {"season_number": 2, "episode_number": 3},
        },
        kind="series",
    )
    assert detail is not None

    events = asyncio.run(_resolver(catalog).resolve(detail, locale="en-US"))

    assert catalog.detail_calls == []
    assert [event.label for event in events] == ["S2E2", "S2E3"]


def test_posted_series_without_next_episode_key_is_looked_up() -> None:
    catalog = StubCatalog(
        detail={"name": "S", "next_episode_to_air": {"season_number": 2, "episode_number": 2}},
        season=_season_payload(),
    )
    posted = MediaDetail.from_catalog_payload({"id": 7, "name": "S", "seasons": []}, kind="series")
    assert posted is not None
    assert posted.has_full_detail is False

    events = asyncio.run(_resolver(catalog).resolve(posted, locale="en-US"))

    assert catalog.detail_calls == [(7, "en-US")]
    assert [event.label for event in events] == ["S2E2", "S2E3"]


def test_explicit_null_next_episode_counts_as_loaded_detail() -> None:
    catalog = StubCatalog(detail={"name": "S"}, season=_season_payload())
    ended = MediaDetail.from_catalog_payload(
        {"id": 8, "name": "Ended", "seasons": [], "next_episode_to_air": None}, kind="series"
    )
    assert ended is not None
    assert ended.has_full_detail is True

    events = asyncio.run(_resolver(catalog).resolve(ended, locale="en-US"))

    assert events == []
    assert catalog.detail_calls == []

def test_lookup_failure_yields_nothing() -> None:
    record = MediaRecord(id=10, kind="series", title="Broken")

    events = asyncio.run(_resolver(StubCatalog(fail=True)).resolve(record, locale="en-US"))

    assert events == []


def _entry(media_id: int, status: str, events: list[dict] | None) -> CollectionEntry:
    return CollectionEntry(
        id=media_id,
        kind="series",
        title=f"Title {media_id}",
        status=status,
        added_at=media_id,
        events=events,
    )


def test_agenda_is_flattened_filtered_and_sorted_by_date() -> None:
    entries = [
        _entry(
            1,
            "watchlist",
            [
                {"date": "2030-07-01", "label": "S1E2"},
                {"date": "2030-06-01", "label": "S1E1"},
            ],
        ),
        _entry(2, "watchlist", [{"date": "2030-06-20", "label": "Movie Release"}]),
        _entry(3, "seen", None),
        _entry(4, "watchlist", None),
    ]

    items = project_agenda(entries, TODAY)

    assert [item.uid for item in items] == [
        "2-2030-06-20-Movie Release",
        "1-2030-07-01-S1E2",
    ]
    assert all(item.event.date >= TODAY for item in items)


def test_agenda_keeps_encounter_order_for_equal_dates() -> None:
    entries = [
        _entry(1, "watchlist", [{"date": "2030-07-01", "label": "A"}]),
        _entry(2, "watchlist", [{"date": "2030-07-01", "label": "B"}]),
        _entry(3, "watchlist", [{"date": "2030-06-30", "label": "C"}]),
    ]

    items = project_agenda(entries, TODAY)

    assert [item.event.label for item in items] == ["C", "A", "B"]


def test_agenda_payload_pairs_entry_and_event() -> None:
    items = project_agenda(
        [_entry(5, "watchlist", [{"date": TODAY, "label": "S1E1"}])], TODAY
    )

    payload = items[0].to_payload()

    assert payload["uid"] == f"5-{TODAY}-S1E1"
    assert payload["item"]["id"] == 5
    assert payload["event"] == {"date": TODAY, "label": "S1E1"}
