"""Upcoming-event resolution and the flattened agenda view."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Protocol

from ..models import (
    MOVIE_RELEASE_LABEL,
    AgendaEvent,
    AgendaItem,
    CollectionEntry,
    MediaDetail,
    MediaKind,
    MediaRecord,
    SeasonDetail,
)

logger = logging.getLogger(__name__)


class SeriesCatalog(Protocol):
    """The catalog lookups the resolver depends on."""

    async def media_detail(
        self, media_id: int, kind: MediaKind, locale: str
    ) -> MediaDetail | None: ...

    async def season_detail(
        self, media_id: int, season_number: int, locale: str
    ) -> SeasonDetail | None: ...


class EventResolver:
    """Compute the agenda events of a record that was just watchlisted."""

    def __init__(self, catalog: SeriesCatalog, today: Callable[[], str]):
        self._catalog = catalog
        self._today = today

    async def resolve(self, record: MediaRecord, *, locale: str) -> list[AgendaEvent]:
        """Return upcoming events; any failure yields an empty list."""

        try:
            if record.kind == "movie":
                return self._movie_events(record)
            return await self._series_events(record, locale=locale)
        except Exception:
            logger.exception("Failed to resolve agenda events for %s", record.id)
            return []

    def _movie_events(self, record: MediaRecord) -> list[AgendaEvent]:
        release_date = record.primary_date
        if not release_date or release_date[:10] < self._today():
            return []
        return [
            AgendaEvent(
                date=release_date[:10],
                label=MOVIE_RELEASE_LABEL,
                description=record.overview,
            )
        ]

    async def _series_events(
        self, record: MediaRecord, *, locale: str
    ) -> list[AgendaEvent]:
        detail: MediaDetail | None = None
        if isinstance(record, MediaDetail) and record.has_full_detail:
            detail = record
        else:
            detail = await self._catalog.media_detail(record.id, "series", locale)
        if detail is None or detail.next_episode_to_air is None:
            return []

        season_number = detail.next_episode_to_air.season_number
        season = await self._catalog.season_detail(record.id, season_number, locale)
        if season is None:
            return []

        today = self._today()
        return [
            AgendaEvent(
                date=episode.air_date[:10],
                label=f"S{episode.season_number}E{episode.episode_number}",
                subtitle=episode.name,
                description=episode.overview,
            )
            for episode in season.episodes
            if episode.air_date and episode.air_date[:10] >= today
        ]


def project_agenda(entries: Iterable[CollectionEntry], today: str) -> list[AgendaItem]:
    """Flatten watchlist events dated today or later, oldest first.

    ``sorted`` is stable, so events sharing a date keep encounter order.
    """

    items: list[AgendaItem] = []
    for entry in entries:
        if entry.status != "watchlist" or not entry.events:
            continue
        for event in entry.events:
            if event.date < today:
                continue
            items.append(
                AgendaItem(
                    uid=f"{entry.id}-{event.date}-{event.label}",
                    entry=entry,
                    event=event,
                )
            )
    return sorted(items, key=lambda item: item.event.date)
