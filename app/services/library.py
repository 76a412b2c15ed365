"""High level orchestration of the tracked collection and its derived views."""

from __future__ import annotations

import asyncio
import logging
import random
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

from ..config import SUPPORTED_LANGUAGES, Settings
from ..models import (
    AgendaItem,
    AuthResult,
    CollectionEntry,
    CollectionStatus,
    MediaDetail,
    MediaKind,
    MediaRecord,
    Recommendation,
    UserRecord,
    parse_entries,
)
from ..storage import LANGUAGE_KEY, BlobStore
from ..utils import today_iso, tmdb_locale
from .agenda import EventResolver, project_agenda
from .auth import AuthService
from .collection import CollectionStore
from .gemini import GeminiClient
from .persistence import PersistenceBridge
from .tmdb import TMDBClient
from .views import SortKey, SortOrder, SortState, build_view

logger = logging.getLogger(__name__)

FEATURED_COUNT = 4
INVALID_IMPORT_MESSAGE = "Invalid file format: expected a JSON array of items."


class InvalidImportError(ValueError):
    """Raised when an import payload is not a JSON array."""


@dataclass(slots=True)
class SearchOutcome:
    """Result of one search request and whether it became the visible one."""

    sequence: int
    query: str
    results: list[MediaRecord]
    applied: bool


@dataclass(slots=True)
class RecommendationOutcome:
    ready: bool
    seen_count: int
    recommendations: list[Recommendation]

    def to_payload(self) -> dict[str, Any]:
        return {
            "ready": self.ready,
            "seenCount": self.seen_count,
            "recommendations": [item.to_payload() for item in self.recommendations],
        }


class LibraryService:
    """Owns the application state and funnels every mutation through the store."""

    def __init__(
        self,
        settings: Settings,
        catalog: TMDBClient,
        recommender: GeminiClient,
        auth: AuthService,
        blobs: BlobStore,
    ):
        self._settings = settings
        self._catalog = catalog
        self._recommender = recommender
        self._auth = auth
        self._blobs = blobs
        self._bridge = PersistenceBridge(blobs, auth)
        self._resolver = EventResolver(catalog, self.today)
        self._language: str = settings.default_language
        self._sort = SortState()
        self._search_sequence = 0
        self._search_results: list[MediaRecord] = []
        self._enrichment_tasks: set[asyncio.Task[None]] = set()

    async def start(self) -> None:
        """Restore the language preference and the active collection."""

        stored_language = await self._blobs.get(LANGUAGE_KEY)
        if stored_language in SUPPORTED_LANGUAGES:
            self._language = stored_language
        await self._bridge.start()

    async def stop(self) -> None:
        """Cancel outstanding enrichment and flush pending writes."""

        tasks = list(self._enrichment_tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task
        await self._bridge.flush()

    @property
    def store(self) -> CollectionStore:
        return self._bridge.store

    @property
    def user(self) -> UserRecord | None:
        return self._bridge.user

    @property
    def language(self) -> str:
        return self._language

    @property
    def locale(self) -> str:
        return tmdb_locale(self._language)

    @property
    def sort_state(self) -> SortState:
        return self._sort

    @property
    def search_results(self) -> list[MediaRecord]:
        return list(self._search_results)

    def today(self) -> str:
        return today_iso(self._settings.agenda_timezone)

    async def flush(self) -> None:
        await self._bridge.flush()

    async def signup(self, username: str, password: str) -> AuthResult:
        result = await self._auth.signup(username, password)
        if result.success and result.user is not None:
            await self._bridge.login(result.user)
        return result

    async def login(self, username: str, password: str) -> AuthResult:
        # Pending writes must land before the stored collection is re-read.
        await self._bridge.flush()
        result = await self._auth.login(username, password)
        if result.success and result.user is not None:
            await self._bridge.login(result.user)
        return result

    async def logout(self) -> None:
        await self._bridge.logout()

    async def set_language(self, language: str) -> str:
        if language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language: {language}")
        self._language = language
        await self._blobs.put(LANGUAGE_KEY, language)
        return language

    def tag(
        self, record: MediaRecord, status: CollectionStatus
    ) -> asyncio.Task[None] | None:
        """Tag a record now; watchlisting also schedules agenda enrichment.

        The status change is applied before this returns. The returned task
        resolves the agenda events in the background and attaches them through
        the store's guarded operation.
        """

        store = self.store
        store.upsert_status(record, status)
        if status != "watchlist":
            return None

        task = asyncio.create_task(self._enrich(store, record, self.locale))
        self._enrichment_tasks.add(task)
        task.add_done_callback(self._enrichment_tasks.discard)
        return task

    async def _enrich(
        self, store: CollectionStore, record: MediaRecord, locale: str
    ) -> None:
        try:
            events = await self._resolver.resolve(record, locale=locale)
            if not events:
                return
            if store.attach_events(record.id, events):
                logger.info("Attached %d agenda events to %s", len(events), record.id)
        except Exception as exc:  # pragma: no cover - background safety net
            logger.exception("Agenda enrichment for %s failed: %s", record.id, exc)

    def remove(self, media_id: int) -> None:
        self.store.remove(media_id)

    def collection_view(
        self,
        status: CollectionStatus,
        sort_key: SortKey | None = None,
        sort_order: SortOrder | None = None,
    ) -> list[CollectionEntry]:
        return build_view(
            self.store.entries(),
            status,
            sort_key or self._sort.key,
            sort_order or self._sort.order,
        )

    def select_sort(self, key: SortKey) -> SortState:
        self._sort = self._sort.select(key)
        return self._sort

    def agenda(self) -> list[AgendaItem]:
        return project_agenda(self.store.entries(), self.today())

    async def search(self, query: str) -> SearchOutcome:
        """Run a search; only the latest request may replace the results."""

        self._search_sequence += 1
        sequence = self._search_sequence
        trimmed = query.strip()
        if len(trimmed) < self._settings.search_min_length:
            self._search_results = []
            return SearchOutcome(sequence=sequence, query=query, results=[], applied=True)

        if self._settings.search_debounce_seconds:
            await asyncio.sleep(self._settings.search_debounce_seconds)
            if sequence != self._search_sequence:
                return SearchOutcome(sequence=sequence, query=query, results=[], applied=False)

        results = await self._catalog.search_multi(trimmed, self.locale)
        if sequence != self._search_sequence:
            logger.debug("Discarding stale search results for %r", query)
            return SearchOutcome(sequence=sequence, query=query, results=results, applied=False)
        self._search_results = results
        return SearchOutcome(sequence=sequence, query=query, results=results, applied=True)

    async def trending(self) -> list[MediaRecord]:
        return await self._catalog.trending(self.locale)

    async def featured(self, count: int = FEATURED_COUNT) -> list[MediaRecord]:
        """A random handful of this week's trending titles."""

        items = await self.trending()
        return random.sample(items, min(count, len(items)))

    async def popular(
        self, kind: MediaKind = "movie", country: str | None = None
    ) -> list[MediaRecord]:
        """Today's trending titles, or the most popular from one country."""

        if country:
            return await self._catalog.discover(kind, country, self.locale)
        return await self._catalog.trending_by_kind(kind, "day", self.locale)

    async def media_detail(self, media_id: int, kind: MediaKind) -> MediaDetail | None:
        return await self._catalog.media_detail(media_id, kind, self.locale)

    def seen_titles(self) -> list[str]:
        titles = [
            entry.title
            for entry in self.store.entries()
            if entry.status == "seen" and entry.title
        ]
        return titles[-self._settings.recommendation_history_limit :]

    async def recommend(self) -> RecommendationOutcome:
        seen_count = sum(1 for entry in self.store.entries() if entry.status == "seen")
        if seen_count < self._settings.recommendation_min_seen:
            return RecommendationOutcome(ready=False, seen_count=seen_count, recommendations=[])
        recommendations = await self._recommender.recommend(self.seen_titles(), self._language)
        return RecommendationOutcome(
            ready=True, seen_count=seen_count, recommendations=recommendations
        )

    def export_collection(self) -> list[dict[str, Any]]:
        return self.store.dump()

    def backup_filename(self) -> str:
        return f"glassflix_backup_{self.today()}.json"

    def import_collection(self, payload: Any) -> int:
        """Replace the active collection with an imported array of entries."""

        if not isinstance(payload, list):
            raise InvalidImportError(INVALID_IMPORT_MESSAGE)
        entries = parse_entries(payload)
        self.store.replace_all(entries)
        logger.info("Imported %d collection entries", len(entries))
        return len(entries)
