"""Client for the catalog queries served by The Movie Database (TMDB)."""

from __future__ import annotations

import logging
from typing import Any, Literal

import httpx

from ..config import Settings
from ..models import MediaDetail, MediaKind, MediaRecord, SeasonDetail, normalize_results

logger = logging.getLogger(__name__)

POSTER_BASE_URL = "https://image.tmdb.org/t/p/w500"
BACKDROP_BASE_URL = "https://image.tmdb.org/t/p/original"
POSTER_PLACEHOLDER_URL = "https://picsum.photos/500/750?blur=2"
BACKDROP_PLACEHOLDER_URL = "https://picsum.photos/1920/1080?blur=2"

TrendingWindow = Literal["day", "week"]

_DETAIL_APPENDS = "credits,videos,watch/providers"


def tmdb_media_type(kind: MediaKind) -> str:
    return "movie" if kind == "movie" else "tv"


def build_image_url(path: str | None, *, backdrop: bool = False) -> str:
    """Return a full image URL, or a placeholder when the path is missing."""

    if not path:
        return BACKDROP_PLACEHOLDER_URL if backdrop else POSTER_PLACEHOLDER_URL
    if path.startswith("http"):
        return path
    return f"{BACKDROP_BASE_URL if backdrop else POSTER_BASE_URL}{path}"


class TMDBClient:
    """Catalog lookups that never raise: failures degrade to empty results."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    async def trending(self, locale: str = "en-US") -> list[MediaRecord]:
        """Weekly trending movies and shows, people excluded."""

        data = await self._get("/trending/all/week", {"language": locale})
        return normalize_results(self._results(data))

    async def trending_by_kind(
        self,
        kind: MediaKind,
        window: TrendingWindow = "day",
        locale: str = "en-US",
    ) -> list[MediaRecord]:
        media_type = tmdb_media_type(kind)
        data = await self._get(f"/trending/{media_type}/{window}", {"language": locale})
        return normalize_results(self._results(data), kind=kind)

    async def discover(
        self, kind: MediaKind, country_code: str, locale: str = "en-US"
    ) -> list[MediaRecord]:
        """Most popular titles produced in the given origin country."""

        media_type = tmdb_media_type(kind)
        params = {
            "language": locale,
            "sort_by": "popularity.desc",
            "with_origin_country": country_code.upper(),
            "include_adult": "false",
            "page": 1,
        }
        data = await self._get(f"/discover/{media_type}", params)
        return normalize_results(self._results(data), kind=kind)

    async def search_multi(self, query: str, locale: str = "en-US") -> list[MediaRecord]:
        """Search movies and shows; results without artwork are dropped."""

        if not query.strip():
            return []
        params = {"query": query, "language": locale, "include_adult": "false"}
        data = await self._get("/search/multi", params)
        return normalize_results(self._results(data), require_artwork=True)

    async def media_detail(
        self, media_id: int, kind: MediaKind, locale: str = "en-US"
    ) -> MediaDetail | None:
        """Full detail for one title.

        The detail endpoint omits ``media_type``, so the requested kind is
        injected into the record.
        """

        data = await self._get(
            f"/{tmdb_media_type(kind)}/{media_id}",
            {"language": locale, "append_to_response": _DETAIL_APPENDS},
        )
        if not isinstance(data, dict):
            return None
        record = MediaDetail.from_catalog_payload(data, kind=kind)
        if not isinstance(record, MediaDetail):
            return None
        return record

    async def season_detail(
        self, media_id: int, season_number: int, locale: str = "en-US"
    ) -> SeasonDetail | None:
        data = await self._get(
            f"/tv/{media_id}/season/{season_number}", {"language": locale}
        )
        if not isinstance(data, dict):
            return None
        try:
            return SeasonDetail.model_validate(data)
        except ValueError as exc:
            logger.warning(
                "Unexpected TMDB season payload for %s S%s: %s",
                media_id,
                season_number,
                exc,
            )
            return None

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        if not self._settings.tmdb_api_key:
            logger.warning("TMDB API key missing, skipping request to %s", path)
            return None
        query = {**params, "api_key": self._settings.tmdb_api_key}
        try:
            response = await self._client.get(path, params=query)
        except httpx.HTTPError as exc:
            logger.warning("TMDB request to %s failed: %s", path, exc)
            return None
        if response.status_code >= 400:
            logger.warning(
                "TMDB request to %s failed with %s: %s",
                path,
                response.status_code,
                response.text,
            )
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning("Unexpected non-JSON TMDB response for %s", path)
            return None

    @staticmethod
    def _results(data: Any) -> list[Any]:
        if not isinstance(data, dict):
            return []
        results = data.get("results")
        if not isinstance(results, list):
            return []
        return results
