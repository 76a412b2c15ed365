"""Pydantic models describing catalog records and the tracked collection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .utils import ISO_DATE_RE

logger = logging.getLogger(__name__)

MediaKind = Literal["movie", "series"]
CollectionStatus = Literal["watchlist", "seen"]

MOVIE_RELEASE_LABEL = "Movie Release"
LEGACY_EVENT_LABEL = "Upcoming"

_KIND_ALIASES: dict[str, str] = {
    "movie": "movie",
    "tv": "series",
    "series": "series",
    "show": "series",
}


class _CamelModel(BaseModel):
    """Base model reading snake or camel keys and dumping camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class MediaRecord(_CamelModel):
    """A catalog item with its movie/series discriminant resolved."""

    id: int
    kind: MediaKind
    title: str = ""
    poster_path: str | None = None
    backdrop_path: str | None = None
    rating: float = 0.0
    overview: str | None = None
    primary_date: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_catalog_shape(cls, data: Any) -> Any:
        """Map catalog-native keys (``media_type``, ``name``...) onto fields."""

        if not isinstance(data, dict):
            return data
        payload = dict(data)

        kind = payload.get("kind")
        if not kind:
            media_type = payload.get("media_type") or payload.get("mediaType")
            if media_type:
                kind = media_type
            elif payload.get("title"):
                kind = "movie"
            else:
                kind = "series"
        payload["kind"] = _KIND_ALIASES.get(str(kind).lower(), kind)

        if not payload.get("title") and payload.get("name"):
            payload["title"] = payload["name"]
        if "rating" not in payload and "vote_average" in payload:
            payload["rating"] = payload["vote_average"]
        if "primary_date" not in payload and "primaryDate" not in payload:
            if payload["kind"] == "movie":
                payload["primary_date"] = payload.get("release_date")
            else:
                payload["primary_date"] = payload.get("first_air_date")
        return payload

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, value: object) -> object:
        if value is None:
            return ""
        return value

    @field_validator("rating", mode="before")
    @classmethod
    def _coerce_rating(cls, value: object) -> object:
        if value is None or value == "":
            return 0.0
        return value

    @field_validator("primary_date", "poster_path", "backdrop_path", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @classmethod
    def from_catalog_payload(
        cls, payload: object, *, kind: MediaKind | None = None
    ) -> "MediaRecord | None":
        """Normalize a raw catalog result, returning ``None`` for non-media."""

        if not isinstance(payload, dict):
            return None
        if payload.get("media_type") == "person":
            return None
        data = {**payload}
        if kind is not None:
            data["kind"] = kind
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            logger.debug("Skipping malformed catalog payload %s: %s", payload.get("id"), exc)
            return None

    def record_fields(self) -> dict[str, Any]:
        """Return only the base record fields, whatever the concrete subclass."""

        return {name: getattr(self, name) for name in MediaRecord.model_fields}


def normalize_results(
    payloads: Iterable[object],
    *,
    kind: MediaKind | None = None,
    require_artwork: bool = False,
) -> list[MediaRecord]:
    """Normalize a catalog result page, dropping people and malformed rows.

    ``kind`` is applied to every row for endpoints that omit ``media_type``.
    """

    records: list[MediaRecord] = []
    for payload in payloads:
        record = MediaRecord.from_catalog_payload(payload, kind=kind)
        if record is None:
            continue
        if require_artwork and not (record.poster_path or record.backdrop_path):
            continue
        records.append(record)
    return records


class Episode(_CamelModel):
    """A single episode as returned by the season and detail endpoints."""

    season_number: int
    episode_number: int
    name: str | None = None
    overview: str | None = None
    air_date: str | None = None
    still_path: str | None = None


class SeasonSummary(_CamelModel):
    season_number: int
    name: str | None = None
    episode_count: int | None = None
    air_date: str | None = None
    poster_path: str | None = None


class SeasonDetail(_CamelModel):
    """Full season payload including its ordered episode list."""

    season_number: int
    name: str | None = None
    overview: str | None = None
    air_date: str | None = None
    episodes: list[Episode] = Field(default_factory=list)

    @field_validator("episodes", mode="before")
    @classmethod
    def _drop_malformed_episodes(cls, value: object) -> object:
        if value is None:
            return []
        if not isinstance(value, list):
            return value
        return [
            entry
            for entry in value
            if isinstance(entry, dict)
            and entry.get("season_number") is not None
            and entry.get("episode_number") is not None
        ]


class CastMember(_CamelModel):
    name: str
    character: str | None = None
    profile_path: str | None = None


class MediaDetail(MediaRecord):
    """A catalog record enriched with detail-only fields."""

    tagline: str | None = None
    runtime: int | None = None
    number_of_seasons: int | None = None
    genres: list[str] = Field(default_factory=list)
    seasons: list[SeasonSummary] | None = None
    next_episode_to_air: Episode | None = None
    cast: list[CastMember] = Field(default_factory=list)
    trailer_key: str | None = None
    providers: dict[str, list[str]] = Field(default_factory=dict)
    # Whether the payload carried the next-episode key at all, even as null.
    next_episode_known: bool = Field(default=False, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _flatten_appended_resources(cls, data: Any) -> Any:
        """Flatten ``append_to_response`` sections into plain fields."""

        if not isinstance(data, dict):
            return data
        payload = dict(data)
        payload["next_episode_known"] = bool(
            payload.get("next_episode_known")
            or "next_episode_to_air" in payload
            or "nextEpisodeToAir" in payload
        )

        genres = payload.get("genres")
        if isinstance(genres, list):
            names: list[str] = []
            for genre in genres:
                if isinstance(genre, dict) and genre.get("name"):
                    names.append(str(genre["name"]))
                elif isinstance(genre, str) and genre:
                    names.append(genre)
            payload["genres"] = names

        credits = payload.get("credits")
        if isinstance(credits, dict) and "cast" not in payload:
            cast = credits.get("cast") or []
            payload["cast"] = [
                member for member in cast if isinstance(member, dict) and member.get("name")
            ][:12]

        videos = payload.get("videos")
        if isinstance(videos, dict) and "trailer_key" not in payload:
            for video in videos.get("results") or []:
                if (
                    isinstance(video, dict)
                    and video.get("site") == "YouTube"
                    and video.get("type") == "Trailer"
                    and video.get("key")
                ):
                    payload["trailer_key"] = video["key"]
                    break

        watch = payload.get("watch/providers")
        if isinstance(watch, dict) and "providers" not in payload:
            providers: dict[str, list[str]] = {}
            for country, offers in (watch.get("results") or {}).items():
                if country not in {"US", "FR"} or not isinstance(offers, dict):
                    continue
                names: list[str] = []
                for offer_type in ("flatrate", "rent", "buy"):
                    for provider in offers.get(offer_type) or []:
                        name = provider.get("provider_name") if isinstance(provider, dict) else None
                        if name and name not in names:
                            names.append(name)
                if names:
                    providers[country] = names
            payload["providers"] = providers
        return payload

    @property
    def has_full_detail(self) -> bool:
        """Whether the season list and next-episode pointer are already loaded."""

        return (
            self.kind == "series"
            and self.seasons is not None
            and self.next_episode_known
        )


class AgendaEvent(_CamelModel):
    """A future date-bound occurrence tied to a collection entry."""

    date: str
    label: str
    subtitle: str | None = None
    description: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_legacy_shape(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        payload = dict(data)
        if "label" not in payload and "title" in payload:
            payload["label"] = payload["title"]
        if "subtitle" not in payload and "episodeTitle" in payload:
            payload["subtitle"] = payload["episodeTitle"]
        if "description" not in payload and "overview" in payload:
            payload["description"] = payload["overview"]
        return payload

    @field_validator("date")
    @classmethod
    def _require_iso_date(cls, value: str) -> str:
        if not ISO_DATE_RE.match(value) or len(value) != 10:
            raise ValueError("Agenda dates must use the YYYY-MM-DD format")
        return value


class CollectionEntry(MediaRecord):
    """A catalog record tagged by the user with a tracking status."""

    status: CollectionStatus
    added_at: int = 0
    events: list[AgendaEvent] | None = None

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy_agenda(cls, data: Any) -> Any:
        """Normalize older persisted agenda fields into ``events`` once."""

        if not isinstance(data, dict):
            return data
        payload = dict(data)
        legacy_events = payload.pop("agendaEvents", None)
        legacy_date = payload.pop("agendaDate", None)
        legacy_title = payload.pop("agendaTitle", None)
        if payload.get("events") is None:
            if legacy_events:
                payload["events"] = legacy_events
            elif legacy_date:
                payload["events"] = [
                    {
                        "date": legacy_date,
                        "label": legacy_title or LEGACY_EVENT_LABEL,
                        "subtitle": payload.get("title") or payload.get("name"),
                        "description": payload.get("overview"),
                    }
                ]
        return payload

    @model_validator(mode="after")
    def _events_only_on_watchlist(self) -> "CollectionEntry":
        if self.status != "watchlist":
            self.events = None
        return self

    @classmethod
    def from_record(
        cls, record: MediaRecord, *, status: CollectionStatus, added_at: int
    ) -> "CollectionEntry":
        return cls(**record.record_fields(), status=status, added_at=added_at)


class UserRecord(_CamelModel):
    """A locally stored account with its own collection."""

    username: str
    password: str
    collection: list[CollectionEntry] = Field(default_factory=list)

    @field_validator("collection", mode="before")
    @classmethod
    def _skip_unreadable_entries(cls, value: object) -> object:
        return parse_entries(value)


class Recommendation(_CamelModel):
    title: str
    reason: str = ""


@dataclass(slots=True)
class AuthResult:
    """Outcome of a signup or login attempt."""

    success: bool
    user: UserRecord | None = None
    message: str | None = None


@dataclass(slots=True)
class AgendaItem:
    """One agenda row: an entry paired with one of its upcoming events."""

    uid: str
    entry: CollectionEntry
    event: AgendaEvent

    def to_payload(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "item": self.entry.to_payload(),
            "event": self.event.to_payload(),
        }


def parse_entries(payload: Any) -> list[CollectionEntry]:
    """Validate persisted entries, skipping rows that cannot be read."""

    if not isinstance(payload, list):
        return []
    entries: list[CollectionEntry] = []
    for raw in payload:
        if isinstance(raw, CollectionEntry):
            entries.append(raw)
            continue
        if not isinstance(raw, dict):
            continue
        try:
            entries.append(CollectionEntry.model_validate(raw))
        except ValidationError as exc:
            logger.warning(
                "Skipping unreadable collection entry %s: %s", raw.get("id"), exc
            )
    return entries
