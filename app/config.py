"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AliasChoices, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

Language = Literal["en", "fr"]

SUPPORTED_LANGUAGES: tuple[str, ...] = ("en", "fr")


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="GlassFlix", alias="APP_NAME")
    server_host: str = Field(default="127.0.0.1", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )

    gemini_api_key: str | None = Field(
        default=None,
        alias="GEMINI_API_KEY",
        validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY"),
    )
    gemini_model: str = Field(default="gemini-2.5-flash", alias="GEMINI_MODEL")
    gemini_api_url: HttpUrl = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="GEMINI_API_URL",
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./glassflix.db", alias="DATABASE_URL"
    )

    default_language: Language = Field(default="en", alias="DEFAULT_LANGUAGE")
    agenda_timezone: str = Field(default="UTC", alias="AGENDA_TIMEZONE")

    search_min_length: int = Field(default=3, alias="SEARCH_MIN_LENGTH", ge=1, le=50)
    search_debounce_seconds: float = Field(
        default=0.5, alias="SEARCH_DEBOUNCE_SECONDS", ge=0, le=10
    )

    recommendation_history_limit: int = Field(
        default=10, alias="RECOMMENDATION_HISTORY_LIMIT", ge=1, le=100
    )
    recommendation_min_seen: int = Field(
        default=3, alias="RECOMMENDATION_MIN_SEEN", ge=0, le=100
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("default_language", mode="before")
    @classmethod
    def _normalise_language(cls, value: object) -> object:
        """Accept locale-style values such as ``fr-FR`` for the language."""

        if value is None or value == "":
            return "en"
        if isinstance(value, str):
            return value.strip().lower().split("-", 1)[0]
        return value

    @field_validator("agenda_timezone", mode="before")
    @classmethod
    def _normalise_timezone(cls, value: object) -> object:
        if value is None:
            return "UTC"
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return "UTC"
            if stripped.lower() == "local":
                return "local"
            if stripped.upper() == "UTC":
                return "UTC"
            try:
                ZoneInfo(stripped)
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise ValueError(f"Unknown agenda timezone: {stripped}") from exc
            return stripped
        return value

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", populate_by_name=True
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
