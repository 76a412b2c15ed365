"""Entry point for the FastAPI-powered GlassFlix companion API."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .config import Language, settings
from .database import Database
from .models import CollectionStatus, MediaDetail, MediaKind, MediaRecord
from .services.auth import AuthService
from .services.gemini import GeminiClient
from .services.library import InvalidImportError, LibraryService
from .services.tmdb import TMDBClient, build_image_url
from .services.views import SortKey, SortOrder
from .storage import BlobStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class Credentials(BaseModel):
    username: str = Field(min_length=1, max_length=120)
    password: str = Field(min_length=1)


class LanguageUpdate(BaseModel):
    language: Language


class StatusUpdate(BaseModel):
    status: CollectionStatus
    item: dict[str, Any] | None = None


class SortSelection(BaseModel):
    key: SortKey


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    tmdb_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.tmdb_api_url),
            timeout=httpx.Timeout(15.0, connect=5.0),
        )
    )
    gemini_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            base_url=str(settings.gemini_api_url),
            timeout=httpx.Timeout(60.0, connect=10.0),
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    blobs = BlobStore(database.session_factory)
    library_service = LibraryService(
        settings,
        TMDBClient(settings, tmdb_http_client),
        GeminiClient(settings, gemini_http_client),
        AuthService(blobs),
        blobs,
    )

    fastapi_app.state.library_service = library_service
    fastapi_app.state.database = database
    await library_service.start()
    logger.info(
        "%s ready: %d tracked titles (%s scope)",
        settings.app_name,
        len(library_service.store),
        "user" if library_service.user is not None else "guest",
    )

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await library_service.stop()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Personal watchlist, agenda and AI picks on top of TMDB",
        version=__version__,
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_library_service(app: FastAPI) -> LibraryService:
    service = getattr(app.state, "library_service", None)
    if not isinstance(service, LibraryService):
        raise RuntimeError("Library service not initialised")
    return service


def _session_payload(service: LibraryService) -> dict[str, Any]:
    user = service.user
    return {
        "user": {"username": user.username} if user is not None else None,
        "scope": "user" if user is not None else "guest",
        "language": service.language,
        "collectionSize": len(service.store),
    }


def _record_payload(record: MediaRecord) -> dict[str, Any]:
    """Catalog record payload with ready-to-use artwork URLs."""

    payload = record.to_payload()
    payload["posterUrl"] = build_image_url(record.poster_path)
    payload["backdropUrl"] = build_image_url(record.backdrop_path, backdrop=True)
    return payload


def _records_payload(records: list[MediaRecord]) -> list[dict[str, Any]]:
    return [_record_payload(record) for record in records]


def _record_from_item(item: dict[str, Any]) -> MediaRecord:
    record_cls = MediaDetail if "seasons" in item else MediaRecord
    record = record_cls.from_catalog_payload(item)
    if record is None:
        raise HTTPException(status_code=400, detail="Item is not a movie or series")
    return record


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/session")
    async def session_endpoint() -> dict[str, Any]:
        return _session_payload(get_library_service(fastapi_app))

    @fastapi_app.post("/api/auth/signup")
    async def signup_endpoint(credentials: Credentials) -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        result = await service.signup(credentials.username, credentials.password)
        if not result.success:
            raise HTTPException(status_code=409, detail=result.message or "Signup failed")
        return _session_payload(service)

    @fastapi_app.post("/api/auth/login")
    async def login_endpoint(credentials: Credentials) -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        result = await service.login(credentials.username, credentials.password)
        if not result.success:
            raise HTTPException(status_code=401, detail=result.message or "Login failed")
        return _session_payload(service)

    @fastapi_app.post("/api/auth/logout")
    async def logout_endpoint() -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        await service.logout()
        return _session_payload(service)

    @fastapi_app.put("/api/settings/language")
    async def language_endpoint(update: LanguageUpdate) -> dict[str, str]:
        service = get_library_service(fastapi_app)
        language = await service.set_language(update.language)
        return {"language": language}

    @fastapi_app.get("/api/discover/trending")
    async def trending_endpoint(featured: bool = False) -> list[dict[str, Any]]:
        service = get_library_service(fastapi_app)
        records = await (service.featured() if featured else service.trending())
        return _records_payload(records)

    @fastapi_app.get("/api/discover/popular")
    async def popular_endpoint(
        kind: MediaKind = "movie",
        country: str | None = Query(default=None, min_length=2, max_length=2),
    ) -> list[dict[str, Any]]:
        service = get_library_service(fastapi_app)
        return _records_payload(await service.popular(kind, country))

    @fastapi_app.get("/api/search")
    async def search_endpoint(q: str = "") -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        outcome = await service.search(q)
        return {
            "sequence": outcome.sequence,
            "query": outcome.query,
            "applied": outcome.applied,
            "results": _records_payload(outcome.results),
        }

    @fastapi_app.get("/api/media/{kind}/{media_id}")
    async def media_detail_endpoint(kind: MediaKind, media_id: int) -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        detail = await service.media_detail(media_id, kind)
        if detail is None:
            raise HTTPException(status_code=404, detail="Title not found")
        return _record_payload(detail)

    @fastapi_app.get("/api/collection")
    async def collection_endpoint(
        status: CollectionStatus = "watchlist",
        sort: SortKey | None = None,
        order: SortOrder | None = None,
    ) -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        entries = service.collection_view(status, sort, order)
        state = service.sort_state
        return {
            "status": status,
            "sort": sort or state.key,
            "order": order or state.order,
            "items": [entry.to_payload() for entry in entries],
        }

    @fastapi_app.post("/api/collection/sort")
    async def sort_endpoint(selection: SortSelection) -> dict[str, str]:
        state = get_library_service(fastapi_app).select_sort(selection.key)
        return {"sort": state.key, "order": state.order}

    @fastapi_app.post("/api/collection/{media_id}/status")
    async def status_endpoint(media_id: int, update: StatusUpdate) -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        if update.item is not None:
            record = _record_from_item({**update.item, "id": media_id})
        else:
            existing = service.store.get(media_id)
            if existing is None:
                raise HTTPException(status_code=404, detail="Item not in collection")
            record = existing
        service.tag(record, update.status)
        entry = service.store.get(media_id)
        return entry.to_payload() if entry is not None else {}

    @fastapi_app.delete("/api/collection/{media_id}")
    async def remove_endpoint(media_id: int) -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        service.remove(media_id)
        return {"removed": media_id, "collectionSize": len(service.store)}

    @fastapi_app.get("/api/collection/export")
    async def export_endpoint() -> JSONResponse:
        service = get_library_service(fastapi_app)
        filename = service.backup_filename()
        return JSONResponse(
            service.export_collection(),
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @fastapi_app.post("/api/collection/import")
    async def import_endpoint(request: Request) -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        try:
            count = service.import_collection(payload)
        except InvalidImportError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"imported": count, "message": f"Successfully imported {count} items."}

    @fastapi_app.get("/api/agenda")
    async def agenda_endpoint() -> list[dict[str, Any]]:
        service = get_library_service(fastapi_app)
        return [item.to_payload() for item in service.agenda()]

    @fastapi_app.post("/api/recommendations")
    async def recommendations_endpoint() -> dict[str, Any]:
        service = get_library_service(fastapi_app)
        outcome = await service.recommend()
        return outcome.to_payload()


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
