"""Tests for local accounts and the session pointer."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from app.database import Database
from app.services.auth import AuthService
from app.storage import CURRENT_USER_KEY, USERS_KEY, BlobStore


@asynccontextmanager
async def open_blobs(path) -> AsyncIterator[BlobStore]:
    database = Database(f"sqlite+aiosqlite:///{path}")
    await database.create_all()
    try:
        yield BlobStore(database.session_factory)
    finally:
        await database.dispose()


def test_signup_then_login_is_case_insensitive(tmp_path) -> None:
    async def runner() -> None:
        async with open_blobs(tmp_path / "auth.db") as blobs:
            auth = AuthService(blobs)
            created = await auth.signup("  Alice ", "secret")
            logged_in = await auth.login("ALICE", "secret")

            assert created.success is True
            assert created.user is not None and created.user.username == "Alice"
            assert logged_in.success is True
            assert logged_in.user is not None and logged_in.user.collection == []

    asyncio.run(runner())


def test_duplicate_username_is_rejected(tmp_path) -> None:
    async def runner() -> None:
        async with open_blobs(tmp_path / "auth.db") as blobs:
            auth = AuthService(blobs)
            await auth.signup("bob", "one")
            result = await auth.signup("BOB", "two")

            assert result.success is False
            assert result.message == "Username already exists"
            assert len(await blobs.get(USERS_KEY)) == 1

    asyncio.run(runner())


def test_wrong_password_and_blank_fields_fail(tmp_path) -> None:
    async def runner() -> None:
        async with open_blobs(tmp_path / "auth.db") as blobs:
            auth = AuthService(blobs)
            await auth.signup("carol", "right")

            wrong = await auth.login("carol", "wrong")
            unknown = await auth.login("dave", "right")
            blank = await auth.signup("   ", "pw")

            assert wrong.success is False
            assert wrong.message == "Invalid username or password"
            assert unknown.success is False
            assert blank.success is False

    asyncio.run(runner())


def test_session_pointer_is_revalidated(tmp_path) -> None:
    async def runner() -> None:
        async with open_blobs(tmp_path / "auth.db") as blobs:
            auth = AuthService(blobs)
            created = await auth.signup("erin", "pw")
            assert created.user is not None

            await auth.set_session(created.user)
            restored = await auth.current_session()
            assert restored is not None and restored.username == "erin"

            await blobs.put(CURRENT_USER_KEY, {"username": "ghost"})
            assert await auth.current_session() is None

            await auth.clear_session()
            assert await blobs.get(CURRENT_USER_KEY) is None
            assert await auth.current_session() is None

    asyncio.run(runner())


def test_persist_user_collection_updates_only_that_user(tmp_path) -> None:
    async def runner() -> None:
        async with open_blobs(tmp_path / "auth.db") as blobs:
            auth = AuthService(blobs)
            await auth.signup("frank", "pw")
            await auth.signup("grace", "pw")

            await auth.persist_user_collection(
                "grace", [{"id": 1, "kind": "movie", "title": "Heat", "status": "seen"}]
            )
            await auth.persist_user_collection("nobody", [])

            frank = await auth.login("frank", "pw")
            grace = await auth.login("grace", "pw")
            assert frank.user is not None and frank.user.collection == []
            assert grace.user is not None
            assert [entry.id for entry in grace.user.collection] == [1]

    asyncio.run(runner())
