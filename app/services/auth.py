"""Local account records and the current-session pointer.

Credentials are stored as entered. This service only separates one person's
collections on a shared machine; it is not a security boundary.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from ..models import AuthResult, CollectionEntry, UserRecord
from ..storage import CURRENT_USER_KEY, USERS_KEY, BlobStore

logger = logging.getLogger(__name__)

DUPLICATE_USERNAME_MESSAGE = "Username already exists"
INVALID_CREDENTIALS_MESSAGE = "Invalid username or password"
MISSING_CREDENTIALS_MESSAGE = "Username and password are required"


class AuthService:
    """Signup, login and session recovery backed by the blob store."""

    def __init__(self, blobs: BlobStore):
        self._blobs = blobs
        # Guards read-modify-write cycles on the shared users record.
        self._users_lock = asyncio.Lock()

    async def signup(self, username: str, password: str) -> AuthResult:
        username = username.strip()
        if not username or not password:
            return AuthResult(success=False, message=MISSING_CREDENTIALS_MESSAGE)

        async with self._users_lock:
            users = await self._load_users()
            if any(user.username.lower() == username.lower() for user in users):
                return AuthResult(success=False, message=DUPLICATE_USERNAME_MESSAGE)

            user = UserRecord(username=username, password=password, collection=[])
            users.append(user)
            await self._save_users(users)
        logger.info("Created local account %s", username)
        return AuthResult(success=True, user=user)

    async def login(self, username: str, password: str) -> AuthResult:
        users = await self._load_users()
        lowered = username.strip().lower()
        for user in users:
            if user.username.lower() == lowered and user.password == password:
                return AuthResult(success=True, user=user)
        return AuthResult(success=False, message=INVALID_CREDENTIALS_MESSAGE)

    async def current_session(self) -> UserRecord | None:
        """Return the session user, re-read from the users record."""

        pointer = await self._blobs.get(CURRENT_USER_KEY)
        if not isinstance(pointer, dict):
            return None
        username = pointer.get("username")
        if not isinstance(username, str):
            return None
        for user in await self._load_users():
            if user.username == username:
                return user
        logger.info("Discarding session for unknown user %s", username)
        return None

    async def set_session(self, user: UserRecord) -> None:
        await self._blobs.put(CURRENT_USER_KEY, {"username": user.username})

    async def clear_session(self) -> None:
        await self._blobs.delete(CURRENT_USER_KEY)

    async def persist_user_collection(
        self, username: str, collection: Sequence[CollectionEntry] | list[dict[str, Any]]
    ) -> None:
        payload = [
            entry.to_payload() if isinstance(entry, CollectionEntry) else entry
            for entry in collection
        ]
        async with self._users_lock:
            raw_users = await self._blobs.get(USERS_KEY, [])
            if not isinstance(raw_users, list):
                raw_users = []
            for raw in raw_users:
                if isinstance(raw, dict) and raw.get("username") == username:
                    raw["collection"] = payload
                    await self._blobs.put(USERS_KEY, raw_users)
                    return
        logger.warning("Cannot persist collection for unknown user %s", username)

    async def _load_users(self) -> list[UserRecord]:
        raw_users = await self._blobs.get(USERS_KEY, [])
        if not isinstance(raw_users, list):
            return []
        users: list[UserRecord] = []
        for raw in raw_users:
            if not isinstance(raw, dict):
                continue
            try:
                users.append(UserRecord.model_validate(raw))
            except ValueError as exc:
                logger.warning("Skipping unreadable user record: %s", exc)
        return users

    async def _save_users(self, users: Sequence[UserRecord]) -> None:
        await self._blobs.put(USERS_KEY, [user.to_payload() for user in users])
