"""Binding between the active collection scope and durable storage."""

from __future__ import annotations

import asyncio
import logging

from ..models import UserRecord
from ..storage import GUEST_COLLECTION_KEY, BlobStore
from .auth import AuthService
from .collection import CollectionStore

logger = logging.getLogger(__name__)


class PersistenceBridge:
    """Keep the active collection written through to its owner's storage.

    The active scope is either the guest blob or one user's record. Switching
    scope swaps the whole store; the two are never merged. Stores that were
    swapped out stop being persisted, so a late write against them is dropped
    in memory only.
    """

    def __init__(self, blobs: BlobStore, auth: AuthService):
        self._blobs = blobs
        self._auth = auth
        self._user: UserRecord | None = None
        self._store = CollectionStore()
        self._generation = 0
        self._pending: dict[str | None, CollectionStore] = {}
        self._writer: asyncio.Task[None] | None = None

    @property
    def store(self) -> CollectionStore:
        return self._store

    @property
    def user(self) -> UserRecord | None:
        return self._user

    async def start(self) -> CollectionStore:
        """Recover the last session, falling back to the guest collection."""

        user = await self._auth.current_session()
        if user is not None:
            logger.info("Restored session for %s", user.username)
            self._bind(user, CollectionStore(user.collection))
        else:
            self._bind(None, await self._load_guest())
        return self._store

    async def login(self, user: UserRecord) -> CollectionStore:
        await self.flush()
        self._bind(user, CollectionStore(user.collection))
        await self._auth.set_session(user)
        return self._store

    async def logout(self) -> CollectionStore:
        """Drop the user collection and reload the guest blob fresh."""

        await self.flush()
        guest = await self._load_guest()
        self._bind(None, guest)
        await self._auth.clear_session()
        return guest

    async def flush(self) -> None:
        """Wait until every pending write has reached storage."""

        while self._writer is not None and not self._writer.done():
            await asyncio.shield(self._writer)

    async def _load_guest(self) -> CollectionStore:
        return CollectionStore.load(await self._blobs.get(GUEST_COLLECTION_KEY, []))

    def _bind(self, user: UserRecord | None, store: CollectionStore) -> None:
        self._generation += 1
        generation = self._generation
        owner = user.username if user is not None else None

        def _on_change(changed: CollectionStore) -> None:
            if generation != self._generation:
                logger.debug("Ignoring change on a collection that is no longer active")
                return
            self._pending[owner] = changed
            self._ensure_writer()

        store.subscribe(_on_change)
        self._user = user
        self._store = store

    def _ensure_writer(self) -> None:
        if self._writer is None or self._writer.done():
            self._writer = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        # Snapshots are taken when written, so the newest state always lands last.
        while self._pending:
            owner, store = self._pending.popitem()
            try:
                await self._write(owner, store)
            except Exception as exc:  # pragma: no cover - background safety net
                logger.exception("Persisting collection for %s failed: %s", owner or "guest", exc)

    async def _write(self, owner: str | None, store: CollectionStore) -> None:
        payload = store.dump()
        if owner is None:
            await self._blobs.put(GUEST_COLLECTION_KEY, payload)
        else:
            await self._auth.persist_user_collection(owner, payload)
