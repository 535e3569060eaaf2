"""Durable key-value storage with encryption and chunking.

Backends:
- **InMemoryKeyValueStore**: process-local dict, used in development and tests
- **MongoKeyValueStore**: one document per key in MongoDB via motor

``SecureStorage`` wraps a backend, encrypts values with Fernet and splits
anything larger than the per-item limit into ``{key}_chunk_{i}`` records
plus a ``{key}_chunk_count`` marker.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection

from habit_coach.config import Settings

logger = logging.getLogger(__name__)

CHUNK_COUNT_SUFFIX = "_chunk_count"
KV_COLLECTION = "kv_store"


class StorageError(RuntimeError):
    """A write to durable storage failed."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{message}: {key}")
        self.key = key


class KeyValueStore(Protocol):
    async def get_item(self, key: str) -> str | None: ...

    async def set_item(self, key: str, value: str) -> None: ...

    async def remove_item(self, key: str) -> None: ...

    async def ping(self) -> bool: ...


# ------------------------------------------------------------------
# Backends
# ------------------------------------------------------------------


class InMemoryKeyValueStore:
    """Dict-backed store. Contents vanish with the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> str | None:
        return self.data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove_item(self, key: str) -> None:
        self.data.pop(key, None)

    async def ping(self) -> bool:
        return True


class MongoKeyValueStore:
    """Stores each key as ``{key, value, updated_at}`` in one collection.

    Lifecycle:
        store = MongoKeyValueStore(uri, database)
        ...
        store.close()
    """

    def __init__(
        self,
        uri: str,
        database: str,
        collection_name: str = KV_COLLECTION,
    ) -> None:
        self._client: AsyncIOMotorClient = AsyncIOMotorClient(
            uri,
            serverSelectionTimeoutMS=5_000,
        )
        self._collection: AsyncIOMotorCollection = self._client[database][collection_name]

    async def get_item(self, key: str) -> str | None:
        doc = await self._collection.find_one({"key": key}, {"value": 1, "_id": 0})
        return doc["value"] if doc else None

    async def set_item(self, key: str, value: str) -> None:
        await self._collection.update_one(
            {"key": key},
            {"$set": {"value": value, "updated_at": datetime.now(timezone.utc)}},
            upsert=True,
        )

    async def remove_item(self, key: str) -> None:
        await self._collection.delete_one({"key": key})

    async def ping(self) -> bool:
        await self._client.admin.command("ping")
        return True

    def close(self) -> None:
        self._client.close()
        logger.info("MongoDB connection closed")


# ------------------------------------------------------------------
# Secure chunked storage
# ------------------------------------------------------------------


def split_into_chunks(data: str, chunk_size: int) -> list[str]:
    return [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)]


class SecureStorage:
    """Encrypting, chunking wrapper around a ``KeyValueStore``.

    Reads fail closed: a missing chunk, a malformed marker or a value that
    cannot be decrypted all read as ``None`` rather than partial data.
    """

    def __init__(
        self,
        backend: KeyValueStore,
        cipher: Fernet | None = None,
        chunk_size: int = 1800,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")
        self.backend = backend
        self._cipher = cipher
        self.chunk_size = chunk_size

    @property
    def is_encrypted(self) -> bool:
        return self._cipher is not None

    async def get_item(self, key: str) -> str | None:
        try:
            raw = await self._read_raw(key)
        except Exception:
            logger.exception("Error reading secure item %s", key)
            return None
        if raw is None:
            return None
        return self._decrypt(key, raw)

    async def set_item(self, key: str, value: str) -> None:
        try:
            await self.remove_item(key)
            payload = self._encrypt(value)

            if len(payload) <= self.chunk_size:
                await self.backend.set_item(key, payload)
                return

            chunks = split_into_chunks(payload, self.chunk_size)
            await self.backend.set_item(f"{key}{CHUNK_COUNT_SUFFIX}", str(len(chunks)))
            for i, chunk in enumerate(chunks):
                await self.backend.set_item(f"{key}_chunk_{i}", chunk)
            logger.debug("Stored %s in %d chunks", key, len(chunks))
        except Exception as exc:
            logger.error("Error writing secure item %s: %s", key, exc)
            raise StorageError(key, "Secure write failed") from exc

    async def remove_item(self, key: str) -> None:
        marker = await self.backend.get_item(f"{key}{CHUNK_COUNT_SUFFIX}")
        if marker is not None:
            count = self._parse_marker(key, marker) or 0
            for i in range(count):
                await self.backend.remove_item(f"{key}_chunk_{i}")
            await self.backend.remove_item(f"{key}{CHUNK_COUNT_SUFFIX}")
        await self.backend.remove_item(key)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _read_raw(self, key: str) -> str | None:
        marker = await self.backend.get_item(f"{key}{CHUNK_COUNT_SUFFIX}")
        if marker is None:
            return await self.backend.get_item(key)

        count = self._parse_marker(key, marker)
        if count is None:
            return None
        chunks: list[str] = []
        for i in range(count):
            chunk = await self.backend.get_item(f"{key}_chunk_{i}")
            if chunk is None:
                logger.error("Missing chunk %d of %d for key %s", i, count, key)
                return None
            chunks.append(chunk)
        return "".join(chunks)

    @staticmethod
    def _parse_marker(key: str, marker: str) -> int | None:
        try:
            count = int(marker)
        except ValueError:
            logger.error("Malformed chunk marker for key %s: %r", key, marker)
            return None
        if count < 1:
            logger.error("Invalid chunk count for key %s: %d", key, count)
            return None
        return count

    def _encrypt(self, value: str) -> str:
        if self._cipher is None:
            return value
        return self._cipher.encrypt(value.encode("utf-8")).decode("ascii")

    def _decrypt(self, key: str, payload: str) -> str | None:
        if self._cipher is None:
            return payload
        try:
            return self._cipher.decrypt(payload.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError):
            logger.error("Could not decrypt secure item %s", key)
            return None


async def migrate_to_secure_storage(
    key: str,
    legacy: KeyValueStore,
    secure: SecureStorage,
    *,
    delete_after_migration: bool = True,
) -> bool:
    """Copy ``key`` from the legacy plain store into secure storage.

    The legacy copy is deleted only after the secure copy reads back
    identical. Returns True when migrated or when nothing needed migrating.
    """
    try:
        if await secure.get_item(key) is not None:
            return True

        legacy_value = await legacy.get_item(key)
        if legacy_value is None:
            return True

        await secure.set_item(key, legacy_value)

        if await secure.get_item(key) != legacy_value:
            logger.error("Migration verification failed for %s", key)
            return False

        if delete_after_migration:
            await legacy.remove_item(key)
        logger.info("Migrated %s to secure storage", key)
        return True
    except Exception:
        logger.exception("Migration failed for %s", key)
        return False


def build_cipher(key: str) -> Fernet | None:
    """Return a Fernet cipher for a configured key, or None when unset."""
    if not key:
        logger.warning("No storage encryption key configured - secure store is not encrypted")
        return None
    return Fernet(key.encode("ascii"))


def build_backend(settings: Settings) -> InMemoryKeyValueStore | MongoKeyValueStore:
    if settings.storage_backend == "mongodb":
        logger.info("Using MongoDB storage at %s", settings.mongodb_uri)
        return MongoKeyValueStore(settings.mongodb_uri, settings.mongodb_database)
    if settings.storage_backend != "memory":
        raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
    logger.info("Using in-memory storage")
    return InMemoryKeyValueStore()
