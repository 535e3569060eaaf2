"""Tests for chunked secure storage and legacy migration."""

import pytest
from cryptography.fernet import Fernet

from habit_coach.memory.storage import (
    CHUNK_COUNT_SUFFIX,
    InMemoryKeyValueStore,
    SecureStorage,
    StorageError,
    build_backend,
    build_cipher,
    migrate_to_secure_storage,
)

KEY = "stopshorts-ai-memory"


class FailingStore(InMemoryKeyValueStore):
    """Raises on every operation."""

    async def get_item(self, key: str) -> str | None:
        raise OSError("storage unavailable")

    async def set_item(self, key: str, value: str) -> None:
        raise OSError("storage unavailable")

    async def remove_item(self, key: str) -> None:
        raise OSError("storage unavailable")


class TruncatingStore(InMemoryKeyValueStore):
    """Silently drops the last character of every value written."""

    async def set_item(self, key: str, value: str) -> None:
        self.data[key] = value[:-1]


# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_small_value_stored_directly(backend, secure) -> None:
    await secure.set_item(KEY, "small")
    assert backend.data == {KEY: "small"}
    assert await secure.get_item(KEY) == "small"


@pytest.mark.asyncio
async def test_large_value_is_chunked_and_reassembled(backend, secure) -> None:
    value = "".join(chr(0x3042 + i % 80) for i in range(5000))

    await secure.set_item(KEY, value)

    assert backend.data[f"{KEY}{CHUNK_COUNT_SUFFIX}"] == "3"
    assert KEY not in backend.data
    assert [len(backend.data[f"{KEY}_chunk_{i}"]) for i in range(3)] == [1800, 1800, 1400]
    assert await secure.get_item(KEY) == value


@pytest.mark.asyncio
async def test_value_at_chunk_size_is_not_chunked(backend, secure) -> None:
    await secure.set_item(KEY, "x" * 1800)
    assert f"{KEY}{CHUNK_COUNT_SUFFIX}" not in backend.data


@pytest.mark.asyncio
async def test_missing_chunk_reads_as_not_found(backend, secure) -> None:
    await secure.set_item(KEY, "y" * 4000)
    del backend.data[f"{KEY}_chunk_1"]
    assert await secure.get_item(KEY) is None


@pytest.mark.asyncio
async def test_malformed_marker_reads_as_not_found(backend, secure) -> None:
    backend.data[f"{KEY}{CHUNK_COUNT_SUFFIX}"] = "three"
    backend.data[KEY] = "stale"
    assert await secure.get_item(KEY) is None


@pytest.mark.asyncio
async def test_overwrite_removes_old_chunks(backend, secure) -> None:
    await secure.set_item(KEY, "z" * 4000)
    await secure.set_item(KEY, "short")
    assert backend.data == {KEY: "short"}


@pytest.mark.asyncio
async def test_remove_item_clears_chunks_and_marker(backend, secure) -> None:
    await secure.set_item(KEY, "z" * 4000)
    await secure.remove_item(KEY)
    assert backend.data == {}
    assert await secure.get_item(KEY) is None


# ---------------------------------------------------------------------------
# Encryption and failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_encrypted_round_trip_hides_plaintext(backend) -> None:
    secure = SecureStorage(backend, cipher=Fernet(Fernet.generate_key()))
    value = "寝る前に動画を見てしまう" * 200

    await secure.set_item(KEY, value)

    stored = "".join(v for k, v in sorted(backend.data.items()) if "_chunk_" in k and not k.endswith("count"))
    assert "寝る前" not in stored
    assert await secure.get_item(KEY) == value


@pytest.mark.asyncio
async def test_wrong_key_reads_as_not_found(backend) -> None:
    await SecureStorage(backend, cipher=Fernet(Fernet.generate_key())).set_item(KEY, "secret")
    other = SecureStorage(backend, cipher=Fernet(Fernet.generate_key()))
    assert await other.get_item(KEY) is None


@pytest.mark.asyncio
async def test_write_failure_raises_storage_error() -> None:
    secure = SecureStorage(FailingStore())
    with pytest.raises(StorageError):
        await secure.set_item(KEY, "value")


@pytest.mark.asyncio
async def test_read_failure_returns_none() -> None:
    assert await SecureStorage(FailingStore()).get_item(KEY) is None


def test_chunk_size_must_be_positive(backend) -> None:
    with pytest.raises(ValueError):
        SecureStorage(backend, chunk_size=0)


# ---------------------------------------------------------------------------
# Migration
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_migration_copies_then_deletes_legacy(legacy, secure) -> None:
    legacy.data[KEY] = "w" * 3000

    assert await migrate_to_secure_storage(KEY, legacy, secure) is True

    assert KEY not in legacy.data
    assert await secure.get_item(KEY) == "w" * 3000


@pytest.mark.asyncio
async def test_migration_can_keep_legacy_copy(legacy, secure) -> None:
    legacy.data[KEY] = "value"
    assert await migrate_to_secure_storage(KEY, legacy, secure, delete_after_migration=False)
    assert legacy.data[KEY] == "value"


@pytest.mark.asyncio
async def test_migration_noop_when_already_secure(legacy, secure) -> None:
    await secure.set_item(KEY, "new")
    legacy.data[KEY] = "old"

    assert await migrate_to_secure_storage(KEY, legacy, secure) is True

    assert legacy.data[KEY] == "old"
    assert await secure.get_item(KEY) == "new"


@pytest.mark.asyncio
async def test_migration_noop_when_nothing_to_migrate(legacy, secure) -> None:
    assert await migrate_to_secure_storage(KEY, legacy, secure) is True


@pytest.mark.asyncio
async def test_failed_verification_keeps_legacy(legacy) -> None:
    secure = SecureStorage(TruncatingStore())
    legacy.data[KEY] = "important data"

    assert await migrate_to_secure_storage(KEY, legacy, secure) is False
    assert legacy.data[KEY] == "important data"


@pytest.mark.asyncio
async def test_failed_write_keeps_legacy(legacy) -> None:
    secure = SecureStorage(FailingStore())
    legacy.data[KEY] = "important data"

    assert await migrate_to_secure_storage(KEY, legacy, secure) is False
    assert legacy.data[KEY] == "important data"


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def test_build_cipher_without_key_disables_encryption() -> None:
    assert build_cipher("") is None


def test_build_cipher_with_key() -> None:
    key = Fernet.generate_key().decode("ascii")
    assert isinstance(build_cipher(key), Fernet)


def test_build_backend_defaults_to_memory(settings) -> None:
    assert isinstance(build_backend(settings), InMemoryKeyValueStore)


def test_build_backend_rejects_unknown(settings) -> None:
    with pytest.raises(ValueError):
        build_backend(settings.model_copy(update={"storage_backend": "sqlite"}))
