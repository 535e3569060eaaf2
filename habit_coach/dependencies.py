"""Service construction and dependency injection providers for FastAPI."""

from __future__ import annotations

import logging

from fastapi import Request

from habit_coach.agent.context import InMemoryUserContextProvider
from habit_coach.agent.generator import PatternGenerator, ResponseGenerator
from habit_coach.agent.session import SessionManager
from habit_coach.config import Settings
from habit_coach.guided.machine import GuidedConversationMachine, InMemoryAppSettings
from habit_coach.memory.manager import MemoryManager
from habit_coach.memory.records import RecordsLog
from habit_coach.memory.storage import (
    InMemoryKeyValueStore,
    KeyValueStore,
    MongoKeyValueStore,
    SecureStorage,
    build_backend,
    build_cipher,
)

logger = logging.getLogger(__name__)

LEGACY_COLLECTION = "kv_store_legacy"


class CoachServices:
    """Every core service, built once per process and shared by reference."""

    def __init__(
        self,
        *,
        settings: Settings,
        backend: KeyValueStore,
        legacy: KeyValueStore,
        secure: SecureStorage,
        memory: MemoryManager,
        records: RecordsLog,
        app_settings: InMemoryAppSettings,
        user_context: InMemoryUserContextProvider,
        sessions: SessionManager,
        guided: GuidedConversationMachine,
    ) -> None:
        self.settings = settings
        self.backend = backend
        self.legacy = legacy
        self.secure = secure
        self.memory = memory
        self.records = records
        self.app_settings = app_settings
        self.user_context = user_context
        self.sessions = sessions
        self.guided = guided

    async def startup(self) -> None:
        await self.memory.load()
        await self.records.load()

    async def shutdown(self) -> None:
        for store in (self.backend, self.legacy):
            if isinstance(store, MongoKeyValueStore):
                store.close()


def build_services(
    settings: Settings,
    generator: ResponseGenerator | None = None,
    backend: KeyValueStore | None = None,
    legacy: KeyValueStore | None = None,
) -> CoachServices:
    """Wire the core services together.

    ``backend`` holds the secure (encrypted, chunked) data and ``legacy``
    the plain pre-migration store, which also keeps the records log.
    """
    if backend is None:
        backend = build_backend(settings)
    if legacy is None:
        if isinstance(backend, MongoKeyValueStore):
            legacy = MongoKeyValueStore(
                settings.mongodb_uri, settings.mongodb_database, LEGACY_COLLECTION
            )
        else:
            legacy = InMemoryKeyValueStore()

    secure = SecureStorage(
        backend,
        cipher=build_cipher(settings.storage_encryption_key),
        chunk_size=settings.storage_chunk_size,
    )
    memory = MemoryManager(secure, legacy, settings)
    records = RecordsLog(legacy, max_records=settings.max_records)
    app_settings = InMemoryAppSettings()
    user_context = InMemoryUserContextProvider()
    sessions = SessionManager(
        memory,
        generator or PatternGenerator(),
        persona_id=settings.default_persona,
        settings=settings,
        context_provider=user_context,
    )
    guided = GuidedConversationMachine(memory, app_settings, records)
    logger.info("Coach services built (storage=%s)", settings.storage_backend)

    return CoachServices(
        settings=settings,
        backend=backend,
        legacy=legacy,
        secure=secure,
        memory=memory,
        records=records,
        app_settings=app_settings,
        user_context=user_context,
        sessions=sessions,
        guided=guided,
    )


def get_services(request: Request) -> CoachServices:
    """FastAPI dependency returning the services attached at startup."""
    return request.app.state.services
