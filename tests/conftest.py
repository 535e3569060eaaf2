"""Shared test fixtures for the habit coach."""

import random
from collections.abc import AsyncGenerator, Sequence

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from habit_coach.agent.generator import PatternGenerator
from habit_coach.config import Settings
from habit_coach.dependencies import CoachServices, build_services
from habit_coach.main import app
from habit_coach.memory.manager import MemoryManager
from habit_coach.memory.storage import InMemoryKeyValueStore, SecureStorage
from habit_coach.models.guided import IfThenPlan
from habit_coach.models.messages import Message


class FakeGenerator:
    """Records every call and replies with a fixed text (or raises)."""

    def __init__(self, reply: str = "なるほど。", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[dict] = []

    async def generate(
        self,
        messages: Sequence[Message],
        system_prompt: str,
        user_context: str,
    ) -> str:
        self.calls.append(
            {"messages": list(messages), "system_prompt": system_prompt, "user_context": user_context}
        )
        if self.error is not None:
            raise self.error
        return self.reply


class RecordingPlanSink:
    def __init__(self) -> None:
        self.plans: list[IfThenPlan] = []

    def set_plan(self, plan: IfThenPlan) -> None:
        self.plans.append(plan)


@pytest.fixture
def settings() -> Settings:
    return Settings(storage_backend="memory", storage_encryption_key="")


@pytest.fixture
def backend() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def legacy() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def secure(backend: InMemoryKeyValueStore) -> SecureStorage:
    return SecureStorage(backend, chunk_size=1800)


@pytest_asyncio.fixture
async def memory(
    secure: SecureStorage, legacy: InMemoryKeyValueStore, settings: Settings
) -> MemoryManager:
    """A loaded memory manager over empty in-memory stores."""
    manager = MemoryManager(secure, legacy, settings)
    await manager.load()
    return manager


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest_asyncio.fixture
async def services(settings: Settings) -> CoachServices:
    built = build_services(settings, generator=PatternGenerator(random.Random(0)))
    await built.startup()
    return built


@pytest_asyncio.fixture
async def client(services: CoachServices) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    app.state.services = services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.state.services = None
