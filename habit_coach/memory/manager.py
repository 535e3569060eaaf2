"""Long-term memory manager.

Owns the cross-session ``LongTermMemory`` blob and the capped list of
``SessionSummary`` records, persisted under two keys in secure storage.
Every collection is capped; inserting past the cap evicts the oldest entries.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from pydantic import TypeAdapter, ValidationError

from habit_coach.config import Settings, get_settings
from habit_coach.memory.storage import (
    KeyValueStore,
    SecureStorage,
    migrate_to_secure_storage,
)
from habit_coach.models.memory import (
    AIIfThenPlan,
    Insight,
    LongTermMemory,
    Strategy,
    Trigger,
)
from habit_coach.models.sessions import SessionSummary

logger = logging.getLogger(__name__)

MEMORY_KEY = "stopshorts-ai-memory"
SESSIONS_KEY = "stopshorts-ai-sessions"

_summaries_adapter = TypeAdapter(list[SessionSummary])


def _keep_newest(items: list, limit: int) -> list:
    return items[-limit:] if len(items) > limit else items


class MemoryManager:
    """Loads, mutates and persists long-term memory.

    Lifecycle:
        manager = MemoryManager(secure, legacy)
        await manager.load()   # once at startup
        ...
        await manager.save()   # after session end / guided completion
    """

    def __init__(
        self,
        secure: SecureStorage,
        legacy: KeyValueStore,
        settings: Settings | None = None,
    ) -> None:
        self._secure = secure
        self._legacy = legacy
        self._settings = settings or get_settings()
        self._memory: LongTermMemory | None = None
        self._summaries: list[SessionSummary] = []

    # ------------------------------------------------------------------
    # Properties (guard against use before load)
    # ------------------------------------------------------------------

    @property
    def long_term_memory(self) -> LongTermMemory:
        if self._memory is None:
            raise RuntimeError("MemoryManager not loaded - call load() first")
        return self._memory

    @property
    def session_summaries(self) -> list[SessionSummary]:
        return list(self._summaries)

    @property
    def is_loaded(self) -> bool:
        return self._memory is not None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self) -> None:
        """Read both keys, migrating legacy plain copies first.

        Missing or corrupt data falls back to empty defaults.
        """
        memory_json = await self._read(MEMORY_KEY)
        self._memory = LongTermMemory()
        if memory_json:
            try:
                self._memory = LongTermMemory.model_validate_json(memory_json)
            except ValidationError:
                logger.exception("Stored long-term memory is corrupt - using defaults")

        sessions_json = await self._read(SESSIONS_KEY)
        self._summaries = []
        if sessions_json:
            try:
                self._summaries = _summaries_adapter.validate_json(sessions_json)
            except ValidationError:
                logger.exception("Stored session summaries are corrupt - discarding")

        logger.info(
            "Memory loaded: %d insights, %d triggers, %d strategies, %d summaries",
            len(self._memory.confirmed_insights),
            len(self._memory.identified_triggers),
            len(self._memory.effective_strategies),
            len(self._summaries),
        )

    async def save(self) -> None:
        """Persist both keys. Failures are logged, never raised.

        The two writes are independent; a failure between them can leave
        the keys out of step.
        """
        if self._memory is not None:
            try:
                await self._secure.set_item(MEMORY_KEY, self._memory.model_dump_json())
            except Exception:
                logger.exception("Error saving long-term memory")

        try:
            await self._secure.set_item(
                SESSIONS_KEY, _summaries_adapter.dump_json(self._summaries).decode("utf-8")
            )
        except Exception:
            logger.exception("Error saving session summaries")

    async def clear(self) -> None:
        """Remove both keys from secure and legacy storage and reset."""
        for key in (MEMORY_KEY, SESSIONS_KEY):
            try:
                await self._secure.remove_item(key)
                await self._legacy.remove_item(key)
            except Exception:
                logger.exception("Error clearing %s", key)
        self._memory = LongTermMemory()
        self._summaries = []
        logger.info("Long-term memory cleared")

    async def _read(self, key: str) -> str | None:
        migrated = await migrate_to_secure_storage(key, self._legacy, self._secure)
        value = await self._secure.get_item(key) if migrated else None
        if value is None:
            try:
                value = await self._legacy.get_item(key)
            except Exception:
                logger.exception("Error reading legacy copy of %s", key)
        return value

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def confirm_insight(self, insight_id: str) -> bool:
        """Mark one insight as confirmed by the user."""
        for insight in self.long_term_memory.confirmed_insights:
            if insight.id == insight_id:
                insight.confirmed_by_user = True
                return True
        logger.warning("Insight %s not found", insight_id)
        return False

    def add_insights(self, contents: Iterable[str], confirmed: bool = False) -> list[Insight]:
        memory = self.long_term_memory
        known = {i.content for i in memory.confirmed_insights}
        added = [
            Insight(content=content, confirmed_by_user=confirmed)
            for content in dict.fromkeys(contents)
            if content not in known
        ]
        memory.confirmed_insights = _keep_newest(
            memory.confirmed_insights + added, self._settings.max_insights
        )
        return added

    def add_trigger(self, text: str) -> Trigger:
        """Record a trigger; a known trigger only gains frequency."""
        memory = self.long_term_memory
        for existing in memory.identified_triggers:
            if existing.trigger == text:
                existing.frequency += 1
                return existing

        trigger = Trigger(trigger=text)
        memory.identified_triggers = _keep_newest(
            memory.identified_triggers + [trigger], self._settings.max_triggers
        )
        logger.info("New trigger identified: %s", text)
        return trigger

    def add_strategy(self, description: str, effectiveness: float) -> Strategy:
        """Record a strategy use; effectiveness is a running average."""
        effectiveness = min(1.0, max(0.0, effectiveness))
        memory = self.long_term_memory
        for existing in memory.effective_strategies:
            if existing.description == description:
                total = existing.effectiveness * existing.usage_count + effectiveness
                existing.usage_count += 1
                existing.effectiveness = total / existing.usage_count
                return existing

        strategy = Strategy(description=description, effectiveness=effectiveness)
        memory.effective_strategies = _keep_newest(
            memory.effective_strategies + [strategy], self._settings.max_strategies
        )
        return strategy

    def add_plan(self, plan: AIIfThenPlan) -> None:
        memory = self.long_term_memory
        memory.plans = _keep_newest(memory.plans + [plan], self._settings.max_plans)

    def add_session_summary(self, summary: SessionSummary) -> None:
        self._summaries = _keep_newest(
            self._summaries + [summary], self._settings.max_session_summaries
        )
