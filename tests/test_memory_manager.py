"""Tests for long-term memory persistence and mutation."""

import pytest

from habit_coach.config import Settings
from habit_coach.memory.manager import MEMORY_KEY, SESSIONS_KEY, MemoryManager
from habit_coach.memory.storage import InMemoryKeyValueStore, SecureStorage
from habit_coach.models.memory import LongTermMemory, Trigger
from habit_coach.models.sessions import SessionSummary


class BrokenWrites(InMemoryKeyValueStore):
    async def set_item(self, key: str, value: str) -> None:
        raise OSError("disk full")


def test_memory_guarded_before_load(secure, legacy) -> None:
    manager = MemoryManager(secure, legacy)
    with pytest.raises(RuntimeError, match="not loaded"):
        _ = manager.long_term_memory


@pytest.mark.asyncio
async def test_load_defaults_when_nothing_stored(memory) -> None:
    assert memory.long_term_memory == LongTermMemory()
    assert memory.long_term_memory.version == 1
    assert memory.session_summaries == []


@pytest.mark.asyncio
async def test_save_and_reload(memory, secure, legacy, settings) -> None:
    memory.add_insights(["退屈だからついつい開いてしまう"])
    memory.add_trigger("寝る前")
    memory.add_strategy("深呼吸", 0.9)
    memory.add_session_summary(SessionSummary(session_id="s1", summary="2回のやりとり。"))
    await memory.save()

    reloaded = MemoryManager(secure, legacy, settings)
    await reloaded.load()

    assert reloaded.long_term_memory == memory.long_term_memory
    assert [s.session_id for s in reloaded.session_summaries] == ["s1"]


@pytest.mark.asyncio
async def test_load_migrates_legacy_plain_copy(secure, legacy, backend, settings) -> None:
    stored = LongTermMemory(identified_triggers=[Trigger(trigger="通知")])
    legacy.data[MEMORY_KEY] = stored.model_dump_json()

    manager = MemoryManager(secure, legacy, settings)
    await manager.load()

    assert manager.long_term_memory.identified_triggers[0].trigger == "通知"
    assert MEMORY_KEY not in legacy.data
    assert await secure.get_item(MEMORY_KEY) == stored.model_dump_json()


@pytest.mark.asyncio
async def test_load_falls_back_to_legacy_when_migration_fails(legacy, settings) -> None:
    stored = LongTermMemory(identified_triggers=[Trigger(trigger="通知")])
    legacy.data[MEMORY_KEY] = stored.model_dump_json()

    manager = MemoryManager(SecureStorage(BrokenWrites()), legacy, settings)
    await manager.load()

    assert manager.long_term_memory.identified_triggers[0].trigger == "通知"
    assert MEMORY_KEY in legacy.data


@pytest.mark.asyncio
async def test_corrupt_data_falls_back_to_defaults(secure, legacy, settings) -> None:
    await secure.set_item(MEMORY_KEY, "{not json")
    await secure.set_item(SESSIONS_KEY, '[{"unexpected": true}]')

    manager = MemoryManager(secure, legacy, settings)
    await manager.load()

    assert manager.long_term_memory == LongTermMemory()
    assert manager.session_summaries == []


@pytest.mark.asyncio
async def test_save_failure_is_swallowed(legacy, settings) -> None:
    manager = MemoryManager(SecureStorage(BrokenWrites()), legacy, settings)
    await manager.load()
    manager.add_trigger("通知")
    await manager.save()


@pytest.mark.asyncio
async def test_clear_removes_everything(memory, backend, legacy) -> None:
    memory.add_trigger("通知")
    await memory.save()
    legacy.data[MEMORY_KEY] = "{}"

    await memory.clear()

    assert backend.data == {}
    assert MEMORY_KEY not in legacy.data
    assert memory.long_term_memory == LongTermMemory()


@pytest.mark.asyncio
async def test_confirm_insight_flips_exactly_one(memory) -> None:
    first, second, third = memory.add_insights(["一つ目の洞察", "二つ目の洞察", "三つ目の洞察"])

    assert memory.confirm_insight(second.id) is True

    insights = memory.long_term_memory.confirmed_insights
    assert [i.id for i in insights] == [first.id, second.id, third.id]
    assert [i.confirmed_by_user for i in insights] == [False, True, False]


@pytest.mark.asyncio
async def test_confirm_unknown_insight(memory) -> None:
    assert memory.confirm_insight("missing") is False


@pytest.mark.asyncio
async def test_add_insights_skips_known_content(memory) -> None:
    memory.add_insights(["同じ洞察です"])
    assert memory.add_insights(["同じ洞察です", "同じ洞察です"]) == []
    assert len(memory.long_term_memory.confirmed_insights) == 1


@pytest.mark.asyncio
async def test_trigger_eviction_drops_earliest(memory, settings) -> None:
    for i in range(settings.max_triggers + 1):
        memory.add_trigger(f"trigger-{i}")

    triggers = [t.trigger for t in memory.long_term_memory.identified_triggers]
    assert len(triggers) == settings.max_triggers
    assert "trigger-0" not in triggers
    assert triggers[-1] == f"trigger-{settings.max_triggers}"


@pytest.mark.asyncio
async def test_repeated_trigger_accumulates_frequency(memory) -> None:
    memory.add_trigger("寝る前")
    trigger = memory.add_trigger("寝る前")
    assert trigger.frequency == 2
    assert len(memory.long_term_memory.identified_triggers) == 1


@pytest.mark.asyncio
async def test_strategy_effectiveness_is_running_average(memory) -> None:
    memory.add_strategy("散歩", 1.0)
    strategy = memory.add_strategy("散歩", 0.5)
    assert strategy.usage_count == 2
    assert strategy.effectiveness == pytest.approx(0.75)


@pytest.mark.asyncio
async def test_session_summaries_are_capped(secure, legacy) -> None:
    manager = MemoryManager(secure, legacy, Settings(max_session_summaries=3))
    await manager.load()
    for i in range(5):
        manager.add_session_summary(SessionSummary(session_id=f"s{i}", summary="x"))
    assert [s.session_id for s in manager.session_summaries] == ["s2", "s3", "s4"]


@pytest.mark.asyncio
async def test_existing_app_keys_are_migrated(secure, legacy, settings) -> None:
    stored = LongTermMemory(identified_triggers=[Trigger(trigger="通知")])
    legacy.data["stopshorts-ai-memory"] = stored.model_dump_json()
    legacy.data["stopshorts-ai-sessions"] = "[]"

    manager = MemoryManager(secure, legacy, settings)
    await manager.load()

    assert [t.trigger for t in manager.long_term_memory.identified_triggers] == ["通知"]
    assert "stopshorts-ai-memory" not in legacy.data
    assert await secure.get_item(MEMORY_KEY) == stored.model_dump_json()
