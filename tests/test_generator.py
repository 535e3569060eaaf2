"""Tests for the reply generators."""

import random

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from habit_coach.agent.generator import (
    DEFAULT_RESPONSES,
    RESPONSE_PATTERNS,
    LangChainGenerator,
    PatternGenerator,
)
from habit_coach.models.messages import Message, MessageRole


def conversation(*texts: str) -> list[Message]:
    return [Message.create(MessageRole.USER, text) for text in texts]


@pytest.mark.asyncio
async def test_pattern_generator_matches_latest_user_message() -> None:
    generator = PatternGenerator(random.Random(1))
    reply = await generator.generate(conversation("こんにちは", "今日は退屈だった"), "", "")
    boredom_replies = RESPONSE_PATTERNS[3][1]
    assert reply in boredom_replies


@pytest.mark.asyncio
async def test_pattern_generator_falls_back_to_defaults() -> None:
    generator = PatternGenerator(random.Random(1))
    reply = await generator.generate(conversation("ふむ"), "", "")
    assert reply in DEFAULT_RESPONSES


@pytest.mark.asyncio
async def test_pattern_generator_is_deterministic_per_seed() -> None:
    first = PatternGenerator(random.Random(42))
    second = PatternGenerator(random.Random(42))
    messages = conversation("ふむ")
    assert [await first.generate(messages, "", "") for _ in range(5)] == [
        await second.generate(messages, "", "") for _ in range(5)
    ]


@pytest.mark.asyncio
async def test_langchain_generator_returns_model_reply() -> None:
    model = FakeListChatModel(responses=["一緒に考えましょう。"])
    generator = LangChainGenerator(model)
    reply = await generator.generate(conversation("どうすればいい？"), "system", "context")
    assert reply == "一緒に考えましょう。"


@pytest.mark.asyncio
async def test_langchain_generator_rejects_empty_reply() -> None:
    generator = LangChainGenerator(FakeListChatModel(responses=["   "]))
    with pytest.raises(ValueError):
        await generator.generate(conversation("こんにちは"), "system", "")
