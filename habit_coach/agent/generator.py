"""Reply generators the session manager calls through one interface.

- **PatternGenerator**: offline keyword-matched canned replies
- **LangChainGenerator**: any LangChain chat model (local or remote)
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from typing import Protocol

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from habit_coach.models.messages import Message, MessageRole

logger = logging.getLogger(__name__)


class ResponseGenerator(Protocol):
    async def generate(
        self,
        messages: Sequence[Message],
        system_prompt: str,
        user_context: str,
    ) -> str: ...


def _latest_user_text(messages: Sequence[Message]) -> str:
    for message in reversed(messages):
        if message.role == MessageRole.USER:
            return message.content
    return ""


# (keywords, replies); first matching group wins
RESPONSE_PATTERNS: list[tuple[tuple[str, ...], tuple[str, ...]]] = [
    (
        ("つらい", "難しい", "きつい", "苦しい"),
        (
            "その気持ち、よく分かります。少しずつでいいんですよ。今日、何か小さな一歩を踏み出せたことはありますか？",
            "大変でしたね。無理しないでくださいね。今、どんな気持ちですか？",
            "そういう日もありますよね。自分を責めないでください。",
        ),
    ),
    (
        ("開いて", "見てしまった", "使って"),
        (
            "なるほど、開いてしまったんですね。でも、こうして話してくれていること自体が大きな一歩です。何がきっかけで開きたくなりましたか？",
            "そうだったんですね。開いた後、どんな気持ちでしたか？",
            "それでも気づけたことが大切です。次はどうしたいですか？",
        ),
    ),
    (
        ("できた", "成功", "やった", "我慢"),
        (
            "すごい！その調子です。小さな成功を積み重ねることが大切ですね。どんな気持ちですか？",
            "素晴らしいですね！その成功体験を覚えておいてください。",
            "よく頑張りましたね！自分を褒めてあげてください。",
        ),
    ),
    (
        ("暇", "退屈", "やることない"),
        (
            "退屈な時って、つい開きたくなりますよね。代わりに何かやってみたいことはありますか？",
            "暇な時間をどう過ごすか、一緒に考えましょう。何か興味のあることはありますか？",
            "退屈は開くきっかけになりやすいですね。何か新しいことを試してみませんか？",
        ),
    ),
    (
        ("寝れない", "眠れない", "夜"),
        (
            "夜は特に開きたくなりますよね。寝る前のルーティンを作ってみませんか？",
            "寝る1時間前からスマホを見ない工夫をしてみましょうか？",
            "夜の時間の過ごし方、一緒に考えましょう。",
        ),
    ),
    (
        ("どうすれば", "どうしたら", "アドバイス"),
        (
            "まず、どんな時に開きたくなるか、パターンを見つけることから始めましょう。何か気づいていることはありますか？",
            "具体的にどんな場面で困っていますか？もう少し教えてください。",
            "いくつかのステップで進めていきましょう。まず、今の状況を教えてください。",
        ),
    ),
]

DEFAULT_RESPONSES: tuple[str, ...] = (
    "もう少し教えてもらえますか？",
    "その気持ち、大切にしてくださいね。",
    "一緒に考えていきましょう。",
    "それは大変でしたね。どうしたいですか？",
    "なるほど、続けてください。",
    "どんな時にそう感じますか？",
)


class PatternGenerator:
    """Keyword-matched replies for offline use and development."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    async def generate(
        self,
        messages: Sequence[Message],
        system_prompt: str,
        user_context: str,
    ) -> str:
        text = _latest_user_text(messages).lower()
        for keywords, replies in RESPONSE_PATTERNS:
            if any(keyword in text for keyword in keywords):
                return self._rng.choice(replies)
        return self._rng.choice(DEFAULT_RESPONSES)


class LangChainGenerator:
    """Adapter over a LangChain chat model.

    The system prompt and the memory/history context travel in one
    ``SystemMessage``; the latest user text is the ``HumanMessage``.
    """

    def __init__(self, model: BaseChatModel) -> None:
        self._model = model

    async def generate(
        self,
        messages: Sequence[Message],
        system_prompt: str,
        user_context: str,
    ) -> str:
        system_content = f"{system_prompt}\n\n{user_context}" if user_context else system_prompt
        response = await self._model.ainvoke(
            [
                SystemMessage(content=system_content),
                HumanMessage(content=_latest_user_text(messages)),
            ]
        )
        content = response.content if isinstance(response.content, str) else str(response.content)
        if not content.strip():
            raise ValueError("Model returned an empty reply")
        logger.debug("Model reply: %s", content[:80])
        return content
