"""Renders the user's stats, goals and training progress for the prompt.

The host app owns these facts; the engine reads them through a
``UserContextProvider`` once per turn.
"""

from __future__ import annotations

import logging
import math
from typing import Protocol

from habit_coach.models.context import TrainingProgress, UserContext, UserStats, WeeklyTrend
from habit_coach.models.memory import LongTermMemory

logger = logging.getLogger(__name__)

RECENT_INSIGHTS_IN_CONTEXT = 3

# Training topic ids in curriculum order
TOPIC_TITLES: dict[str, str] = {
    "habit-loop": "習慣ループの理解",
    "if-then-plan": "If-Thenプランニング",
    "urge-surfing-science": "衝動サーフィンの科学",
    "brain-self-control": "脳と自己制御",
    "cognitive-reframing": "認知リフレーミング",
    "dealing-with-boredom": "退屈への対処",
    "loneliness-and-sns": "孤独感とSNS",
    "screen-time-and-sleep": "スクリーンタイムと睡眠",
    "reclaiming-focus": "集中力の回復",
}

WEEKLY_TREND_PHRASES: dict[WeeklyTrend, str] = {
    WeeklyTrend.IMPROVING: "良くなっています",
    WeeklyTrend.STABLE: "安定しています",
    WeeklyTrend.DECLINING: "少し増えています",
}


class UserContextProvider(Protocol):
    def get_user_context(self) -> UserContext | None: ...


class InMemoryUserContextProvider:
    """Holds the latest context pushed by the host app."""

    def __init__(self, context: UserContext | None = None) -> None:
        self._context = context

    def get_user_context(self) -> UserContext | None:
        return self._context

    def set_user_context(self, context: UserContext | None) -> None:
        self._context = context
        logger.debug("User context updated")


def success_rate(stats: UserStats) -> int | None:
    """Blocked share of today's opens as a rounded percentage."""
    if stats.today_opens == 0:
        return None
    return math.floor(stats.today_blocked * 100 / stats.today_opens + 0.5)


def describe_today(stats: UserStats) -> str:
    rate = success_rate(stats)
    if rate is None:
        return "まだ今日は開いていません"
    base = f"{stats.today_opens}回中{stats.today_blocked}回成功"
    if rate >= 80:
        return f"{base}（素晴らしい！）"
    if rate >= 50:
        return base
    return f"{base}（まだ改善の余地あり）"


def describe_weekly_trend(trend: WeeklyTrend) -> str:
    return WEEKLY_TREND_PHRASES[trend]


def topic_title(topic_id: str) -> str:
    return TOPIC_TITLES.get(topic_id, topic_id)


def build_training_context(training: TrainingProgress) -> str:
    """Completed, in-progress and not-started topics, in curriculum order."""
    completed = [
        topic_title(t) for t in TOPIC_TITLES if t in training.completed_topic_ids
    ]
    in_progress = [
        topic_title(t)
        for t in TOPIC_TITLES
        if t in training.in_progress_topic_ids and t not in training.completed_topic_ids
    ]
    started = set(training.completed_topic_ids) | set(training.in_progress_topic_ids)
    not_started = [topic_title(t) for t in TOPIC_TITLES if t not in started]

    return "\n".join(
        [
            "## ユーザーのトレーニング進捗",
            f"- 完了済み: {', '.join(completed) or 'なし'}",
            f"- 学習中: {', '.join(in_progress) or 'なし'}",
            f"- 未開始: {', '.join(not_started) or 'なし'}",
        ]
    )


def build_user_context(context: UserContext, memory: LongTermMemory | None = None) -> str:
    """User profile block: goals, today's status, trend, topics, recent insights."""
    stats = context.stats
    lines = ["## ユーザー情報"]
    if context.goals is not None:
        lines.append(f"- 目標: {context.goals.primary}（{context.goals.purpose}）")
    lines.append(f"- 今日の状況: {describe_today(stats)}")
    lines.append(f"- 週間トレンド: {describe_weekly_trend(stats.weekly_trend)}")
    if stats.streak_days > 0:
        lines.append(f"- 連続達成日数: {stats.streak_days}日")

    lines += ["", "## 学習済みトピック"]
    completed = context.training.completed_topic_ids
    if completed:
        lines += [f"- {topic_title(t)}" for t in completed]
    else:
        lines.append("- まだ開始していません")

    lines += ["", "## 過去の洞察"]
    insights = []
    if memory is not None:
        insights = [i for i in memory.confirmed_insights if i.confirmed_by_user]
        insights = insights[-RECENT_INSIGHTS_IN_CONTEXT:]
    if insights:
        lines += [f"- {i.content}" for i in insights]
    else:
        lines.append("- まだ発見されていません")

    lines += [
        "",
        "## 今日の統計",
        f"開こうとした回数: {stats.today_opens}",
        f"ブロック成功: {stats.today_blocked}",
    ]
    rate = success_rate(stats)
    if rate is not None:
        lines.append(f"成功率: {rate}%")

    return "\n".join(lines)
