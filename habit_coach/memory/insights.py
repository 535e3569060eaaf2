"""Rule-based insight extraction from the user's side of a conversation.

Each pattern pairs a regex with an extractor that builds a candidate phrase
from the capture groups. Patterns are evaluated in list order for every user
message; the first occurrence of a phrase wins.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from typing import Optional

from pydantic import BaseModel, ConfigDict

from habit_coach.config import get_settings
from habit_coach.models.messages import Message, MessageRole

logger = logging.getLogger(__name__)

# The generic "I think..." pattern only fires when one of these appears.
REASONING_KEYWORDS = ("原因", "理由", "から", "ため", "癖", "習慣", "パターン")


class InsightPattern(BaseModel):
    """A regex and the extractor that turns its match into a phrase."""

    model_config = ConfigDict(frozen=True)

    name: str
    regex: re.Pattern
    extract: Callable[[re.Match, str], Optional[str]]


def _first_group(match: re.Match[str], _content: str) -> Optional[str]:
    return match.group(1)


def _joined_groups(match: re.Match[str], _content: str) -> Optional[str]:
    return "".join(match.groups())


def _cause_effect(match: re.Match[str], _content: str) -> Optional[str]:
    return f"{match.group(1)}だから{match.group(2)}{match.group(3)}"


def _named_cause(match: re.Match[str], _content: str) -> Optional[str]:
    return f"{match.group(1)}が{match.group(2)}"


def _reasoned_thought(match: re.Match[str], content: str) -> Optional[str]:
    if any(keyword in content for keyword in REASONING_KEYWORDS):
        return match.group(1)
    return None


def _pattern(
    name: str,
    regex: str,
    extract: Callable[[re.Match, str], Optional[str]] = _first_group,
) -> InsightPattern:
    return InsightPattern(name=name, regex=re.compile(regex), extract=extract)


INSIGHT_PATTERNS: list[InsightPattern] = [
    # 〜だと気づいた / 〜ことに気づきました
    _pattern("realization", r"(.{3,30})(だと|ことに|って|に)気[づつ](い|き)(た|ました)"),
    # 〜だとわかった / 〜ことがわかりました
    _pattern("understanding", r"(.{3,30})(だと|ことが|って)わか(った|りました)"),
    _pattern("speculation", r"(.{5,40})かもしれない"),
    # 〜だから〜してしまう
    _pattern(
        "cause_effect",
        r"(.{2,25})だから(.{2,25})(してしまう|しちゃう|なる|なっちゃう|開いてしまう)",
        _cause_effect,
    ),
    _pattern("named_cause", r"(.{3,30})が(原因|理由)(だ|です|かも)", _named_cause),
    # 〜するときに〜したくなる
    _pattern(
        "trigger_timing",
        r"(.{2,20})(している|してる|する|した|の|って|てる)(とき|時|後|前)に?"
        r"(.{2,25})(したくなる|見たくなる|開きたくなる)",
        _joined_groups,
    ),
    _pattern("reasoned_thought", r"(.{5,40})と思(う|った|います|いました)", _reasoned_thought),
    _pattern("confession", r"実は(.{10,40})"),
    _pattern("true_feeling", r"本当は(.{10,40})"),
]


def extract_insights(
    messages: Iterable[Message],
    *,
    max_insights: Optional[int] = None,
    min_length: Optional[int] = None,
) -> list[str]:
    """Return up to ``max_insights`` distinct phrases mined from user messages.

    Order follows message order, then pattern order within a message.
    Extraction stops as soon as the cap is reached. Unset limits come from
    the application settings.
    """
    if max_insights is None:
        max_insights = get_settings().max_extracted_insights
    if min_length is None:
        min_length = get_settings().min_insight_length
    if max_insights <= 0:
        return []

    insights: list[str] = []
    seen: set[str] = set()

    for message in messages:
        if message.role != MessageRole.USER:
            continue
        content = message.content

        for pattern in INSIGHT_PATTERNS:
            match = pattern.regex.search(content)
            if match is None:
                continue
            candidate = pattern.extract(match, content)
            if not candidate:
                continue
            candidate = candidate.strip()
            if len(candidate) < min_length or candidate in seen:
                continue

            seen.add(candidate)
            insights.append(candidate)
            logger.debug("Extracted insight via %s: %s", pattern.name, candidate[:40])
            if len(insights) >= max_insights:
                return insights

    return insights
