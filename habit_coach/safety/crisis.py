"""Crisis keyword detection.

Runs before any other message processing. A match bypasses generation and
returns a fixed safety response pointing to professional help.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel

from habit_coach.personality.loader import get_response

logger = logging.getLogger(__name__)

# Table order is significant: the first match is reported.
CRISIS_KEYWORDS: tuple[str, ...] = (
    # Kanji spellings
    "死にたい",
    "自殺",
    "消えたい",
    "もう無理",
    "生きていたくない",
    "楽になりたい",
    "終わりにしたい",
    "生きる意味",
    "死んでしまいたい",
    "自分を傷つけたい",
    # Hiragana spellings
    "しにたい",
    "じさつ",
    "きえたい",
    "もうむり",
    "いきていたくない",
    "らくになりたい",
    "おわりにしたい",
    "いきるいみ",
    "しんでしまいたい",
    "じぶんをきずつけたい",
)


class CrisisDetectionResult(BaseModel):
    is_crisis: bool
    matched_keyword: Optional[str] = None


def detect_crisis_keywords(text: str) -> CrisisDetectionResult:
    """Case-insensitive substring search over ``CRISIS_KEYWORDS``.

    If detection itself fails the message is treated as a crisis.
    """
    try:
        normalized = text.lower()
        for keyword in CRISIS_KEYWORDS:
            if keyword in normalized:
                logger.warning("Crisis keyword detected")
                return CrisisDetectionResult(is_crisis=True, matched_keyword=keyword)
        return CrisisDetectionResult(is_crisis=False)
    except Exception:
        logger.exception("Crisis detection failed - treating message as crisis")
        return CrisisDetectionResult(is_crisis=True)


def get_crisis_response() -> str:
    """Fixed localized safety response with professional contacts."""
    return get_response("crisis")


def handle_crisis_if_detected(text: str) -> str | None:
    """Return the crisis response when ``text`` is flagged, else ``None``."""
    if detect_crisis_keywords(text).is_crisis:
        return get_crisis_response()
    return None
