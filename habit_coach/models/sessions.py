"""Session models for conversation management."""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from habit_coach.models.messages import Message


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SessionEndTrigger(str, Enum):
    """Why a session ended. Recorded for observability only."""

    USER_EXPLICIT = "user_explicit"
    APP_BACKGROUND = "app_background"
    INACTIVITY = "inactivity"
    NAVIGATION_AWAY = "navigation_away"
    TOKEN_OVERFLOW = "token_overflow"


class Session(BaseModel):
    """The single active free-form conversation."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    messages: list[Message] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=_now)
    last_activity_at: datetime = Field(default_factory=_now)
    mode_id: str = "free"


class SessionSummary(BaseModel):
    """Digest of an ended session kept in long-term storage."""

    session_id: str
    date: datetime = Field(default_factory=_now)
    summary: str
    insights: list[str] = Field(default_factory=list)
    message_count: int = 0
    duration_minutes: int = 0
