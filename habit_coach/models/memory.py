"""Long-term memory models persisted across sessions."""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

MEMORY_SCHEMA_VERSION = 1


def _new_id() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Insight(BaseModel):
    """A self-realization mined from conversation or entered by the user."""

    id: str = Field(default_factory=_new_id)
    content: str
    confirmed_by_user: bool = False
    created_at: datetime = Field(default_factory=_now)


class Trigger(BaseModel):
    """A situation that tends to make the user open a short-video app."""

    id: str = Field(default_factory=_new_id)
    trigger: str
    frequency: int = 1
    discovered_at: datetime = Field(default_factory=_now)


class Strategy(BaseModel):
    """A coping strategy with a running effectiveness score in [0, 1]."""

    description: str
    effectiveness: float = Field(default=0.5, ge=0.0, le=1.0)
    usage_count: int = 1


class AIIfThenPlan(BaseModel):
    """An if-then plan formulated during a guided conversation."""

    id: str = Field(default_factory=_new_id)
    trigger: str
    action: str
    created_at: datetime = Field(default_factory=_now)
    is_active: bool = True
    success_count: int = 0
    failure_count: int = 0
    context: Optional[str] = None


class LongTermMemory(BaseModel):
    """Versioned cross-session memory blob."""

    version: int = MEMORY_SCHEMA_VERSION
    confirmed_insights: list[Insight] = Field(default_factory=list)
    plans: list[AIIfThenPlan] = Field(default_factory=list)
    identified_triggers: list[Trigger] = Field(default_factory=list)
    effective_strategies: list[Strategy] = Field(default_factory=list)
