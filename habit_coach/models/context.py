"""App-side facts about the user that are rendered into every prompt."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class WeeklyTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class UserStats(BaseModel):
    """Today's open attempts and blocks plus the longer-running trend."""

    today_opens: int = Field(default=0, ge=0)
    today_blocked: int = Field(default=0, ge=0)
    weekly_trend: WeeklyTrend = WeeklyTrend.STABLE
    streak_days: int = Field(default=0, ge=0)


class UserGoals(BaseModel):
    primary: str
    purpose: str


class TrainingProgress(BaseModel):
    """Training topic ids the user has finished or started."""

    completed_topic_ids: list[str] = Field(default_factory=list)
    in_progress_topic_ids: list[str] = Field(default_factory=list)


class UserContext(BaseModel):
    stats: UserStats = Field(default_factory=UserStats)
    goals: Optional[UserGoals] = None
    training: TrainingProgress = Field(default_factory=TrainingProgress)
