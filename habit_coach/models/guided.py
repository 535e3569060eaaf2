"""Guided conversation templates, state and the records they produce."""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class GuidedOption(BaseModel):
    """A multiple-choice answer offered by a step."""

    label: str
    value: str


class GuidedStep(BaseModel):
    """One question of a guided template."""

    id: str
    prompt: str
    options: list[GuidedOption] = Field(default_factory=list)
    allow_free_input: bool = True


class GuidedTemplate(BaseModel):
    """Fixed, ordered sequence of steps."""

    id: str
    title: str
    description: str
    steps: list[GuidedStep]


class GuidedConversationState(BaseModel):
    """Progress through the active guided template."""

    template_id: str
    current_step_index: int = 0
    responses: dict[str, str] = Field(default_factory=dict)
    is_active: bool = True
    started_at: datetime = Field(default_factory=_now)


class IfThenPlan(BaseModel):
    """Structured plan handed to the application settings collaborator."""

    action: str
    trigger: Optional[str] = None
    custom_action: Optional[str] = None


class UrgeRecord(BaseModel):
    """A logged urge to open a short-video app."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=_now)
    intensity: int = Field(ge=1, le=10)
    trigger: str = ""
    feeling: str = ""


class SuccessRecord(BaseModel):
    """A logged moment the user resisted the urge."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(default_factory=_now)
    method: str = ""
    feeling: str = ""
    tip: str = ""
