"""Request and response bodies for the HTTP surface."""

from typing import Optional

from pydantic import BaseModel, Field

from habit_coach.models.guided import GuidedConversationState, GuidedStep
from habit_coach.models.messages import Message
from habit_coach.models.sessions import Session


class StartSessionRequest(BaseModel):
    mode_id: str = "free"


class TextRequest(BaseModel):
    """A user message, greeting or guided-step answer."""

    text: str = Field(min_length=1)


class SendMessageResponse(BaseModel):
    """The reply, and the active session (null if it ended mid-generation)."""

    reply: Message
    session: Optional[Session] = None


class GuidedStateResponse(BaseModel):
    """Guided progress; ``state`` is null once the conversation completed."""

    state: Optional[GuidedConversationState] = None
    current_step: Optional[GuidedStep] = None
    completed: bool = False


class StartGuidedRequest(BaseModel):
    template_id: str
