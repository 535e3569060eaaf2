"""Free-form coaching session endpoints."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from habit_coach.agent.prompts import PromptTooLargeError
from habit_coach.agent.session import GenerationInProgressError
from habit_coach.dependencies import CoachServices, get_services
from habit_coach.models.messages import Message
from habit_coach.models.requests import SendMessageResponse, StartSessionRequest, TextRequest
from habit_coach.models.sessions import Session, SessionEndTrigger, SessionSummary
from habit_coach.personality.loader import list_modes

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=Session)
async def start_session(
    body: StartSessionRequest,
    services: CoachServices = Depends(get_services),
) -> Session:
    """Start a session, or return the one already active."""
    if body.mode_id not in list_modes():
        raise HTTPException(status_code=422, detail=f"Unknown mode: {body.mode_id}")
    return services.sessions.start_session(body.mode_id)


@router.get("/current", response_model=Optional[Session])
async def get_current_session(
    services: CoachServices = Depends(get_services),
) -> Session | None:
    return services.sessions.current_session


@router.post("/greeting", response_model=Message)
async def add_greeting(
    body: TextRequest,
    services: CoachServices = Depends(get_services),
) -> Message:
    return services.sessions.add_ai_greeting(body.text)


@router.post("/messages", response_model=SendMessageResponse)
async def send_message(
    body: TextRequest,
    services: CoachServices = Depends(get_services),
) -> SendMessageResponse:
    """Send a user message and return the assistant reply."""
    try:
        reply = await services.sessions.send_message(body.text)
    except GenerationInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except PromptTooLargeError as exc:
        raise HTTPException(status_code=413, detail="Message is too long") from exc

    return SendMessageResponse(reply=reply, session=services.sessions.current_session)


@router.delete("/current", response_model=Optional[SessionSummary])
async def end_session(
    trigger: SessionEndTrigger = SessionEndTrigger.USER_EXPLICIT,
    services: CoachServices = Depends(get_services),
) -> SessionSummary | None:
    """End the active session; returns its summary, or null if it was empty."""
    return await services.sessions.end_session(trigger)


@router.get("/summaries", response_model=list[SessionSummary])
async def list_summaries(
    services: CoachServices = Depends(get_services),
) -> list[SessionSummary]:
    return services.memory.session_summaries
