"""Guided conversation endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from habit_coach.dependencies import CoachServices, get_services
from habit_coach.guided.templates import GUIDED_TEMPLATES, get_current_step
from habit_coach.models.guided import GuidedConversationState, GuidedTemplate
from habit_coach.models.requests import GuidedStateResponse, StartGuidedRequest, TextRequest

logger = logging.getLogger(__name__)
router = APIRouter()


def _state_response(state: GuidedConversationState | None) -> GuidedStateResponse:
    if state is None:
        return GuidedStateResponse(completed=True)
    return GuidedStateResponse(
        state=state,
        current_step=get_current_step(state.template_id, state.current_step_index),
    )


@router.get("/templates", response_model=list[GuidedTemplate])
async def list_templates() -> list[GuidedTemplate]:
    return list(GUIDED_TEMPLATES.values())


@router.get("", response_model=GuidedStateResponse)
async def get_guided_state(
    services: CoachServices = Depends(get_services),
) -> GuidedStateResponse:
    state = services.guided.state
    if state is None:
        return GuidedStateResponse()
    return _state_response(state)


@router.post("", response_model=GuidedStateResponse)
async def start_guided(
    body: StartGuidedRequest,
    services: CoachServices = Depends(get_services),
) -> GuidedStateResponse:
    state = services.guided.start_guided_conversation(body.template_id)
    if state is None:
        raise HTTPException(status_code=404, detail="Guided template not found")
    return _state_response(state)


@router.post("/steps", response_model=GuidedStateResponse)
async def advance_step(
    body: TextRequest,
    services: CoachServices = Depends(get_services),
) -> GuidedStateResponse:
    """Answer the current step; ``completed`` is true after the last one."""
    if services.guided.state is None:
        raise HTTPException(status_code=409, detail="No guided conversation is active")
    state = await services.guided.advance_guided_step(body.text)
    return _state_response(state)


@router.delete("")
async def cancel_guided(
    services: CoachServices = Depends(get_services),
) -> dict[str, str]:
    services.guided.cancel_guided_conversation()
    return {"status": "cancelled"}
