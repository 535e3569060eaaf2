"""User profile and stats pushed by the host app for prompt context."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from habit_coach.dependencies import CoachServices, get_services
from habit_coach.models.context import UserContext

router = APIRouter()


@router.get("", response_model=Optional[UserContext])
async def get_user_context(
    services: CoachServices = Depends(get_services),
) -> UserContext | None:
    return services.user_context.get_user_context()


@router.put("", response_model=UserContext)
async def set_user_context(
    body: UserContext,
    services: CoachServices = Depends(get_services),
) -> UserContext:
    """Replace today's stats, goals and training progress."""
    services.user_context.set_user_context(body)
    return body


@router.delete("")
async def clear_user_context(
    services: CoachServices = Depends(get_services),
) -> dict[str, str]:
    services.user_context.set_user_context(None)
    return {"status": "cleared"}
