"""Long-term memory endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from habit_coach.dependencies import CoachServices, get_services
from habit_coach.models.memory import LongTermMemory

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=LongTermMemory)
async def get_memory(
    services: CoachServices = Depends(get_services),
) -> LongTermMemory:
    return services.memory.long_term_memory


@router.post("/insights/{insight_id}/confirm")
async def confirm_insight(
    insight_id: str,
    services: CoachServices = Depends(get_services),
) -> dict[str, str]:
    """Mark an insight as confirmed so it is surfaced in future prompts."""
    if not services.memory.confirm_insight(insight_id):
        raise HTTPException(status_code=404, detail="Insight not found")
    await services.memory.save()
    return {"status": "confirmed", "insight_id": insight_id}


@router.delete("")
async def clear_memory(
    services: CoachServices = Depends(get_services),
) -> dict[str, str]:
    await services.memory.clear()
    return {"status": "cleared"}


@router.get("/records")
async def get_records(
    services: CoachServices = Depends(get_services),
) -> dict[str, list]:
    """Urge and success records logged by guided conversations."""
    return {
        "urge_records": [r.model_dump(mode="json") for r in services.records.urge_records],
        "success_records": [r.model_dump(mode="json") for r in services.records.success_records],
    }
