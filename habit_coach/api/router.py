"""Central API router that aggregates all route modules."""

from fastapi import APIRouter

from habit_coach.api.context import router as context_router
from habit_coach.api.guided import router as guided_router
from habit_coach.api.health import router as health_router
from habit_coach.api.memory import router as memory_router
from habit_coach.api.sessions import router as sessions_router

api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["health"])
api_router.include_router(sessions_router, prefix="/sessions", tags=["sessions"])
api_router.include_router(guided_router, prefix="/guided", tags=["guided"])
api_router.include_router(memory_router, prefix="/memory", tags=["memory"])
api_router.include_router(context_router, prefix="/context", tags=["context"])
