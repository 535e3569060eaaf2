"""Health check endpoint for infrastructure monitoring."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends

from habit_coach.dependencies import CoachServices, get_services

logger = logging.getLogger(__name__)
router = APIRouter()


async def _check_storage(services: CoachServices) -> dict[str, Any]:
    """Ping the storage backend and return status."""
    try:
        await services.backend.ping()
        return {"status": "healthy", "backend": services.settings.storage_backend}
    except Exception as exc:
        logger.warning("Storage health check failed: %s", exc)
        return {"status": "unhealthy", "error": str(exc)}


@router.get("")
async def health_check(
    services: CoachServices = Depends(get_services),
) -> dict[str, Any]:
    """Return aggregate health of the coach services."""
    service_status = {
        "storage": await _check_storage(services),
        "memory": {"status": "healthy" if services.memory.is_loaded else "unhealthy"},
    }

    overall = (
        "healthy"
        if all(s["status"] == "healthy" for s in service_status.values())
        else "degraded"
    )

    return {
        "status": overall,
        "services": service_status,
        "encrypted": services.secure.is_encrypted,
    }
