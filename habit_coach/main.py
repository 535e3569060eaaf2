"""FastAPI application entry point with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from habit_coach.api.router import api_router
from habit_coach.config import settings
from habit_coach.dependencies import build_services
from habit_coach.models.sessions import SessionEndTrigger

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    logger.info("Starting habit coach...")

    # Tests may attach prebuilt services
    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(settings)
    services = app.state.services

    await services.startup()
    logger.info("Memory and records loaded")

    yield

    await services.sessions.end_session(SessionEndTrigger.APP_BACKGROUND)
    await services.shutdown()
    logger.info("Habit coach shut down cleanly")


app = FastAPI(
    title="Habit Coach API",
    description="Conversational memory and guidance engine for a short-video habit coach",
    version="0.1.0",
    lifespan=lifespan,
)

# Mount API routes
app.include_router(api_router, prefix="/api")

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
