"""
Skoolife FastAPI Application Entry Point.

Run with: uvicorn skoolife.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from skoolife.config import get_settings
from skoolife.api.routes import (
    auth,
    events,
    files,
    invites,
    schools,
    sessions,
    subjects,
    subscription,
)
from skoolife.services.subscription import SubscriptionCache

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown."""
    # Startup
    app.state.subscription_cache = SubscriptionCache(settings.subscription_cache_ttl_seconds)
    logger.info("%s starting (%s)", settings.app_name, settings.environment)
    yield
    # Shutdown
    app.state.subscription_cache.clear()


app = FastAPI(
    title=settings.app_name,
    description="Study planning API: subjects, revision sessions, calendar, invites and schools",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(subjects.router)
app.include_router(sessions.router)
app.include_router(events.router)
app.include_router(invites.router)
app.include_router(files.router)
app.include_router(schools.router)
app.include_router(subscription.router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
