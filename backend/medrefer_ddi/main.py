"""FastAPI application for the MedRefer drug interaction engine."""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from medrefer_ddi import __version__
from medrefer_ddi.api import alerts_router, interactions_router
from medrefer_ddi.core.config import settings
from medrefer_ddi.core.database import close_db, init_db
from medrefer_ddi.core.redis import close_redis, ping_redis
from medrefer_ddi.services.drug_interaction_service import (
    get_drug_interaction_service,
    reset_drug_interaction_service,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "medrefer-ddi"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    - Startup: create alert tables in debug mode, load the knowledge base
    - Shutdown: close feed subscriptions, Redis and database connections
    """
    startup_start = time.perf_counter()

    if settings.debug and settings.alert_store_backend == "database":
        await init_db()

    service = get_drug_interaction_service()
    result = await service.initialize()
    if result.is_success:
        logger.info(
            f"Knowledge base loaded: {result.data['total_interactions']} interactions, "
            f"{result.data['unique_drugs']} drugs"
        )
    else:
        # Requests will retry initialization and report the failure per call
        logger.error(f"Knowledge base failed to load ({result.error_kind}): {result.error_message}")

    app.state.startup_time_ms = (time.perf_counter() - startup_start) * 1000
    logger.info(f"Server ready - total startup time: {app.state.startup_time_ms:.0f}ms")

    yield

    reset_drug_interaction_service()
    close_redis()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Drug interaction checking, per-patient alerts and medication risk assessment.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(interactions_router, prefix=settings.api_v1_prefix)
app.include_router(alerts_router, prefix=settings.api_v1_prefix)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Health check endpoint (liveness probe).

    Use /ready for readiness checks.
    """
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict[str, Any]:
    """Readiness check endpoint.

    Ready once the interaction knowledge base is loaded.
    """
    service = get_drug_interaction_service()
    stats = service.get_stats()
    return {
        "status": "ready" if service.is_initialized else "initializing",
        "service": SERVICE_NAME,
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
        "startup_time_ms": getattr(app.state, "startup_time_ms", 0),
        "engine": stats,
        "redis": ping_redis() if settings.redis_notifications_enabled else None,
    }


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "service": "MedRefer Drug Interaction API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready",
    }
