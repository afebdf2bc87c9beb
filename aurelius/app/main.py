"""
Aurelius - SaaS integrations service

FastAPI application entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from aurelius import __version__
from aurelius.app.api import integrations_router, webhooks_router
from aurelius.app.dependencies import (
    get_app_settings,
    get_integration_registry,
    initialize_services,
    shutdown_services,
)

settings = get_app_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Loads the catalogue on startup, closes live integrations on shutdown.
    """
    logger.info("Starting Aurelius services...")
    try:
        await initialize_services()
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise

    yield

    logger.info("Shutting down Aurelius services...")
    try:
        await shutdown_services()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}", exc_info=True)


app = FastAPI(
    title="Aurelius Integrations",
    description="Third-party SaaS integrations with verified webhooks and resilient API access",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(integrations_router, prefix=settings.api_prefix)
app.include_router(webhooks_router, prefix=settings.api_prefix)


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint with service info."""
    return {
        "service": settings.service_name,
        "version": __version__,
        "status": "running",
    }


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, Any]:
    """
    Service health.

    Reports the last health check of every live integration; run
    GET {api_prefix}/integrations/health to probe them again.
    """
    try:
        registry = get_integration_registry()
        summary = registry.get_health_summary()
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}

    return {"status": summary["overall_status"], **summary}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "aurelius.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
