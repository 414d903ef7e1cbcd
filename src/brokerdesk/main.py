# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""BrokerDesk - Main Application Module."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from beartype import beartype
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .api.v1 import router as v1_router
from .core.cache import get_cache
from .core.config import get_settings
from .core.database import get_database
from .core.logging_utils import configure_logging, get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifecycle - startup and shutdown."""
    settings = get_settings()
    logger.info("Starting BrokerDesk in %s mode", settings.api_env)

    db = get_database()
    await db.connect()
    logger.info("Database connection pool initialized")

    cache = get_cache()
    await cache.connect()
    logger.info("Redis connection pool initialized")

    yield

    logger.info("Shutting down BrokerDesk")
    await db.disconnect()
    await cache.disconnect()
    logger.info("Database and Redis connections closed")


@beartype
def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance
    """
    configure_logging()
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Quote workflow, client portal and approvals for insurance brokers",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(v1_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint returning API information."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "status": "operational",
            "environment": settings.api_env,
        }

    return app


@beartype
def main() -> None:
    """Run the main application entry point."""
    settings = get_settings()

    uvicorn.run(
        "brokerdesk.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level="info" if not settings.is_production else "error",
    )


if __name__ == "__main__":
    main()
