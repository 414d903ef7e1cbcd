# BrokerDesk - Insurance Brokerage Workflow Backend
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Health check endpoints for monitoring system status."""

import time
from datetime import datetime, timezone

from beartype import beartype
from fastapi import APIRouter, Depends
from pydantic import Field

from ... import __version__
from ...core.cache import Cache
from ...core.config import Settings, get_settings
from ...core.database import Database
from ...core.logging_utils import get_logger
from ...models.base import BaseModelConfig
from ..dependencies import get_cache, get_db

logger = get_logger(__name__)

router = APIRouter()

APP_START_TIME = datetime.now(timezone.utc)


class HealthStatus(BaseModelConfig):
    """Individual component health status."""

    status: str = Field(..., pattern=r"^(healthy|unhealthy|degraded)$")
    response_time_ms: float | None = Field(default=None, ge=0)
    message: str | None = None


class HealthResponse(BaseModelConfig):
    """Overall system health response."""

    status: str = Field(..., pattern=r"^(healthy|unhealthy|degraded)$")
    timestamp: datetime
    version: str
    environment: str
    components: dict[str, HealthStatus] = Field(default_factory=dict)
    uptime_seconds: float = Field(..., ge=0)


def _uptime() -> float:
    return (datetime.now(timezone.utc) - APP_START_TIME).total_seconds()


@router.get("/health", response_model=HealthResponse)
@beartype
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """Basic liveness information."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        environment=settings.api_env,
        components={"api": HealthStatus(status="healthy", message="API operational")},
        uptime_seconds=_uptime(),
    )


@router.get("/health/ready", response_model=HealthResponse)
@beartype
async def readiness_check(
    db: Database = Depends(get_db),
    cache: Cache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
) -> HealthResponse:
    """Readiness probe: PostgreSQL is required, Redis only degrades."""
    components: dict[str, HealthStatus] = {}
    overall = "healthy"

    db_start = time.perf_counter()
    db_result = await db.health_check()
    db_ms = (time.perf_counter() - db_start) * 1000
    if db_result.is_ok() and db_result.ok_value:
        components["database"] = HealthStatus(
            status="healthy", response_time_ms=db_ms, message="PostgreSQL reachable"
        )
    else:
        logger.error("Database readiness check failed: %s", db_result.err_value)
        components["database"] = HealthStatus(
            status="unhealthy",
            response_time_ms=db_ms,
            message=db_result.err_value or "Unexpected health query result",
        )
        overall = "unhealthy"

    redis_start = time.perf_counter()
    redis_ok = await cache.health_check()
    redis_ms = (time.perf_counter() - redis_start) * 1000
    if redis_ok:
        components["redis"] = HealthStatus(
            status="healthy", response_time_ms=redis_ms, message="Redis reachable"
        )
    else:
        logger.warning("Redis readiness check failed")
        components["redis"] = HealthStatus(
            status="degraded",
            response_time_ms=redis_ms,
            message="Redis unavailable",
        )
        if overall == "healthy":
            overall = "degraded"

    return HealthResponse(
        status=overall,
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        environment=settings.api_env,
        components=components,
        uptime_seconds=_uptime(),
    )
