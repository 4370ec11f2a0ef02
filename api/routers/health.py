"""Health check endpoints for the StackAlchemy API.

This module provides endpoints for monitoring application health,
readiness, and liveness. Used by orchestration systems like Kubernetes.
"""

from enum import Enum

import structlog
from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from api.dependencies import ProjectStoreDep, SettingsDep

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Response model for the basic health check."""

    status: HealthStatus = Field(..., description="Health status")
    message: str | None = Field(None, description="Optional status message")


class ReadinessResponse(BaseModel):
    """Response model for readiness check.

    Attributes:
        status: Overall readiness status.
        checks: Individual service check results.
    """

    status: HealthStatus = Field(..., description="Overall readiness status")
    checks: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description="Individual service check results",
    )


class LivenessResponse(BaseModel):
    """Response model for liveness check."""

    status: HealthStatus = Field(..., description="Liveness status")


@router.get(
    "",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Returns basic health status of the API.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """Basic health check that does not touch external services."""
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        message=f"{settings.app_name} is running",
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Checks if the database is reachable.",
    responses={
        status.HTTP_200_OK: {"description": "Application is ready"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Application is not ready"},
    },
)
async def readiness_check(store: ProjectStoreDep, response: Response) -> ReadinessResponse:
    """Readiness check endpoint.

    Args:
        store: Relational store used for the database check.
        response: Response whose status is set to 503 when not ready.

    Returns:
        ReadinessResponse with check results for each service.
    """
    database = await store.health_check()
    healthy = database.get("status") == HealthStatus.HEALTHY.value
    if not healthy:
        logger.warning("database_health_check_failed", message=database.get("message"))
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
        checks={"database": database},
    )


@router.get(
    "/live",
    response_model=LivenessResponse,
    summary="Liveness check",
    description="Checks if the application process is alive.",
)
async def liveness_check() -> LivenessResponse:
    """Liveness check endpoint.

    Returns:
        LivenessResponse with alive status.
    """
    return LivenessResponse(status=HealthStatus.HEALTHY)
