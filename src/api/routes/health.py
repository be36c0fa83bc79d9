"""
Health Check Routes
Service health monitoring endpoints
Source: https://microservices.io/patterns/observability/health-check-api.html
"""

from typing import Any

from fastapi import APIRouter

from src.db.connection import check_db_connection
from src.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])

SERVICE_NAME = "claims-reporting-api"


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Liveness probe for load balancers."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
    }


@router.get("/health/detailed")
async def detailed_health_check() -> dict[str, Any]:
    """Readiness probe; reports the database the readers depend on."""
    db_healthy = await check_db_connection()
    if not db_healthy:
        logger.warning("Health check: database unreachable")

    return {
        "status": "healthy" if db_healthy else "unhealthy",
        "service": SERVICE_NAME,
        "checks": {
            "database": "healthy" if db_healthy else "unhealthy",
        },
    }
