"""
Health Check Routes
Service health monitoring endpoints
"""

from typing import Any

from fastapi import APIRouter

from claimflow.db.connection import check_db_connection

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    return {"status": "healthy", "service": "claimflow-api"}


@router.get("/health/detailed")
async def detailed_health_check() -> dict[str, Any]:
    """Health including database reachability."""
    db_healthy = await check_db_connection()
    return {
        "status": "healthy" if db_healthy else "unhealthy",
        "service": "claimflow-api",
        "checks": {"database": "healthy" if db_healthy else "unhealthy"},
    }
