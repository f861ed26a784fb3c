"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and basic connectivity tests.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException

from app.core.errors import PersistenceError
from app.core.settings import settings
from app.services.persistence import ReportStore, get_report_store


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.utcnow().isoformat()
    }


@router.get("/db")
def database_health(store: ReportStore = Depends(get_report_store)):
    """
    Database connectivity check.
    Performs a lightweight read against the configured store.
    """
    try:
        info = store.ping()
    except (PersistenceError, RuntimeError) as e:
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {str(e)}"
        )
    return {
        "status": "healthy",
        "connected": True,
        **info,
        "timestamp": datetime.utcnow().isoformat()
    }
