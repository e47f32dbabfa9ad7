"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and basic connectivity tests.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from app.core.errors import TransientStoreError
from app.core.settings import settings
from app.services.container import get_services
from app.services.location_service import STATIONS_COLLECTION


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_check():
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/db")
def database_health():
    """
    Database connectivity check.
    Runs a lightweight query against the store.
    """
    try:
        get_services().store.find(STATIONS_COLLECTION, limit=1)
    except TransientStoreError:
        raise
    except Exception as e:
        raise TransientStoreError(f"Database connection failed: {type(e).__name__}")

    return {
        "status": "healthy",
        "database": type(get_services().store).__name__,
        "connected": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
