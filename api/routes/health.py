"""
Health check endpoints.

Used for monitoring and load balancer health checks.
"""
from fastapi import APIRouter
from datetime import datetime, timezone
import platform

from pydantic import ValidationError

from core.settings import get_app_settings


router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.

    Returns system health status.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "quick-deploy",
        "version": "1.0.0",
        "python_version": platform.python_version(),
    }


@router.get("/health/ready")
async def readiness_check():
    """
    Readiness check endpoint.

    Ready once the OAuth application and signing key are configured. Upstream
    APIs are not called.
    """
    try:
        get_app_settings()
        configuration = "ok"
    except ValidationError as exc:
        configuration = f"invalid: {exc.error_count()} setting(s)"

    return {
        "status": "ready" if configuration == "ok" else "not_ready",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "api": "ok",
            "configuration": configuration,
        }
    }
