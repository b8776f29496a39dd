"""
Health check endpoints.

Provides detailed health status for the database and attachment storage.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from referral_tracker.core.deps import get_storage
from referral_tracker.core.errors import StorageError
from referral_tracker.core.storage import StorageBackend

router = APIRouter(tags=["Health"])
logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@router.get("/health")
def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns 200 OK if the service is running.
    """
    return {
        "success": True,
        "message": "Server is running",
        "timestamp": _timestamp()
    }


@router.get("/health/detailed")
def detailed_health_check(request: Request, storage: StorageBackend = Depends(get_storage)) -> Dict[str, Any]:
    """
    Detailed health check with dependency status.

    Checks database connectivity and attachment storage availability.
    Error details are logged, not returned.
    """
    health_status = {
        "status": "healthy",
        "timestamp": _timestamp(),
        "checks": {}
    }

    try:
        request.app.state.database.ping()
        health_status["checks"]["database"] = {"status": "healthy"}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = {"status": "unhealthy"}

    try:
        storage.check()
        health_status["checks"]["storage"] = {"status": "healthy"}
    except StorageError as e:
        logger.error(f"Storage health check failed: {e.message}")
        health_status["status"] = "unhealthy"
        health_status["checks"]["storage"] = {"status": "unhealthy"}

    return health_status
