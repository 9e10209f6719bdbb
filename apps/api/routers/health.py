"""
Health Router for the Price History Crawler API
System health checks and status endpoints
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from apps.api.models.schemas import HealthResponse
from apps.api.routers.crawl import get_registry
from pricecrawler import __version__
from pricecrawler.progress import SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Health"])

API_VERSION = __version__


@router.get("/health", response_model=HealthResponse)
async def health_check(registry: SessionRegistry = Depends(get_registry)):
    """
    Health check endpoint for monitoring and load balancers.

    Reports the number of crawl sessions currently streaming.
    """
    return HealthResponse(
        status="healthy",
        version=API_VERSION,
        active_sessions=len(registry),
        timestamp=datetime.now(timezone.utc)
    )


@router.get("/health/live")
async def liveness_check():
    """
    Liveness probe endpoint.

    Returns 200 if the server is responding.
    """
    return {"alive": True, "timestamp": datetime.now(timezone.utc).isoformat()}
