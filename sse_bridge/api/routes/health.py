"""
Health Routes
=============

FastAPI routes for health check and runtime statistics endpoints.
"""

from fastapi import APIRouter, Depends

from sse_bridge.api.routes.sse import get_bridge
from sse_bridge.api.sse.bridge import TransportBridge
from sse_bridge.models.schemas import BridgeStats, HealthStatus

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthStatus)
async def health_check(bridge: TransportBridge = Depends(get_bridge)) -> HealthStatus:
    """Basic health check endpoint."""
    return HealthStatus(
        status="healthy",
        version=bridge.settings.app_version,
        tenant_mode=bridge.settings.tenant_mode,
        active_sessions=len(bridge.registry),
        cached_backends=len(bridge.backends),
    )


@router.get("/stats", response_model=BridgeStats)
async def bridge_stats(bridge: TransportBridge = Depends(get_bridge)) -> BridgeStats:
    """Session and backend statistics."""
    return bridge.stats()
