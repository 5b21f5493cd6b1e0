"""
SSE Routes
==========

FastAPI routes for the two transport legs: the long-lived streaming
connection and the per-message post endpoint correlated by session ID.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse, StreamingResponse

from sse_bridge.api.auth import resolve_credential
from sse_bridge.api.sse.bridge import TransportBridge
from sse_bridge.config.logging import get_logger
from sse_bridge.config.settings import Settings
from sse_bridge.core.errors import UnknownSessionError

logger = get_logger(__name__)


def get_bridge(request: Request) -> TransportBridge:
    """Dependency returning the application's transport bridge."""
    return request.app.state.bridge


async def connect_sse(
    request: Request, bridge: TransportBridge = Depends(get_bridge)
) -> StreamingResponse:
    """
    Establish an SSE connection.

    Resolves the credential and backend before any streaming begins, so
    credential and construction failures surface as plain HTTP errors.

    Returns:
        Streaming response with SSE protocol formatted events
    """
    credential = resolve_credential(request, bridge.settings)
    logger.info(
        "New SSE connection request",
        client_ip=request.client.host if request.client else "unknown",
    )
    session = await bridge.connect(credential)

    return StreamingResponse(
        bridge.stream(session),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable Nginx buffering
        },
    )


async def post_message(
    request: Request,
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    bridge: TransportBridge = Depends(get_bridge),
) -> PlainTextResponse:
    """
    Deliver one client message to its session.

    The response completes once the session's engine accepts the message;
    the result is delivered over the session's stream.
    """
    if not session_id:
        raise UnknownSessionError("", "sessionId is required")

    body = await request.body()
    await bridge.handle_post(session_id, body)
    return PlainTextResponse("Accepted", status_code=202)


def build_router(settings: Settings) -> APIRouter:
    """Create the transport router on the configured paths."""
    router = APIRouter(tags=["SSE"])
    router.add_api_route(settings.sse_path, connect_sse, methods=["GET"])
    router.add_api_route(settings.message_path, post_message, methods=["POST"], status_code=202)
    return router
