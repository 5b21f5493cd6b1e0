"""
FastAPI Application
==================

Main FastAPI application exposing the SSE transport bridge.
Provides the streaming and message endpoints plus health reporting.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional
import asyncio
import functools
import os
import signal
import sys

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
import uvicorn

from sse_bridge.config.settings import get_settings, Settings
from sse_bridge.config.logging import get_logger
from sse_bridge.api.routes.health import router as health_router
from sse_bridge.api.routes.sse import build_router
from sse_bridge.api.sse.bridge import TransportBridge
from sse_bridge.core.backends.capabilities import BackendFactory
from sse_bridge.core.backends.http_backend import create_http_backend
from sse_bridge.core.errors import BackendConstructionError, BridgeError

logger = get_logger(__name__)

# Set when an unhandled asynchronous error requested shutdown
_fatal_error: Optional[BaseException] = None


def handle_loop_exception(
    loop: asyncio.AbstractEventLoop,
    context: Dict[str, Any],
    settings: Optional[Settings] = None,
) -> None:
    """
    Event loop exception handler.

    Unretrieved task exceptions are fatal: they are logged and the process is
    asked to shut down, after which ``main`` exits with a non-zero status.
    Transport-level errors keep the default handling. The lifespan binds the
    application's settings; without them the global settings apply.
    """
    global _fatal_error
    settings = settings or get_settings()
    exception = context.get("exception")
    if (
        exception is None
        or isinstance(exception, OSError)
        or not settings.exit_on_unhandled_error
    ):
        loop.default_exception_handler(context)
        return

    logger.critical(
        "Unhandled asynchronous error",
        message=context.get("message"),
        error_type=type(exception).__name__,
        error=str(exception),
        exc_info=exception,
    )
    if _fatal_error is None:
        _fatal_error = exception
        os.kill(os.getpid(), signal.SIGTERM)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    bridge: TransportBridge = app.state.bridge

    # Startup
    logger.info(
        "Starting SSE tool bridge",
        tenant_mode=settings.tenant_mode,
        sse_path=settings.sse_path,
        message_path=settings.message_path,
    )
    asyncio.get_running_loop().set_exception_handler(
        functools.partial(handle_loop_exception, settings=settings)
    )

    if settings.is_single_tenant and settings.api_key:
        try:
            await bridge.backends.get_or_create(settings.api_key)
            logger.info("Static backend instance initialized")
        except BackendConstructionError as e:
            logger.warning(
                "Static backend warm-up failed, retrying on first connection", error=str(e)
            )

    try:
        yield
    finally:
        # Shutdown
        logger.info("Shutting down SSE tool bridge")
        try:
            await bridge.aclose()
        except Exception as e:
            logger.error("Error closing transport bridge", error=str(e))


async def bridge_error_handler(request: Request, exc: BridgeError) -> PlainTextResponse:
    """Render bridge errors as plain-text bodies with their HTTP status."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request rejected",
        path=request.url.path,
        status_code=exc.status_code,
        error_type=type(exc).__name__,
        detail=exc.message,
    )
    return PlainTextResponse(exc.message, status_code=exc.status_code)


async def general_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """General exception handler for unexpected errors."""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        exception=str(exc),
        exc_info=True,
    )
    return PlainTextResponse("Internal server error", status_code=500)


def create_app(
    settings: Optional[Settings] = None, backend_factory: Optional[BackendFactory] = None
) -> FastAPI:
    """
    Application factory.

    Args:
        settings: Settings to use; defaults to the global settings
        backend_factory: Async callable building a backend instance for a
            credential; defaults to the HTTP capability backend

    Returns:
        FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Server-Sent Events bridge exposing remote tools over MCP",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.bridge = TransportBridge(backend_factory or create_http_backend, settings=settings)

    # Add middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_hosts,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(build_router(settings))
    app.include_router(health_router)

    # Exception handlers
    app.add_exception_handler(BridgeError, bridge_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    return app


app = create_app()


def main() -> None:
    """Process entry point: serve until shutdown, exit non-zero on fatal errors."""
    settings = get_settings()
    try:
        logger.info("Initializing SSE tool bridge", host=settings.host, port=settings.port)
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
            access_log=settings.debug,
        )
    except Exception as e:
        logger.critical("Fatal error in main()", error=str(e), exc_info=True)
        sys.exit(1)

    if _fatal_error is not None:
        sys.exit(1)


if __name__ == "__main__":
    main()
