"""
Transport Bridge
================

Orchestrates streaming sessions: resolves a backend instance per credential,
binds a fresh protocol engine to it, registers the session's channel, and
correlates posted client messages with the right open channel.

Per-connection lifecycle: Connecting -> Active -> Closed.
"""

from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional, Set
import asyncio
import time

import anyio
from mcp.shared.message import SessionMessage
from mcp.types import JSONRPCMessage
from pydantic import ValidationError

from sse_bridge.config.logging import get_logger
from sse_bridge.config.settings import Settings, get_settings
from sse_bridge.core.backends.cache import BackendInstanceCache, credential_fingerprint
from sse_bridge.core.backends.capabilities import BackendFactory
from sse_bridge.core.errors import InvalidMessageError
from sse_bridge.mcp_server.server import ProtocolEngine
from sse_bridge.models.schemas import BridgeStats

from .channel import SessionChannel
from .events import format_endpoint_event, format_keepalive_comment, format_message_event
from .registry import SessionRegistry

logger = get_logger(__name__)


@dataclass
class BridgeSession:
    """A connection that has resolved its backend and bound its engine."""

    channel: SessionChannel
    engine: ProtocolEngine


class TransportBridge:
    """
    Bridge between the SSE/POST transport and per-session MCP engines.

    Handles:
    - Backend resolution per credential (cached, constructed once)
    - One protocol engine per session, bound to that session's backend
    - Correlation of posted messages to open channels by session ID
    - Exactly-once session teardown on any kind of closure
    """

    def __init__(
        self,
        backend_factory: BackendFactory,
        settings: Optional[Settings] = None,
        registry: Optional[SessionRegistry] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.logger: Any = logger.bind(component="transport_bridge")
        self.backends = BackendInstanceCache(
            backend_factory,
            construction_timeout=self.settings.backend_construction_timeout_seconds,
        )
        self.registry = registry or SessionRegistry()
        self.started_at = time.time()
        self._engine_tasks: Set["asyncio.Task[None]"] = set()

    async def connect(self, credential: str) -> BridgeSession:
        """
        Connecting: resolve the backend and bind a fresh engine to it.

        Args:
            credential: Opaque credential for backend resolution

        Returns:
            Session ready to start streaming

        Raises:
            BackendConstructionError: If the backend cannot be constructed
        """
        backend = await self.backends.get_or_create(credential)
        engine = ProtocolEngine(
            backend.capabilities,
            name=self.settings.mcp_server_name,
            version=self.settings.app_version,
            invocation_timeout=self.settings.invocation_timeout_seconds,
        )
        channel = SessionChannel(
            credential_tag=credential_fingerprint(credential),
            buffer_size=self.settings.sse_event_buffer_size,
        )
        return BridgeSession(channel=channel, engine=engine)

    async def stream(self, session: BridgeSession) -> AsyncIterator[str]:
        """
        Active: register the session and stream its SSE frames.

        The session is registered when iteration starts and unregistered when
        iteration ends for any reason: engine shutdown, client disconnect
        (cancellation), or generator close.

        Yields:
            SSE formatted frames
        """
        channel = session.channel
        session_id = self.registry.register(channel)
        channel.activate(session_id)
        session.engine.bind_session(session_id)
        log = self.logger.bind(session_id=session_id, credential=channel.credential_tag)

        engine_task = asyncio.create_task(self._run_engine(session), name=f"engine-{session_id}")
        self._engine_tasks.add(engine_task)
        engine_task.add_done_callback(self._engine_tasks.discard)

        log.info("SSE connection established", active_sessions=len(self.registry))

        try:
            yield format_endpoint_event(self.settings.message_path, session_id)
            while True:
                try:
                    message = await channel.next_outgoing(
                        self.settings.sse_heartbeat_interval_seconds
                    )
                except anyio.EndOfStream:
                    log.debug("Protocol engine finished")
                    break
                if message is None:
                    yield format_keepalive_comment()
                else:
                    yield format_message_event(message)
        finally:
            # Must not await: this also runs while the response task is
            # being cancelled.
            self._close(session, engine_task)

    def _close(self, session: BridgeSession, engine_task: "asyncio.Task[None]") -> None:
        """Closed: unregister and stop feeding the engine, exactly once."""
        channel = session.channel
        if not channel.close():
            return
        if channel.session_id is not None:
            self.registry.unregister(channel.session_id)

        # In-flight invocations may finish; their results have nowhere to go.
        if not engine_task.done():
            asyncio.get_running_loop().call_later(
                self.settings.session_close_grace_seconds, engine_task.cancel
            )

        self.logger.info(
            "SSE connection closed",
            session_id=channel.session_id,
            credential=channel.credential_tag,
            duration=round(channel.age, 3),
            active_sessions=len(self.registry),
        )

    async def _run_engine(self, session: BridgeSession) -> None:
        channel = session.channel
        try:
            await session.engine.run(channel.read_stream, channel.write_stream)
        except Exception as e:
            if channel.closed:
                # Writes to a closed session's stream fail once the
                # session is gone.
                self.logger.debug(
                    "Protocol engine stopped after close",
                    session_id=channel.session_id,
                    error_type=type(e).__name__,
                )
            else:
                self.logger.error(
                    "Protocol engine failed",
                    session_id=channel.session_id,
                    error_type=type(e).__name__,
                    error=str(e),
                    exc_info=True,
                )
        finally:
            channel.close_engine_side()

    async def handle_post(self, session_id: str, body: bytes) -> None:
        """
        Deliver one posted client message to its session's engine.

        Returns once the engine has accepted the message; the response
        travels back over the session's stream.

        Raises:
            UnknownSessionError: If the session is not registered (no side effect)
            InvalidMessageError: If the body is not a JSON-RPC message
        """
        channel = self.registry.lookup(session_id)

        try:
            message = JSONRPCMessage.model_validate_json(body)
        except ValidationError as e:
            self.logger.warning(
                "Could not parse posted message", session_id=session_id, error=str(e)
            )
            await channel.deliver(e)
            raise InvalidMessageError("Could not parse message") from e

        await channel.deliver(SessionMessage(message))

    def stats(self) -> BridgeStats:
        channels = self.registry.channels()
        return BridgeStats(
            active_sessions=len(channels),
            cached_backends=len(self.backends),
            pending_constructions=self.backends.pending_count,
            uptime_seconds=round(time.time() - self.started_at, 3),
            oldest_session_age=(
                round(max(channel.age for channel in channels), 3) if channels else None
            ),
        )

    async def aclose(self) -> None:
        """Shut down: close every session, stop engines, close backends."""
        for session_id in self.registry.session_ids():
            channel = self.registry.unregister(session_id)
            if channel is not None:
                channel.close()

        tasks = list(self._engine_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        await self.backends.close()
        self.logger.info("Transport bridge closed")
