"""
Session Channel
===============

Duplex handle for one streaming session. Posted client messages flow into
the session's protocol engine through the incoming stream; engine output
flows to the SSE response through the outgoing stream.
"""

from typing import Optional, Union
import time

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from mcp.shared.message import SessionMessage

from sse_bridge.core.errors import UnknownSessionError

from .models import SessionState

IncomingItem = Union[SessionMessage, Exception]


class SessionChannel:
    """
    Pair of in-memory streams connecting the HTTP legs to an engine.

    The incoming stream is unbuffered, so ``deliver`` returns only once the
    engine has accepted the message. The outgoing stream is bounded by
    ``buffer_size``; per-session ordering is the stream's FIFO order.
    """

    def __init__(self, credential_tag: str = "", buffer_size: int = 100) -> None:
        self.session_id: Optional[str] = None
        self.credential_tag = credential_tag
        self.created_at = time.time()
        self.state = SessionState.CONNECTING

        self._incoming_writer: MemoryObjectSendStream[IncomingItem]
        self.read_stream: MemoryObjectReceiveStream[IncomingItem]
        self._incoming_writer, self.read_stream = anyio.create_memory_object_stream(0)

        self.write_stream: MemoryObjectSendStream[SessionMessage]
        self._outgoing_reader: MemoryObjectReceiveStream[SessionMessage]
        self.write_stream, self._outgoing_reader = anyio.create_memory_object_stream(buffer_size)

    @property
    def closed(self) -> bool:
        return self.state == SessionState.CLOSED

    @property
    def age(self) -> float:
        return time.time() - self.created_at

    def activate(self, session_id: str) -> None:
        self.session_id = session_id
        self.state = SessionState.ACTIVE

    async def deliver(self, item: IncomingItem) -> None:
        """
        Hand one posted item to the engine.

        Raises:
            UnknownSessionError: If the session closed before the engine
                accepted the item
        """
        try:
            await self._incoming_writer.send(item)
        except (anyio.ClosedResourceError, anyio.BrokenResourceError) as e:
            raise UnknownSessionError(self.session_id or "") from e

    async def next_outgoing(self, timeout: Optional[float] = None) -> Optional[SessionMessage]:
        """
        Wait for the engine's next message.

        Returns:
            The message, or None if ``timeout`` elapsed first

        Raises:
            anyio.EndOfStream: Once the engine has stopped producing output
        """
        with anyio.move_on_after(timeout):
            return await self._outgoing_reader.receive()
        return None

    def close(self) -> bool:
        """
        Close the transport side of the channel. Synchronous, so it is safe
        to call from a cancelled context.

        Returns:
            True only on the call that actually closed the channel
        """
        if self.state == SessionState.CLOSED:
            return False
        self.state = SessionState.CLOSED
        self._incoming_writer.close()
        self._outgoing_reader.close()
        return True

    def close_engine_side(self) -> None:
        """Close the streams owned by the engine once it has stopped."""
        self.read_stream.close()
        self.write_stream.close()

    def __repr__(self) -> str:
        return f"SessionChannel(session_id={self.session_id!r}, state={self.state.value})"

