"""
Test Helpers
============

Helper functions for driving bridge sessions in tests: reading SSE frames
from a session stream and posting JSON-RPC messages.
"""

import asyncio
import json
import time
from typing import Any, AsyncIterator, Callable, Dict, Optional, Tuple

from sse_bridge.api.sse.bridge import BridgeSession, TransportBridge

PROTOCOL_VERSION = "2024-11-05"


async def wait_for_condition(
    condition: Callable[[], bool],
    timeout: float = 5.0,
    interval: float = 0.01,
    error_message: str = "Condition not met within timeout",
) -> None:
    """Wait for a condition to become true."""
    start_time = time.time()

    while time.time() - start_time < timeout:
        if condition():
            return
        await asyncio.sleep(interval)

    raise TimeoutError(error_message)


def parse_sse_frame(frame: str) -> Dict[str, str]:
    """Split one SSE frame into its event name and (joined) data."""
    event = "message"
    data_lines = []
    for line in frame.splitlines():
        if line.startswith("event: "):
            event = line[len("event: "):]
        elif line.startswith("data: "):
            data_lines.append(line[len("data: "):])
    return {"event": event, "data": "\n".join(data_lines)}


async def next_frame(stream: AsyncIterator[str], timeout: float = 5.0) -> str:
    """Next raw frame from a session stream, keep-alive comments included."""
    return await asyncio.wait_for(stream.__anext__(), timeout=timeout)


async def read_message(
    stream: AsyncIterator[str], request_id: Optional[int] = None, timeout: float = 5.0
) -> Dict[str, Any]:
    """
    Read the next protocol message from a session stream.

    Keep-alive comments are skipped. With ``request_id``, messages that are
    not the response to that request (e.g. log notifications) are skipped too.
    """
    deadline = time.time() + timeout
    while True:
        frame = await next_frame(stream, timeout=max(deadline - time.time(), 0.01))
        if frame.startswith(":"):
            continue
        parsed = parse_sse_frame(frame)
        assert parsed["event"] == "message"
        message = json.loads(parsed["data"])
        if request_id is None or message.get("id") == request_id:
            return message


def jsonrpc_request(request_id: int, method: str, params: Optional[Dict[str, Any]] = None) -> bytes:
    payload: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        payload["params"] = params
    return json.dumps(payload).encode()


def jsonrpc_notification(method: str, params: Optional[Dict[str, Any]] = None) -> bytes:
    payload: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        payload["params"] = params
    return json.dumps(payload).encode()


def initialize_request(request_id: int = 1) -> bytes:
    return jsonrpc_request(
        request_id,
        "initialize",
        {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": "bridge-test-client", "version": "1.0.0"},
        },
    )


async def open_session(
    bridge: TransportBridge, credential: str
) -> Tuple[BridgeSession, AsyncIterator[str], str]:
    """
    Connect, start streaming, and consume the endpoint handshake.

    Returns:
        The session, its SSE frame stream, and the assigned session ID
    """
    session = await bridge.connect(credential)
    stream = bridge.stream(session)
    handshake = parse_sse_frame(await next_frame(stream))
    assert handshake["event"] == "endpoint"
    session_id = handshake["data"].split("sessionId=", 1)[1]
    return session, stream, session_id


async def initialize_session(
    bridge: TransportBridge, session_id: str, stream: AsyncIterator[str]
) -> Dict[str, Any]:
    """Run the MCP initialization handshake over a session; returns the initialize response."""
    await bridge.handle_post(session_id, initialize_request(1))
    response = await read_message(stream, request_id=1)
    await bridge.handle_post(session_id, jsonrpc_notification("notifications/initialized"))
    return response
