"""
SSE Events
==========

Server-Sent Events type definitions and formatting functions.
Defines the event types a session stream carries and the SSE wire framing.
"""

from typing import List, Union
from datetime import datetime, timezone
from enum import Enum
import json

from mcp.shared.message import SessionMessage


class SSEEventType(str, Enum):
    """Server-Sent Events event types."""

    # Handshake: tells the client where to post its messages
    ENDPOINT = "endpoint"

    # Protocol traffic from the session's engine
    MESSAGE = "message"


def format_sse_event(event_type: str, data: Union[str, dict]) -> str:
    """
    Format data for Server-Sent Events protocol.

    Args:
        event_type: Event type identifier
        data: Event data; strings are sent as-is, dictionaries as compact JSON

    Returns:
        Formatted SSE message string
    """
    lines: List[str] = [f"event: {event_type}"]

    if not isinstance(data, str):
        data = json.dumps(data, default=str, separators=(",", ":"))

    # Multi-line payloads need one data field per line
    for line in data.splitlines() or [""]:
        lines.append(f"data: {line}")

    # SSE protocol requires double newline at end
    lines.append("")
    lines.append("")

    return "\n".join(lines)


def format_endpoint_event(message_path: str, session_id: str) -> str:
    """Handshake event carrying the session's message endpoint."""
    return format_sse_event(SSEEventType.ENDPOINT.value, f"{message_path}?sessionId={session_id}")


def format_message_event(message: SessionMessage) -> str:
    """Protocol message event for one engine output."""
    payload = message.message.model_dump_json(by_alias=True, exclude_none=True)
    return format_sse_event(SSEEventType.MESSAGE.value, payload)


def format_keepalive_comment() -> str:
    """Comment line that keeps idle connections and proxies open."""
    return f": ping - {datetime.now(timezone.utc).isoformat()}\n\n"
