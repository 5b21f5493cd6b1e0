"""
Server-Sent Events (SSE) Transport
==================================

SSE transport bridging HTTP clients to per-session MCP engines.

Components:
- Transport Bridge: Orchestrates session lifecycle and message correlation
- Session Registry: Maps session IDs to open channels
- Session Channel: Duplex stream pair between the HTTP legs and an engine
- Events: SSE wire formatting
"""

from .bridge import BridgeSession, TransportBridge
from .channel import SessionChannel
from .events import SSEEventType, format_sse_event
from .models import SessionState
from .registry import SessionRegistry

__all__ = [
    "BridgeSession",
    "TransportBridge",
    "SessionChannel",
    "SSEEventType",
    "format_sse_event",
    "SessionState",
    "SessionRegistry",
]
