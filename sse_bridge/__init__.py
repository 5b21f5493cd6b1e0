"""
SSE Tool Bridge
===============

A Model Context Protocol (MCP) bridge that exposes a remote capability
provider's tools over a Server-Sent Events transport.

This package provides:
- Per-session MCP protocol engines multiplexed over independent HTTP connections
- A per-credential backend instance cache with lazy, serialized construction
- A session registry correlating posted client messages with open streams
- FastAPI endpoints for the streaming and message legs
"""

__version__ = "1.1.0"
__author__ = "SSE Tool Bridge Team"
