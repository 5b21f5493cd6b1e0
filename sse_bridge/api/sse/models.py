"""
SSE Models
==========

Data structures describing streaming sessions.
"""

from enum import Enum


class SessionState(str, Enum):
    """Lifecycle state of one streaming connection."""

    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSED = "closed"
