"""
Session Registry
================

Single source of truth mapping session IDs to open channels.
"""

from typing import Dict, List, Optional
import uuid

from sse_bridge.core.errors import UnknownSessionError

from .channel import SessionChannel


class SessionRegistry:
    """
    Tracks open streaming sessions.

    Mutations are plain dictionary operations with no suspension point, so
    they are atomic under cooperative scheduling.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, SessionChannel] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def register(self, channel: SessionChannel) -> str:
        """
        Register a channel under a fresh session ID.

        The ID is unique among currently registered sessions.
        """
        session_id = uuid.uuid4().hex
        while session_id in self._sessions:
            session_id = uuid.uuid4().hex
        self._sessions[session_id] = channel
        return session_id

    def lookup(self, session_id: str) -> SessionChannel:
        """
        Find the channel for a session.

        Raises:
            UnknownSessionError: If the session is not registered
        """
        channel = self._sessions.get(session_id)
        if channel is None:
            raise UnknownSessionError(session_id)
        return channel

    def unregister(self, session_id: str) -> Optional[SessionChannel]:
        """Remove a session. Unknown IDs are ignored."""
        return self._sessions.pop(session_id, None)

    def session_ids(self) -> List[str]:
        return list(self._sessions)

    def channels(self) -> List[SessionChannel]:
        return list(self._sessions.values())
