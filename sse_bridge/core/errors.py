"""
Bridge Errors
=============

Error taxonomy for the transport bridge. Each error carries the HTTP status
used when it surfaces on the request leg; errors raised inside a session's
protocol engine are reported in-band over the stream instead.
"""


class BridgeError(Exception):
    """Base exception for bridge failures."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(BridgeError):
    """Missing or invalid credential at connection time."""

    status_code = 400


class BackendConstructionError(BridgeError):
    """Backend instance creation failed (rejected credential, network error, timeout)."""

    status_code = 500


class UnknownSessionError(BridgeError):
    """A posted message references a session that is not registered."""

    status_code = 400

    def __init__(self, session_id: str, message: str = "No transport found for sessionId") -> None:
        super().__init__(message)
        self.session_id = session_id


class InvalidMessageError(BridgeError):
    """A posted body is not a valid JSON-RPC message."""

    status_code = 400


class InvocationError(BridgeError):
    """An operation invocation failed inside a session."""

    status_code = 500

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(message)
        self.operation = operation
