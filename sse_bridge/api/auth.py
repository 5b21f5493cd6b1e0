"""
Credential Resolution
=====================

Resolves the backend credential for an incoming streaming connection.
Credentials are opaque: they are matched, never interpreted.
"""

from typing import Optional

from fastapi import Request

from sse_bridge.config.settings import Settings
from sse_bridge.core.errors import ConfigurationError


def resolve_credential(request: Request, settings: Settings) -> str:
    """
    Determine the credential for a connection.

    Args:
        request: Incoming streaming request
        settings: Active settings

    Returns:
        The static key in single-tenant mode, otherwise the query parameter

    Raises:
        ConfigurationError: If no credential is available
    """
    if settings.is_single_tenant:
        # Settings validation guarantees the key is present in this mode
        return settings.api_key or ""

    api_key: Optional[str] = request.query_params.get(settings.credential_query_param)
    if not api_key:
        raise ConfigurationError("API key is required")
    return api_key
