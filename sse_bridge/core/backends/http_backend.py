"""
HTTP Capability Backend
=======================

Default capability provider: a client for a remote capability service.
Construction fetches the operation catalog with the caller's credential;
invocations are forwarded as JSON posts.
"""

from typing import Any, List, Optional, Sequence
import asyncio
import json

import aiohttp

from sse_bridge.config.logging import get_logger
from sse_bridge.config.settings import get_settings
from sse_bridge.core.errors import BackendConstructionError, InvocationError
from sse_bridge.models.schemas import OperationDescriptor

from .cache import credential_fingerprint

logger = get_logger(__name__)


class HttpCapabilityAdapter:
    """Capability adapter backed by the remote service's operation endpoints."""

    def __init__(self, backend: "HttpCapabilityBackend", operations: List[OperationDescriptor]):
        self._backend = backend
        self._operations = tuple(operations)
        self._names = {operation.name for operation in operations}

    def list_operations(self) -> Sequence[OperationDescriptor]:
        return self._operations

    async def invoke(self, name: str, arguments: Any) -> Any:
        if name not in self._names:
            raise InvocationError(name, f"Unknown operation: {name}")
        return await self._backend.post_operation(name, arguments)


class HttpCapabilityBackend:
    """Client for communicating with the remote capability service."""

    def __init__(self, service_url: str, credential: str, timeout: float = 30.0):
        self.service_url = service_url.rstrip("/")
        self.logger: Any = logger.bind(
            component="http_backend", credential=credential_fingerprint(credential)
        )
        self._credential = credential
        self._timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._adapter: Optional[HttpCapabilityAdapter] = None

    @property
    def capabilities(self) -> HttpCapabilityAdapter:
        if self._adapter is None:
            raise RuntimeError("Backend not initialized")
        return self._adapter

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._timeout, connect=10)
            self._session = aiohttp.ClientSession(
                timeout=timeout, headers={"X-API-Key": self._credential}
            )
        return self._session

    async def aclose(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def initialize(self) -> "HttpCapabilityBackend":
        """
        Fetch the operation catalog.

        The HTTP session is closed on any failure, cancellation included.

        Raises:
            BackendConstructionError: If the credential is rejected or the
                catalog cannot be retrieved
        """
        try:
            operations = await self._load_catalog()
        except BaseException:
            await self.aclose()
            raise

        self._adapter = HttpCapabilityAdapter(self, operations)
        self.logger.info("Operation catalog loaded", operations=len(operations))
        return self

    async def _load_catalog(self) -> List[OperationDescriptor]:
        try:
            session = await self._get_session()
            async with session.get(f"{self.service_url}/mcp/schemas") as response:
                if response.status in (401, 403):
                    raise BackendConstructionError("Backend rejected the credential")
                if response.status != 200:
                    body = await response.text()
                    raise BackendConstructionError(
                        f"Failed to fetch operation catalog: HTTP {response.status}: {body[:200]}"
                    )
                payload = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, json.JSONDecodeError) as e:
            raise BackendConstructionError(f"Capability service unavailable: {e!r}") from e

        entries = payload.get("schemas", []) if isinstance(payload, dict) else payload
        try:
            return [OperationDescriptor.from_schema(entry) for entry in entries]
        except (TypeError, ValueError, AttributeError) as e:
            raise BackendConstructionError(f"Invalid operation catalog: {e}") from e

    async def post_operation(self, name: str, arguments: Any) -> Any:
        """Invoke one operation on the remote service."""
        try:
            session = await self._get_session()
            async with session.post(
                f"{self.service_url}/mcp/operations/{name}", json=arguments or {}
            ) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise InvocationError(
                        name, f"Operation '{name}' failed: HTTP {response.status}: {body[:500]}"
                    )
                if response.content_type == "application/json":
                    return await response.json()
                return await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning("Operation request failed", operation=name, error=str(e))
            raise InvocationError(name, f"Operation '{name}' failed: {e!r}") from e


async def create_http_backend(credential: str) -> HttpCapabilityBackend:
    """Backend factory used by the application: one initialized client per credential."""
    settings = get_settings()
    backend = HttpCapabilityBackend(
        settings.backend_url, credential, timeout=settings.invocation_timeout_seconds
    )
    return await backend.initialize()
