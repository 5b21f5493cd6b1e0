"""
Capability Surfaces
===================

Protocols describing what the bridge consumes from a backend: a handle that
owns a capability adapter, and the adapter's two views (operation discovery
and a single dispatch entry point).
"""

from typing import Any, Awaitable, Callable, Protocol, Sequence, runtime_checkable

from sse_bridge.models.schemas import OperationDescriptor


@runtime_checkable
class CapabilityAdapter(Protocol):
    """Invocable operations exposed by one backend instance."""

    def list_operations(self) -> Sequence[OperationDescriptor]:
        """Return the static operation descriptors. Pure and synchronous."""
        ...

    async def invoke(self, name: str, arguments: Any) -> Any:
        """Dispatch one operation and return its opaque structured result."""
        ...


@runtime_checkable
class BackendInstance(Protocol):
    """Credential-scoped handle into the external system."""

    @property
    def capabilities(self) -> CapabilityAdapter: ...


BackendFactory = Callable[[str], Awaitable[BackendInstance]]
