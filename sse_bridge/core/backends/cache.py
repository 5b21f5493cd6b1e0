"""
Backend Instance Cache
======================

Maps an opaque credential to a lazily constructed backend instance. At most
one instance exists per credential for the life of the process; concurrent
first requests for the same credential share a single in-flight construction.
"""

from typing import Any, Dict, List, Optional
import asyncio
import hashlib
import time

from sse_bridge.config.logging import get_logger
from sse_bridge.core.errors import BackendConstructionError, BridgeError

from .capabilities import BackendFactory, BackendInstance

logger = get_logger(__name__)


def credential_fingerprint(credential: str) -> str:
    """Short, non-reversible tag for a credential, safe for logs."""
    return hashlib.sha256(credential.encode()).hexdigest()[:12]


class BackendInstanceCache:
    """
    Per-credential backend instance cache.

    Instances are never evicted or refreshed. A failed construction is not
    stored, so the next request for that credential retries.
    """

    def __init__(
        self, factory: BackendFactory, construction_timeout: Optional[float] = None
    ) -> None:
        self._factory = factory
        self._construction_timeout = construction_timeout
        self._instances: Dict[str, BackendInstance] = {}
        self._pending: Dict[str, "asyncio.Task[BackendInstance]"] = {}
        self.logger: Any = logger.bind(component="backend_cache")

    def __len__(self) -> int:
        return len(self._instances)

    def __contains__(self, credential: object) -> bool:
        return credential in self._instances

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def get_or_create(self, credential: str) -> BackendInstance:
        """
        Return the backend instance for a credential, constructing it on first use.

        Args:
            credential: Opaque credential; any string, including empty

        Returns:
            The single live instance for this credential

        Raises:
            BackendConstructionError: If construction fails or times out
        """
        instance = self._instances.get(credential)
        if instance is not None:
            return instance

        task = self._pending.get(credential)
        if task is None:
            task = asyncio.create_task(self._construct(credential))
            self._pending[credential] = task
            task.add_done_callback(self._construction_done)
        else:
            self.logger.debug(
                "Joining in-flight backend construction",
                credential=credential_fingerprint(credential),
            )

        # Shielded so one cancelled waiter (e.g. a client that disconnected
        # mid-handshake) does not abort construction for the others.
        return await asyncio.shield(task)

    async def _construct(self, credential: str) -> BackendInstance:
        try:
            return await self._build(credential)
        finally:
            # No pending entry outlives the construction task
            if self._pending.get(credential) is asyncio.current_task():
                del self._pending[credential]

    async def _build(self, credential: str) -> BackendInstance:
        fingerprint = credential_fingerprint(credential)
        start_time = time.time()
        self.logger.info("Constructing backend instance", credential=fingerprint)

        try:
            instance = await asyncio.wait_for(
                self._factory(credential), timeout=self._construction_timeout
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                "Backend construction timed out",
                credential=fingerprint,
                timeout=self._construction_timeout,
            )
            raise BackendConstructionError(
                f"Backend construction timed out after {self._construction_timeout}s"
            )
        except BridgeError:
            raise
        except Exception as e:
            self.logger.warning(
                "Backend construction failed",
                credential=fingerprint,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise BackendConstructionError(f"Failed to initialize backend: {e}") from e

        self._instances[credential] = instance
        self.logger.info(
            "Backend instance ready",
            credential=fingerprint,
            construction_time=round(time.time() - start_time, 3),
            cached_backends=len(self._instances),
        )
        return instance

    def _construction_done(self, task: "asyncio.Task[BackendInstance]") -> None:
        # Every waiter may have been cancelled; retrieve the outcome so a
        # failure is not reported as never retrieved.
        if not task.cancelled():
            task.exception()

    def instances(self) -> List[BackendInstance]:
        """Snapshot of all constructed instances."""
        return list(self._instances.values())

    async def close(self) -> None:
        """Cancel in-flight constructions and close instances that support it."""
        for task in list(self._pending.values()):
            task.cancel()
        self._pending.clear()

        for credential, instance in list(self._instances.items()):
            closer = getattr(instance, "aclose", None)
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                self.logger.error(
                    "Error closing backend instance",
                    credential=credential_fingerprint(credential),
                    error=str(e),
                )
        self._instances.clear()
