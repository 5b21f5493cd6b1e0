"""
Unit Tests for Backend Instance Cache
=====================================

Construct-once semantics per credential, failure handling, and shutdown.
"""

import asyncio

import pytest

from sse_bridge.core.backends.cache import BackendInstanceCache, credential_fingerprint
from sse_bridge.core.errors import BackendConstructionError

from tests.utils.mocks import MockBackendFactory


@pytest.mark.unit
class TestCredentialFingerprint:
    """Test log-safe credential tags."""

    def test_fingerprint_is_stable_and_short(self):
        assert credential_fingerprint("tenant-a") == credential_fingerprint("tenant-a")
        assert len(credential_fingerprint("tenant-a")) == 12

    def test_fingerprint_does_not_leak_credential(self):
        assert "secret" not in credential_fingerprint("secret-key")
        assert credential_fingerprint("a") != credential_fingerprint("b")


@pytest.mark.unit
class TestBackendInstanceCache:
    """Test the per-credential instance cache."""

    @pytest.mark.asyncio
    async def test_first_request_constructs_instance(self):
        factory = MockBackendFactory()
        cache = BackendInstanceCache(factory)

        backend = await cache.get_or_create("tenant-a")

        assert backend.credential == "tenant-a"
        assert "tenant-a" in cache
        assert len(cache) == 1
        assert factory.call_count("tenant-a") == 1

    @pytest.mark.asyncio
    async def test_repeat_requests_reuse_instance(self):
        factory = MockBackendFactory()
        cache = BackendInstanceCache(factory)

        first = await cache.get_or_create("tenant-a")
        second = await cache.get_or_create("tenant-a")

        assert first is second
        assert factory.call_count() == 1

    @pytest.mark.asyncio
    async def test_concurrent_first_requests_share_one_construction(self):
        factory = MockBackendFactory(delay=0.05)
        cache = BackendInstanceCache(factory)

        backends = await asyncio.gather(*(cache.get_or_create("tenant-a") for _ in range(5)))

        assert factory.call_count("tenant-a") == 1
        assert all(backend is backends[0] for backend in backends)
        assert cache.pending_count == 0

    @pytest.mark.asyncio
    async def test_distinct_credentials_get_distinct_instances(self):
        factory = MockBackendFactory()
        cache = BackendInstanceCache(factory)

        first, second = await asyncio.gather(
            cache.get_or_create("tenant-a"), cache.get_or_create("tenant-b")
        )

        assert first is not second
        assert first.capabilities is not second.capabilities
        assert len(cache) == 2

    @pytest.mark.asyncio
    async def test_empty_credential_is_an_ordinary_key(self):
        factory = MockBackendFactory()
        cache = BackendInstanceCache(factory)

        backend = await cache.get_or_create("")

        assert backend.credential == ""
        assert "" in cache

    @pytest.mark.asyncio
    async def test_failure_is_wrapped_and_not_cached(self):
        factory = MockBackendFactory()
        cache = BackendInstanceCache(factory)

        with pytest.raises(BackendConstructionError) as exc_info:
            await cache.get_or_create("bad-key")

        assert "Invalid API key" in exc_info.value.message
        assert "bad-key" not in cache
        assert cache.pending_count == 0

        with pytest.raises(BackendConstructionError):
            await cache.get_or_create("bad-key")
        assert factory.call_count("bad-key") == 2

    @pytest.mark.asyncio
    async def test_failed_construction_leaves_pending_map_when_it_completes(self):
        factory = MockBackendFactory()
        cache = BackendInstanceCache(factory)
        waiter = asyncio.create_task(cache.get_or_create("bad-key"))
        await asyncio.sleep(0)
        construction = cache._pending["bad-key"]

        while not construction.done():
            await asyncio.sleep(0)

        assert "bad-key" not in cache._pending
        retry = asyncio.create_task(cache.get_or_create("bad-key"))
        results = await asyncio.gather(waiter, retry, return_exceptions=True)
        assert all(isinstance(result, BackendConstructionError) for result in results)
        assert factory.call_count("bad-key") == 2

    @pytest.mark.asyncio
    async def test_construction_errors_pass_through_unchanged(self):
        cache = BackendInstanceCache(MockBackendFactory())

        with pytest.raises(BackendConstructionError, match="^Backend rejected the credential$"):
            await cache.get_or_create("revoked-key")

    @pytest.mark.asyncio
    async def test_concurrent_waiters_all_see_failure(self):
        factory = MockBackendFactory(delay=0.05)
        cache = BackendInstanceCache(factory)

        results = await asyncio.gather(
            cache.get_or_create("bad-key"),
            cache.get_or_create("bad-key"),
            return_exceptions=True,
        )

        assert all(isinstance(result, BackendConstructionError) for result in results)
        assert factory.call_count("bad-key") == 1

    @pytest.mark.asyncio
    async def test_construction_timeout(self):
        factory = MockBackendFactory(delay=1.0)
        cache = BackendInstanceCache(factory, construction_timeout=0.05)

        with pytest.raises(BackendConstructionError, match="timed out"):
            await cache.get_or_create("tenant-a")

        assert "tenant-a" not in cache
        assert cache.pending_count == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_abort_construction(self):
        factory = MockBackendFactory(delay=0.1)
        cache = BackendInstanceCache(factory)

        abandoned = asyncio.create_task(cache.get_or_create("tenant-a"))
        await asyncio.sleep(0.01)
        waiting = asyncio.create_task(cache.get_or_create("tenant-a"))
        await asyncio.sleep(0.01)
        abandoned.cancel()

        backend = await waiting

        assert backend.credential == "tenant-a"
        assert factory.call_count("tenant-a") == 1
        assert "tenant-a" in cache

    @pytest.mark.asyncio
    async def test_close_releases_instances(self):
        factory = MockBackendFactory()
        cache = BackendInstanceCache(factory)
        first = await cache.get_or_create("tenant-a")
        second = await cache.get_or_create("tenant-b")

        await cache.close()

        assert first.closed
        assert second.closed
        assert len(cache) == 0
        assert cache.instances() == []
