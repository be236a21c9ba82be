"""
Testes dos gerenciadores de lock por título.
"""

import asyncio
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, LockError

from reservation_engine.core.exceptions import TransientInfraError
from reservation_engine.core.locks import (
    LocalTitleLockManager,
    RedisTitleLockManager,
    TitleLockManager,
    get_lock_manager,
)

pytestmark = pytest.mark.anyio


# ==========================================
# LocalTitleLockManager
# ==========================================

class TestLocalTitleLockManager:
    """Testes para locks em memória."""

    async def test_acquire_and_release(self):
        locks = LocalTitleLockManager(timeout=1.0)
        title_id = uuid.uuid4()

        async with locks.acquire(title_id):
            assert locks.is_locked(title_id) is True

        assert locks.is_locked(title_id) is False
        assert locks._locks == {}

    async def test_same_title_is_serialized(self):
        locks = LocalTitleLockManager(timeout=1.0)
        title_id = uuid.uuid4()
        events = []

        async def worker(name):
            async with locks.acquire(title_id):
                events.append(f"{name}:in")
                await asyncio.sleep(0.01)
                events.append(f"{name}:out")

        await asyncio.gather(worker("a"), worker("b"))

        assert events in (
            ["a:in", "a:out", "b:in", "b:out"],
            ["b:in", "b:out", "a:in", "a:out"],
        )
        assert locks._locks == {}

    async def test_different_titles_are_independent(self):
        locks = LocalTitleLockManager(timeout=0.1)
        title_a, title_b = uuid.uuid4(), uuid.uuid4()

        async with locks.acquire(title_a):
            async with locks.acquire(title_b):
                assert locks.is_locked(title_a)
                assert locks.is_locked(title_b)

    async def test_timeout_raises_transient_error(self):
        locks = LocalTitleLockManager(timeout=0.05)
        title_id = uuid.uuid4()

        async with locks.acquire(title_id):
            with pytest.raises(TransientInfraError):
                async with locks.acquire(title_id):
                    pass

        assert locks._locks == {}
        assert locks._waiters == {}

    async def test_lock_released_on_error(self):
        locks = LocalTitleLockManager(timeout=0.1)
        title_id = uuid.uuid4()

        with pytest.raises(RuntimeError):
            async with locks.acquire(title_id):
                raise RuntimeError("boom")

        assert locks.is_locked(title_id) is False


# ==========================================
# RedisTitleLockManager
# ==========================================

def make_redis_client(acquired=True, acquire_error=None, release_error=None):
    lock = MagicMock()
    lock.acquire = AsyncMock(return_value=acquired, side_effect=acquire_error)
    lock.release = AsyncMock(side_effect=release_error)
    client = MagicMock()
    client.lock = MagicMock(return_value=lock)
    return client, lock


class TestRedisTitleLockManager:
    """Testes para o lock distribuído (cliente Redis mockado)."""

    async def test_acquire_uses_title_key(self):
        client, lock = make_redis_client()
        locks = RedisTitleLockManager(timeout=2.0, ttl=30, client=client)
        title_id = uuid.uuid4()

        async with locks.acquire(title_id):
            pass

        client.lock.assert_called_once_with(
            f"lock:book_title:{title_id}",
            timeout=30,
            blocking_timeout=2.0,
        )
        lock.acquire.assert_awaited_once()
        lock.release.assert_awaited_once()

    async def test_not_acquired_raises_transient_error(self):
        client, lock = make_redis_client(acquired=False)
        locks = RedisTitleLockManager(timeout=0.1, ttl=30, client=client)

        with pytest.raises(TransientInfraError):
            async with locks.acquire(uuid.uuid4()):
                pass

        lock.release.assert_not_awaited()

    async def test_redis_error_raises_transient_error(self):
        client, _ = make_redis_client(acquire_error=RedisConnectionError("down"))
        locks = RedisTitleLockManager(timeout=0.1, ttl=30, client=client)

        with pytest.raises(TransientInfraError):
            async with locks.acquire(uuid.uuid4()):
                pass

    async def test_lost_lock_on_release_is_logged(self):
        client, lock = make_redis_client(release_error=LockError("expired"))
        locks = RedisTitleLockManager(timeout=0.1, ttl=1, client=client)

        async with locks.acquire(uuid.uuid4()):
            pass

        lock.release.assert_awaited_once()

    async def test_released_when_body_fails(self):
        client, lock = make_redis_client()
        locks = RedisTitleLockManager(timeout=0.1, ttl=30, client=client)

        with pytest.raises(RuntimeError):
            async with locks.acquire(uuid.uuid4()):
                raise RuntimeError("boom")

        lock.release.assert_awaited_once()

    async def test_uninitialized_client(self):
        locks = RedisTitleLockManager(timeout=0.1, ttl=30)

        with patch("reservation_engine.db.redis.redis_client", None):
            with pytest.raises(TransientInfraError):
                async with locks.acquire(uuid.uuid4()):
                    pass


class TestGetLockManager:
    """Seleção do backend de locks pela configuração."""

    def test_local_backend(self):
        settings = MagicMock(LOCK_BACKEND="local", LOCK_TIMEOUT_SECONDS=3.0)
        get_lock_manager.cache_clear()
        try:
            with patch("reservation_engine.core.locks.get_settings", return_value=settings):
                manager = get_lock_manager()
        finally:
            get_lock_manager.cache_clear()

        assert isinstance(manager, LocalTitleLockManager)
        assert manager.timeout == 3.0

    def test_redis_backend(self):
        settings = MagicMock(
            LOCK_BACKEND="redis",
            LOCK_TIMEOUT_SECONDS=3.0,
            LOCK_TTL_SECONDS=20,
        )
        get_lock_manager.cache_clear()
        try:
            with patch("reservation_engine.core.locks.get_settings", return_value=settings):
                manager = get_lock_manager()
        finally:
            get_lock_manager.cache_clear()

        assert isinstance(manager, RedisTitleLockManager)
        assert manager.ttl == 20

    def test_backend_without_acquire_cannot_be_created(self):
        class Incomplete(TitleLockManager):
            pass

        with pytest.raises(TypeError):
            Incomplete()
