"""
Locks por título de livro.

Toda decisão de alocação (criar hold, mexer na fila, mudar status da reserva)
acontece dentro de uma seção crítica exclusiva do título. Títulos diferentes
nunca compartilham lock.

Backends (LOCK_BACKEND):
    - local: asyncio.Lock por título, suficiente para uma única instância
    - redis: lock distribuído (redis-py) para múltiplas instâncias

Uso:
    locks = get_lock_manager()
    async with locks.acquire(book_title_id):
        ...
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncIterator, Optional
from uuid import UUID

import redis.asyncio as redis
from redis.exceptions import LockError, RedisError

from reservation_engine.core.config import get_settings
from reservation_engine.core.exceptions import TransientInfraError
from reservation_engine.db import redis as redis_db

logger = logging.getLogger(__name__)


class TitleLockManager(ABC):
    """Interface de um gerenciador de locks por título."""

    @abstractmethod
    def acquire(self, book_title_id: UUID):
        """Retorna um async context manager que segura o lock do título."""


class LocalTitleLockManager(TitleLockManager):
    """
    Locks em memória, um asyncio.Lock por título.

    Locks sem nenhum interessado são descartados para que o dicionário
    não cresça com o catálogo inteiro.
    """

    def __init__(self, timeout: float):
        self.timeout = timeout
        self._locks: dict[UUID, asyncio.Lock] = {}
        self._waiters: dict[UUID, int] = {}

    def is_locked(self, book_title_id: UUID) -> bool:
        lock = self._locks.get(book_title_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def acquire(self, book_title_id: UUID) -> AsyncIterator[None]:
        lock = self._locks.setdefault(book_title_id, asyncio.Lock())
        self._waiters[book_title_id] = self._waiters.get(book_title_id, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                logger.warning(f"Timeout aguardando lock do título {book_title_id}")
                raise TransientInfraError(
                    "Título ocupado por outra operação. Tente novamente."
                ) from e
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[book_title_id] -= 1
            if self._waiters[book_title_id] == 0:
                del self._waiters[book_title_id]
                self._locks.pop(book_title_id, None)


class RedisTitleLockManager(TitleLockManager):
    """
    Lock distribuído por título usando redis-py.

    O TTL (LOCK_TTL_SECONDS) libera o título caso a instância morra no meio
    da seção crítica.
    """

    KEY_PREFIX = "lock:book_title"

    def __init__(
        self,
        timeout: float,
        ttl: int,
        client: Optional[redis.Redis] = None,
    ):
        self.timeout = timeout
        self.ttl = ttl
        self._client = client

    def _get_client(self) -> redis.Redis:
        client = self._client or redis_db.redis_client
        if client is None:
            raise TransientInfraError("Redis não inicializado para locks distribuídos")
        return client

    @asynccontextmanager
    async def acquire(self, book_title_id: UUID) -> AsyncIterator[None]:
        client = self._get_client()
        lock = client.lock(
            f"{self.KEY_PREFIX}:{book_title_id}",
            timeout=self.ttl,
            blocking_timeout=self.timeout,
        )

        try:
            acquired = await lock.acquire()
        except RedisError as e:
            logger.warning(f"Erro no Redis ao adquirir lock do título {book_title_id}: {e}")
            raise TransientInfraError("Serviço de locks indisponível") from e

        if not acquired:
            logger.warning(f"Timeout aguardando lock do título {book_title_id}")
            raise TransientInfraError(
                "Título ocupado por outra operação. Tente novamente."
            )

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError as e:
                # TTL venceu antes do fim da seção crítica
                logger.error(f"Lock do título {book_title_id} perdido antes da liberação: {e}")


@lru_cache
def get_lock_manager() -> TitleLockManager:
    """Retorna o gerenciador de locks configurado (instância única por processo)."""
    settings = get_settings()
    if settings.LOCK_BACKEND == "redis":
        return RedisTitleLockManager(
            timeout=settings.LOCK_TIMEOUT_SECONDS,
            ttl=settings.LOCK_TTL_SECONDS,
        )
    return LocalTitleLockManager(timeout=settings.LOCK_TIMEOUT_SECONDS)
