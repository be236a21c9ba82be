"""
Cache de disponibilidade usando Redis.

Configurável via variáveis de ambiente:
    - CACHE_ENABLED: bool (default: True)
    - CACHE_AVAILABILITY_TTL_SECONDS: int (default: 15)

Uso:
    data = await cache_service.get_availability(book_title_id)
    if data:
        return data

    result = await ledger.availability_summary(book_title_id, now)
    next_expiry = await ledger.next_hold_expiry(book_title_id, now)
    await cache_service.set_availability(
        book_title_id,
        result.model_dump(mode="json"),
        ttl=cache_service.ttl_until(next_expiry, now),
    )

Invalidação:
    Toda operação do motor que altera holds, fila ou status de cópia
    invalida o título afetado (ver api/v1).
    Holds que vencem sozinhos não invalidam nada; por isso o TTL nunca
    passa do próximo vencimento (ttl_until).
"""

import json
import logging
import math
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from reservation_engine.core.config import get_settings
from reservation_engine.db import redis as redis_db

logger = logging.getLogger(__name__)
settings = get_settings()


class CacheService:
    """
    Cache de GET /inventory/titles/{id}/availability.

    Falhas no Redis nunca quebram o request: o cache simplesmente é ignorado.
    """

    PREFIX_AVAILABILITY = "cache:availability"

    def __init__(self, ttl: Optional[int] = None):
        self.ttl = ttl or settings.CACHE_AVAILABILITY_TTL_SECONDS

    def ttl_until(self, deadline: Optional[datetime], now: datetime) -> int:
        """
        TTL do resumo limitado ao próximo vencimento de hold.

        Um hold que vence não passa pelo motor, então nada invalida o cache
        nesse instante; o resumo salvo não pode durar além dele.
        """
        if deadline is None:
            return self.ttl
        if deadline.tzinfo is None:
            deadline = deadline.replace(tzinfo=timezone.utc)
        seconds = math.ceil((deadline - now).total_seconds())
        return max(1, min(self.ttl, seconds))

    def _key(self, book_title_id: UUID) -> str:
        return f"{self.PREFIX_AVAILABILITY}:{book_title_id}"

    async def get_availability(self, book_title_id: UUID) -> Optional[dict]:
        """
        Busca availability do cache.

        Returns:
            Dados de availability ou None se não em cache
        """
        client = redis_db.redis_client
        if not settings.CACHE_ENABLED or client is None:
            return None

        try:
            data = await client.get(self._key(book_title_id))
            if data:
                return json.loads(data)
            return None
        except Exception as e:
            logger.warning(f"Erro ao buscar cache availability: {e}")
            return None

    async def set_availability(
        self,
        book_title_id: UUID,
        data: dict,
        ttl: Optional[int] = None,
    ) -> bool:
        """Salva availability no cache."""
        client = redis_db.redis_client
        if not settings.CACHE_ENABLED or client is None:
            return False

        try:
            await client.setex(
                self._key(book_title_id),
                ttl or self.ttl,
                json.dumps(data, default=str),
            )
            return True
        except Exception as e:
            logger.warning(f"Erro ao salvar cache availability: {e}")
            return False

    async def invalidate_availability(self, *book_title_ids: UUID) -> bool:
        """
        Invalida o cache de um ou mais títulos.

        Deve ser chamado após reservar, cancelar, concluir, expirar holds,
        registrar cópia ou alterar status de cópia.
        """
        client = redis_db.redis_client
        if not settings.CACHE_ENABLED or client is None or not book_title_ids:
            return False

        try:
            await client.delete(*(self._key(title_id) for title_id in book_title_ids))
            return True
        except Exception as e:
            logger.warning(f"Erro ao invalidar cache availability: {e}")
            return False


# Instância global para uso nos endpoints
cache_service = CacheService()
