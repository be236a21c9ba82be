"""
Rate limiting por IP usando Redis (janela fixa com INCR + EXPIRE).

Configurável via variáveis de ambiente:
    - RATE_LIMIT_ENABLED: bool (default: True)
    - RATE_LIMIT_REQUESTS: int (default: 60)
    - RATE_LIMIT_WINDOW_SECONDS: int (default: 60)

Uso:
    @router.post("/endpoint")
    async def endpoint(
        _: None = Depends(rate_limit_default),
    ):
        ...
"""

import logging
from typing import Optional

from fastapi import HTTPException, Request, status
from redis.exceptions import RedisError

from reservation_engine.core.config import get_settings
from reservation_engine.db import redis as redis_db

logger = logging.getLogger(__name__)
settings = get_settings()


class RateLimiter:
    """
    Dependency para rate limiting.

    Se o Redis não estiver disponível, deixa o request passar (fail-open).

    Args:
        requests: Número máximo de requests na janela (default: config)
        window: Janela em segundos (default: config)
        key_prefix: Prefixo da chave no Redis
    """

    def __init__(
        self,
        requests: Optional[int] = None,
        window: Optional[int] = None,
        key_prefix: str = "rate_limit",
    ):
        self.requests = requests or settings.RATE_LIMIT_REQUESTS
        self.window = window or settings.RATE_LIMIT_WINDOW_SECONDS
        self.key_prefix = key_prefix

    async def __call__(self, request: Request) -> None:
        """
        Verifica rate limit.

        Raises:
            HTTPException 429: Rate limit excedido
        """
        if not settings.RATE_LIMIT_ENABLED:
            return

        client = redis_db.redis_client
        if client is None:
            return

        key = f"{self.key_prefix}:{self._get_identifier(request)}"

        try:
            current = await client.incr(key)
            if current == 1:
                await client.expire(key, self.window)

            if current > self.requests:
                ttl = await client.ttl(key)
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail=f"Rate limit excedido. Tente novamente em {ttl} segundos.",
                    headers={"Retry-After": str(ttl)},
                )
        except RedisError as e:
            logger.warning(f"Rate limit ignorado, erro no Redis: {e}")

    def _get_identifier(self, request: Request) -> str:
        """IP do cliente, respeitando X-Forwarded-For."""
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return f"ip:{forwarded.split(',')[0].strip()}"

        client_ip = request.client.host if request.client else "unknown"
        return f"ip:{client_ip}"


# Instâncias pré-configuradas
rate_limit_default = RateLimiter()
rate_limit_strict = RateLimiter(requests=30, window=60, key_prefix="rate_limit:strict")
