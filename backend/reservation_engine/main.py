"""
Ponto de entrada da aplicação FastAPI.

Este módulo configura a aplicação FastAPI, inclui rotas, registra o
handler de erros do motor e define o ciclo de vida (startup/shutdown).
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from reservation_engine.api.v1.router import api_router
from reservation_engine.core.config import get_settings
from reservation_engine.core.exceptions import ReservationEngineError
from reservation_engine.core.locks import get_lock_manager
from reservation_engine.core.logging import setup_logging, get_logger
from reservation_engine.db.session import async_session_factory, check_database_connection, engine
from reservation_engine.db.redis import init_redis, close_redis, check_redis_connection
from reservation_engine.schemas.base import ErrorResponse
from reservation_engine.schemas.health import HealthResponse
from reservation_engine.services.notifications import get_notifier
from reservation_engine.services.sweeper import sweep_periodically

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Gerencia o ciclo de vida da aplicação.

    Startup:
        - Configura logging
        - Conecta ao Redis (cache, rate limit e locks distribuídos)
        - Verifica conexão com PostgreSQL
        - Agenda a varredura de holds (se SWEEP_INTERVAL_SECONDS > 0)

    Shutdown:
        - Cancela a varredura
        - Fecha conexão com Redis
        - Fecha pool de conexões do banco
    """
    # Startup
    setup_logging()
    logger.info(f"Iniciando {settings.APP_NAME} em ambiente {settings.ENVIRONMENT}")

    try:
        await init_redis()
        if await check_redis_connection():
            logger.info("Conexão com Redis estabelecida")
        elif settings.LOCK_BACKEND == "redis":
            logger.error("Redis não disponível - locks distribuídos vão falhar")
        else:
            logger.warning("Redis não disponível - cache e rate limit desabilitados")
    except Exception as e:
        logger.warning(f"Falha ao conectar ao Redis: {e}")

    try:
        success, error = await check_database_connection()
        if success:
            logger.info("Conexão com PostgreSQL estabelecida")
        else:
            logger.warning(f"PostgreSQL não disponível: {error}")
    except Exception as e:
        logger.warning(f"Falha ao conectar ao PostgreSQL: {e}")

    sweep_task = None
    if settings.SWEEP_INTERVAL_SECONDS > 0:
        sweep_task = asyncio.create_task(
            sweep_periodically(
                settings.SWEEP_INTERVAL_SECONDS,
                async_session_factory,
                get_lock_manager(),
                get_notifier(),
            )
        )

    yield

    # Shutdown
    logger.info(f"Encerrando {settings.APP_NAME}")
    if sweep_task is not None:
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description="Motor de alocação e fila de reservas de livros",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Inclui rotas da API v1
app.include_router(api_router)


@app.exception_handler(ReservationEngineError)
async def reservation_engine_error_handler(
    request: Request,
    exc: ReservationEngineError,
) -> JSONResponse:
    """Converte erros do motor em ErrorResponse."""
    headers = {"Retry-After": "1"} if exc.status_code == 503 else None
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.error_code, message=exc.message).model_dump(
            exclude_none=True
        ),
        headers=headers,
    )


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Verifica status da aplicação",
    description="Retorna o status atual da aplicação e informações básicas do ambiente.",
)
async def health_check() -> HealthResponse:
    """
    Endpoint de healthcheck para monitoramento.

    Útil para load balancers e sistemas de monitoramento.
    """
    return HealthResponse(
        status="healthy",
        app_name=settings.APP_NAME,
        environment=settings.ENVIRONMENT,
        lock_backend=settings.LOCK_BACKEND,
    )
