"""
Varredura periódica de holds vencidos.

Roda dentro do processo da API quando SWEEP_INTERVAL_SECONDS > 0. Em
deploys com várias instâncias, use LOCK_BACKEND=redis ou dispare a
varredura por POST /system/sweep-expired a partir de um agendador externo.
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reservation_engine.core.locks import TitleLockManager
from reservation_engine.schemas.reservation import SweepResult
from reservation_engine.services.allocation import AllocationEngine
from reservation_engine.services.notifications import NotificationEmitter

logger = logging.getLogger(__name__)


async def run_sweep(
    session_factory: async_sessionmaker[AsyncSession],
    locks: TitleLockManager,
    notifier: NotificationEmitter,
    hold_hours: int | None = None,
) -> SweepResult:
    """Executa uma varredura completa em sessão própria."""
    async with session_factory() as session:
        engine = AllocationEngine(session, locks, notifier, hold_hours=hold_hours)
        return await engine.expire_stale_reservations()


async def sweep_periodically(
    interval: float,
    session_factory: async_sessionmaker[AsyncSession],
    locks: TitleLockManager,
    notifier: NotificationEmitter,
) -> None:
    """Loop da varredura; termina quando a task é cancelada."""
    logger.info(f"Varredura de holds agendada a cada {interval}s")
    while True:
        await asyncio.sleep(interval)
        try:
            await run_sweep(session_factory, locks, notifier)
        except Exception:
            logger.exception("Varredura de holds falhou; nova tentativa no próximo ciclo")
