"""
Dependencies FastAPI: sessão, locks, notificações e motor de alocação.

A autorização (dono da carteirinha ou equipe) é responsabilidade do
gateway que chama este serviço.
"""

from datetime import datetime
from typing import Annotated, Callable

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.core.locks import TitleLockManager, get_lock_manager
from reservation_engine.db.session import get_db
from reservation_engine.services.allocation import AllocationEngine, utcnow
from reservation_engine.services.notifications import NotificationEmitter, get_notifier
from reservation_engine.services.reservation import ReservationService


def get_clock() -> Callable[[], datetime]:
    """Relógio usado pelo motor e pelas consultas que dependem de horário."""
    return utcnow


async def get_allocation_engine(
    db: Annotated[AsyncSession, Depends(get_db)],
    locks: Annotated[TitleLockManager, Depends(get_lock_manager)],
    notifier: Annotated[NotificationEmitter, Depends(get_notifier)],
    clock: Annotated[Callable[[], datetime], Depends(get_clock)],
) -> AllocationEngine:
    """Motor de alocação ligado à sessão do request."""
    return AllocationEngine(db, locks, notifier, clock=clock)


async def get_reservation_service(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ReservationService:
    return ReservationService(db)


# Type aliases para uso nos endpoints
DbSession = Annotated[AsyncSession, Depends(get_db)]
Clock = Annotated[Callable[[], datetime], Depends(get_clock)]
Engine = Annotated[AllocationEngine, Depends(get_allocation_engine)]
Reservations = Annotated[ReservationService, Depends(get_reservation_service)]
