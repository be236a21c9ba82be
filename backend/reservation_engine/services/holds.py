"""
Hold Manager: separa uma cópia para uma reserva por tempo limitado.

Regras:
    - No máximo um hold por cópia e um hold por reserva
    - Só cópias AVAILABLE e fora de empréstimo podem ser separadas
    - expires_at é um prazo gravado, não um timer: quem remove holds
      vencidos é a varredura (expire_stale_holds)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.core.exceptions import ConflictError, NotFoundError
from reservation_engine.models.enums import CopyStatus
from reservation_engine.models.reservation import ReservationHold
from reservation_engine.repositories.book import BookCopyRepository
from reservation_engine.repositories.hold import HoldRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpiredHold:
    """Hold removido pela varredura."""
    reservation_id: UUID
    book_title_id: UUID
    copy_id: UUID


class HoldManager:
    """Criação, liberação e expiração de holds."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.hold_repo = HoldRepository(db)
        self.copy_repo = BookCopyRepository(db)

    async def create_hold(
        self,
        reservation_id: UUID,
        copy_id: UUID,
        hold_hours: int,
        now: datetime,
    ) -> ReservationHold:
        """
        Separa uma cópia para a reserva até now + hold_hours.

        Todas as verificações acontecem antes de qualquer escrita, então um
        ConflictError deixa a transação intacta.

        Raises:
            NotFoundError: Cópia não encontrada
            ConflictError: Cópia já separada, fora de AVAILABLE ou emprestada;
                ou a reserva já possui um hold
        """
        copy = await self.copy_repo.get_fresh(copy_id)
        if not copy:
            raise NotFoundError("Cópia não encontrada")

        if copy.availability_status != CopyStatus.AVAILABLE:
            raise ConflictError(
                f"Cópia com status {copy.availability_status.value} não pode ser separada"
            )

        if await self.copy_repo.has_open_loan(copy_id):
            raise ConflictError("Cópia está emprestada")

        if await self.hold_repo.get_by_copy(copy_id):
            raise ConflictError("Cópia já está separada para outra reserva")

        if await self.hold_repo.get_by_reservation(reservation_id):
            raise ConflictError("Reserva já possui uma cópia separada")

        hold = await self.hold_repo.create(
            reservation_id=reservation_id,
            copy_id=copy_id,
            expires_at=now + timedelta(hours=hold_hours),
        )
        logger.info(
            f"Hold criado: reserva {reservation_id} -> cópia {copy_id} "
            f"até {hold.expires_at.isoformat()}"
        )
        return hold

    async def release_hold(self, reservation_id: UUID) -> ReservationHold | None:
        """
        Remove o hold da reserva, vigente ou vencido.

        Idempotente: sem hold, não faz nada.

        Returns:
            O hold removido, ou None
        """
        hold = await self.hold_repo.get_by_reservation(reservation_id)
        if hold is None:
            return None

        await self.hold_repo.delete(hold)
        logger.info(f"Hold liberado: reserva {reservation_id} (cópia {hold.copy_id})")
        return hold

    async def expire_stale_holds(
        self,
        now: datetime,
        book_title_id: UUID | None = None,
    ) -> list[ExpiredHold]:
        """
        Remove holds com expires_at <= now.

        Args:
            now: Instante de referência
            book_title_id: Restringe a um título (a varredura chama por título,
                já dentro do lock dele)

        Returns:
            Lista de (reservation_id, book_title_id, copy_id) expirados
        """
        stale = await self.hold_repo.list_stale(now, book_title_id)

        expired = []
        for hold, title_id in stale:
            expired.append(
                ExpiredHold(
                    reservation_id=hold.reservation_id,
                    book_title_id=title_id,
                    copy_id=hold.copy_id,
                )
            )
            await self.db.delete(hold)

        if expired:
            await self.db.flush()
            logger.info(f"{len(expired)} hold(s) vencido(s) removido(s)")

        return expired

    async def titles_with_stale_holds(self, now: datetime) -> list[UUID]:
        """Títulos com holds vencidos (leitura, sem lock)."""
        return await self.hold_repo.titles_with_stale(now)

    async def get_hold(self, reservation_id: UUID) -> ReservationHold | None:
        """Busca o hold de uma reserva."""
        return await self.hold_repo.get_by_reservation(reservation_id)

    async def is_copy_held(self, copy_id: UUID) -> bool:
        """Retorna True se existe hold gravado para a cópia (vencido ou não)."""
        return await self.hold_repo.get_by_copy(copy_id) is not None
