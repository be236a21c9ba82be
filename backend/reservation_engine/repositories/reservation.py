"""
Repository para operações de Reservation no banco de dados.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.models.enums import ReservationStatus
from reservation_engine.models.reservation import Reservation
from reservation_engine.repositories.base import BaseRepository


class ReservationRepository(BaseRepository[Reservation]):
    """Repository para operações de Reservation."""

    def __init__(self, db: AsyncSession):
        super().__init__(Reservation, db)

    async def get_active_by_card_and_title(
        self,
        card_id: UUID,
        book_title_id: UUID,
    ) -> Reservation | None:
        """
        Busca reserva ativa (PENDING ou READY) de uma carteirinha para um título.

        Usado para verificar duplicatas antes de criar nova reserva.
        """
        result = await self.db.execute(
            select(Reservation)
            .where(
                Reservation.card_id == card_id,
                Reservation.book_title_id == book_title_id,
                Reservation.status.in_(ReservationStatus.active()),
            )
            .order_by(Reservation.reservation_date)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def count_active_by_card(self, card_id: UUID) -> int:
        """Conta reservas ativas (PENDING ou READY) de uma carteirinha."""
        result = await self.db.execute(
            select(func.count(Reservation.id))
            .where(
                Reservation.card_id == card_id,
                Reservation.status.in_(ReservationStatus.active()),
            )
        )
        return result.scalar_one()

    async def get_active_by_card(self, card_id: UUID) -> list[Reservation]:
        """Lista reservas ativas de uma carteirinha, mais antigas primeiro."""
        result = await self.db.execute(
            select(Reservation)
            .where(
                Reservation.card_id == card_id,
                Reservation.status.in_(ReservationStatus.active()),
            )
            .order_by(Reservation.reservation_date.asc())
        )
        return list(result.scalars().all())

    async def update_status(
        self,
        reservation: Reservation,
        status: ReservationStatus,
        expiration_date: datetime | None = None,
    ) -> Reservation:
        """Atualiza status (e prazo de retirada) de uma reserva."""
        reservation.status = status
        reservation.expiration_date = expiration_date
        await self.db.flush()
        return reservation
