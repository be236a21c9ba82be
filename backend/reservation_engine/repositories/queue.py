"""
Repository para a fila de espera (ReservationQueueEntry).
"""

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.models.enums import ReservationStatus
from reservation_engine.models.reservation import Reservation, ReservationQueueEntry
from reservation_engine.repositories.base import BaseRepository


class QueueRepository(BaseRepository[ReservationQueueEntry]):
    """Repository para entradas da fila de reservas."""

    def __init__(self, db: AsyncSession):
        super().__init__(ReservationQueueEntry, db)

    async def get_by_reservation(self, reservation_id: UUID) -> ReservationQueueEntry | None:
        """Busca a entrada ativa de uma reserva."""
        result = await self.db.execute(
            select(ReservationQueueEntry)
            .where(ReservationQueueEntry.reservation_id == reservation_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def max_position(self, book_title_id: UUID) -> int:
        """Maior posição ocupada na fila do título (0 se vazia)."""
        result = await self.db.execute(
            select(func.max(ReservationQueueEntry.position))
            .where(ReservationQueueEntry.book_title_id == book_title_id)
        )
        return result.scalar_one() or 0

    async def shift_tail(self, book_title_id: UUID, removed_position: int) -> int:
        """
        Decrementa em 1 todas as posições maiores que removed_position.

        Returns:
            Número de entradas deslocadas
        """
        result = await self.db.execute(
            update(ReservationQueueEntry)
            .where(
                ReservationQueueEntry.book_title_id == book_title_id,
                ReservationQueueEntry.position > removed_position,
            )
            .values(position=ReservationQueueEntry.position - 1)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def first_pending(self, book_title_id: UUID) -> UUID | None:
        """Reserva PENDING com a menor posição na fila do título."""
        result = await self.db.execute(
            select(ReservationQueueEntry.reservation_id)
            .join(Reservation, Reservation.id == ReservationQueueEntry.reservation_id)
            .where(
                ReservationQueueEntry.book_title_id == book_title_id,
                Reservation.status == ReservationStatus.PENDING,
            )
            .order_by(ReservationQueueEntry.position.asc())
            .limit(1)
        )
        return result.scalars().first()

    async def list_by_title(
        self,
        book_title_id: UUID,
    ) -> list[tuple[ReservationQueueEntry, Reservation]]:
        """Lista entradas da fila com suas reservas, ordenadas por posição."""
        result = await self.db.execute(
            select(ReservationQueueEntry, Reservation)
            .join(Reservation, Reservation.id == ReservationQueueEntry.reservation_id)
            .where(ReservationQueueEntry.book_title_id == book_title_id)
            .order_by(ReservationQueueEntry.position.asc())
            .execution_options(populate_existing=True)
        )
        return [(entry, reservation) for entry, reservation in result.all()]
