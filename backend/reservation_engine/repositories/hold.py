"""
Repository para holds de reserva (ReservationHold).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.models.book import BookCopy
from reservation_engine.models.reservation import ReservationHold
from reservation_engine.repositories.base import BaseRepository


class HoldRepository(BaseRepository[ReservationHold]):
    """Repository para holds de reserva."""

    def __init__(self, db: AsyncSession):
        super().__init__(ReservationHold, db)

    async def get_by_reservation(self, reservation_id: UUID) -> ReservationHold | None:
        """Busca o hold de uma reserva."""
        result = await self.db.execute(
            select(ReservationHold)
            .where(ReservationHold.reservation_id == reservation_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_copy(self, copy_id: UUID) -> ReservationHold | None:
        """Busca o hold gravado para uma cópia (vencido ou não)."""
        result = await self.db.execute(
            select(ReservationHold)
            .where(ReservationHold.copy_id == copy_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_stale(
        self,
        now: datetime,
        book_title_id: UUID | None = None,
    ) -> list[tuple[ReservationHold, UUID]]:
        """
        Lista holds com expires_at <= now junto com o título da cópia.

        Args:
            now: Instante de referência
            book_title_id: Restringe a um título (opcional)
        """
        query = (
            select(ReservationHold, BookCopy.book_title_id)
            .join(BookCopy, BookCopy.id == ReservationHold.copy_id)
            .where(ReservationHold.expires_at <= now)
            .order_by(ReservationHold.expires_at.asc())
        )
        if book_title_id:
            query = query.where(BookCopy.book_title_id == book_title_id)

        result = await self.db.execute(query)
        return [(hold, title_id) for hold, title_id in result.all()]

    async def titles_with_stale(self, now: datetime) -> list[UUID]:
        """IDs dos títulos que têm ao menos um hold vencido."""
        result = await self.db.execute(
            select(BookCopy.book_title_id)
            .join(ReservationHold, ReservationHold.copy_id == BookCopy.id)
            .where(ReservationHold.expires_at <= now)
            .distinct()
        )
        return list(result.scalars().all())

    async def count_active_by_title(self, book_title_id: UUID, now: datetime) -> int:
        """Conta holds vigentes (expires_at > now) das cópias de um título."""
        result = await self.db.execute(
            select(func.count(ReservationHold.id))
            .join(BookCopy, BookCopy.id == ReservationHold.copy_id)
            .where(
                BookCopy.book_title_id == book_title_id,
                ReservationHold.expires_at > now,
            )
        )
        return result.scalar_one()

    async def next_expiry_by_title(self, book_title_id: UUID, now: datetime) -> datetime | None:
        """Menor expires_at entre os holds vigentes do título."""
        result = await self.db.execute(
            select(func.min(ReservationHold.expires_at))
            .join(BookCopy, BookCopy.id == ReservationHold.copy_id)
            .where(
                BookCopy.book_title_id == book_title_id,
                ReservationHold.expires_at > now,
            )
        )
        return result.scalar_one_or_none()
