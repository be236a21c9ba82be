"""
Repository para notificações.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.models.notification import Notification
from reservation_engine.repositories.base import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Repository para Notification."""

    def __init__(self, db: AsyncSession):
        super().__init__(Notification, db)

    async def get_by_reservation(self, reservation_id: UUID) -> list[Notification]:
        """Lista notificações ligadas a uma reserva, mais recentes primeiro."""
        result = await self.db.execute(
            select(Notification)
            .where(Notification.reservation_id == reservation_id)
            .order_by(Notification.created_date.desc())
        )
        return list(result.scalars().all())
