"""
Queue Manager: fila de espera por título.

Invariante: as posições das entradas de um título formam 1..N, sem buracos
e sem repetição, e a ordem relativa nunca muda. Chamar sempre dentro do
lock do título.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.core.exceptions import ConflictError
from reservation_engine.repositories.queue import QueueRepository
from reservation_engine.schemas.reservation import QueueSnapshotEntry

logger = logging.getLogger(__name__)


class QueueManager:
    """Operações sobre a fila de reservas."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.queue_repo = QueueRepository(db)

    async def enqueue(self, book_title_id: UUID, reservation_id: UUID) -> int:
        """
        Coloca a reserva no fim da fila do título.

        Returns:
            Posição atribuída (1 se a fila estava vazia)

        Raises:
            ConflictError: Reserva já está na fila
        """
        if await self.queue_repo.get_by_reservation(reservation_id):
            raise ConflictError("Reserva já está na fila deste título")

        position = await self.queue_repo.max_position(book_title_id) + 1
        await self.queue_repo.create(
            reservation_id=reservation_id,
            book_title_id=book_title_id,
            position=position,
        )
        logger.info(f"Reserva {reservation_id} na fila do título {book_title_id}, posição {position}")
        return position

    async def dequeue(self, reservation_id: UUID) -> int | None:
        """
        Remove a reserva da fila e fecha o buraco deslocando a cauda.

        Idempotente: sem entrada, não faz nada.

        Returns:
            Posição que a reserva ocupava, ou None
        """
        entry = await self.queue_repo.get_by_reservation(reservation_id)
        if entry is None:
            return None

        book_title_id = entry.book_title_id
        position = entry.position
        await self.queue_repo.delete(entry)
        shifted = await self.queue_repo.shift_tail(book_title_id, position)

        logger.info(
            f"Reserva {reservation_id} saiu da posição {position} "
            f"({shifted} entrada(s) deslocada(s))"
        )
        return position

    async def peek_next(self, book_title_id: UUID) -> UUID | None:
        """Reserva PENDING na frente da fila, ou None."""
        return await self.queue_repo.first_pending(book_title_id)

    async def position_of(self, reservation_id: UUID) -> int | None:
        entry = await self.queue_repo.get_by_reservation(reservation_id)
        return entry.position if entry else None

    async def snapshot(self, book_title_id: UUID) -> list[QueueSnapshotEntry]:
        """Fila do título em ordem de posição."""
        rows = await self.queue_repo.list_by_title(book_title_id)
        return [
            QueueSnapshotEntry(
                reservation_id=reservation.id,
                card_id=reservation.card_id,
                position=entry.position,
                status=reservation.status,
            )
            for entry, reservation in rows
        ]
