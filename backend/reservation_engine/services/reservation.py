"""
Service de leitura e elegibilidade de reservas.

Regras de negócio:
    - Uma carteirinha pode ter no máximo MAX_ACTIVE_RESERVATIONS reservas ativas
    - Uma carteirinha não pode ter duas reservas ativas para o mesmo título

A alocação em si (hold, fila, status) fica no AllocationEngine.
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.core.config import get_settings
from reservation_engine.core.exceptions import ConflictError, NotFoundError
from reservation_engine.repositories.card import LibraryCardRepository
from reservation_engine.repositories.reservation import ReservationRepository
from reservation_engine.schemas.reservation import (
    HoldDetail,
    QueueSnapshotEntry,
    ReaderReservationSummary,
    ReservationRead,
)
from reservation_engine.services.holds import HoldManager
from reservation_engine.services.inventory import InventoryLedger
from reservation_engine.services.queue import QueueManager


class ReservationService:
    """Service para consultas de Reservation."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.reservation_repo = ReservationRepository(db)
        self.card_repo = LibraryCardRepository(db)
        self.ledger = InventoryLedger(db)
        self.holds = HoldManager(db)
        self.queue = QueueManager(db)
        self.max_active = get_settings().MAX_ACTIVE_RESERVATIONS

    async def check_eligibility(self, card_id: UUID, book_title_id: UUID) -> None:
        """
        Verifica se a carteirinha pode abrir nova reserva para o título.

        Raises:
            NotFoundError: Carteirinha não encontrada
            ConflictError: Limite de reservas atingido ou reserva duplicada
        """
        card = await self.card_repo.get_by_id(card_id)
        if not card:
            raise NotFoundError("Carteirinha não encontrada")

        active_count = await self.reservation_repo.count_active_by_card(card_id)
        if active_count >= self.max_active:
            raise ConflictError(
                f"Limite de {self.max_active} reservas ativas atingido"
            )

        existing = await self.reservation_repo.get_active_by_card_and_title(
            card_id, book_title_id
        )
        if existing:
            raise ConflictError("Você já possui uma reserva ativa para este título")

    async def get_reservation(self, reservation_id: UUID) -> ReservationRead:
        """
        Busca reserva com a posição atual na fila.

        Raises:
            NotFoundError: Reserva não encontrada
        """
        reservation = await self.reservation_repo.get_by_id(reservation_id)
        if not reservation:
            raise NotFoundError("Reserva não encontrada")

        position = await self.queue.position_of(reservation_id)
        return ReservationRead.from_reservation(reservation, queue_position=position)

    async def get_hold_detail(self, reservation_id: UUID) -> HoldDetail:
        """
        Cópia separada para a reserva.

        Raises:
            NotFoundError: Reserva sem hold
        """
        hold = await self.holds.get_hold(reservation_id)
        if hold is None:
            raise NotFoundError("Reserva não possui cópia separada")

        return HoldDetail(
            hold_id=hold.id,
            reservation_id=hold.reservation_id,
            copy_id=hold.copy_id,
            book_title_id=hold.book_copy.book_title_id,
            expires_at=hold.expires_at,
        )

    async def queue_snapshot(self, book_title_id: UUID) -> list[QueueSnapshotEntry]:
        """Fila de espera do título, em ordem."""
        await self.ledger.get_title(book_title_id)
        return await self.queue.snapshot(book_title_id)

    async def reader_summary(self, card_id: UUID) -> ReaderReservationSummary:
        """Reservas ativas da carteirinha e se ainda pode reservar."""
        card = await self.card_repo.get_by_id(card_id)
        if not card:
            raise NotFoundError("Carteirinha não encontrada")

        reservations = await self.reservation_repo.get_active_by_card(card_id)
        items = []
        for reservation in reservations:
            position = await self.queue.position_of(reservation.id)
            items.append(ReservationRead.from_reservation(reservation, queue_position=position))

        return ReaderReservationSummary(
            card_id=card_id,
            active_count=len(items),
            can_reserve_more=len(items) < self.max_active,
            active_reservations=items,
        )
