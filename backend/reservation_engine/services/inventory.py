"""
Inventory Ledger: disponibilidade das cópias de um título.

Não faz lock próprio. Operações que alteram estado devem ser chamadas
dentro da seção crítica do título (AllocationEngine).
"""

import logging
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.core.exceptions import NotFoundError
from reservation_engine.models.book import BookTitle, BookCopy
from reservation_engine.models.enums import CopyStatus
from reservation_engine.repositories.book import BookTitleRepository, BookCopyRepository
from reservation_engine.repositories.hold import HoldRepository
from reservation_engine.repositories.loan import LoanRepository
from reservation_engine.schemas.inventory import AvailabilityResponse

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Leitura e atualização da disponibilidade de cópias."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.title_repo = BookTitleRepository(db)
        self.copy_repo = BookCopyRepository(db)
        self.loan_repo = LoanRepository(db)
        self.hold_repo = HoldRepository(db)

    async def get_title(self, book_title_id: UUID) -> BookTitle:
        """
        Busca um título.

        Raises:
            NotFoundError: Título não encontrado
        """
        book = await self.title_repo.get_by_id(book_title_id)
        if not book:
            raise NotFoundError("Livro não encontrado")
        return book

    async def get_copy(self, copy_id: UUID) -> BookCopy:
        """
        Busca uma cópia.

        Raises:
            NotFoundError: Cópia não encontrada
        """
        copy = await self.copy_repo.get_by_id(copy_id)
        if not copy:
            raise NotFoundError("Cópia não encontrada")
        return copy

    async def count_available_copies(self, book_title_id: UUID, now: datetime) -> int:
        """
        Conta cópias disponíveis de um título.

        Disponível = AVAILABLE, sem empréstimo aberto (return_date nulo) e
        sem hold vigente (expires_at > now).

        Raises:
            NotFoundError: Título não encontrado
        """
        await self.get_title(book_title_id)
        return await self.copy_repo.count_available(book_title_id, now)

    async def next_hold_expiry(self, book_title_id: UUID, now: datetime) -> datetime | None:
        """Próximo vencimento de hold do título; None se não há hold vigente."""
        return await self.hold_repo.next_expiry_by_title(book_title_id, now)

    async def find_free_copy(self, book_title_id: UUID) -> BookCopy | None:
        """Retorna uma cópia que pode ser separada agora, ou None."""
        return await self.copy_repo.get_free_copy(book_title_id)

    async def mark_copy_status(self, copy_id: UUID, status: CopyStatus) -> BookCopy:
        """
        Altera o status físico de uma cópia.

        Participa da transação de quem chama; o chamador deve segurar o
        lock do título.

        Raises:
            NotFoundError: Cópia não encontrada
        """
        copy = await self.copy_repo.get_fresh(copy_id)
        if not copy:
            raise NotFoundError("Cópia não encontrada")
        previous = copy.availability_status
        copy = await self.copy_repo.update_status(copy, status)
        logger.info(f"Cópia {copy_id}: {previous.value} -> {status.value}")
        return copy

    async def add_copy(
        self,
        book_title_id: UUID,
        condition: str | None = None,
        price: Decimal | None = None,
    ) -> BookCopy:
        """Registra uma nova cópia AVAILABLE para o título."""
        await self.get_title(book_title_id)
        copy = await self.copy_repo.create_copy(book_title_id, condition, price)
        logger.info(f"Nova cópia {copy.id} registrada para o título {book_title_id}")
        return copy

    async def title_for_copy(self, copy_id: UUID) -> UUID:
        """Resolve o título de uma cópia."""
        copy = await self.get_copy(copy_id)
        return copy.book_title_id

    async def title_for_loan(self, loan_detail_id: UUID) -> UUID:
        """Resolve o título da cópia de um item de empréstimo."""
        loan = await self.loan_repo.get_by_id(loan_detail_id)
        if not loan:
            raise NotFoundError("Empréstimo não encontrado")
        return await self.title_for_copy(loan.copy_id)

    async def availability_summary(
        self,
        book_title_id: UUID,
        now: datetime,
    ) -> AvailabilityResponse:
        """
        Resumo de disponibilidade de um título.

        is_reservable é True sempre que o título tem cópias: sem cópia livre
        a reserva simplesmente entra na fila.
        """
        await self.get_title(book_title_id)

        by_status = await self.copy_repo.count_by_status(book_title_id)
        total = sum(by_status.values())
        on_loan = await self.copy_repo.count_on_loan(book_title_id)
        held = await self.hold_repo.count_active_by_title(book_title_id, now)
        available = await self.copy_repo.count_available(book_title_id, now)
        out_of_service = by_status[CopyStatus.DAMAGED] + by_status[CopyStatus.LOST]

        if total == 0:
            reason = "Não há cópias deste título no acervo"
        elif available > 0:
            reason = (
                f"{available} cópia(s) na estante. "
                f"Uma reserva feita agora separa uma cópia imediatamente."
            )
        else:
            reason = (
                "Todas as cópias estão emprestadas ou separadas. "
                "A reserva entrará na fila de espera."
            )

        return AvailabilityResponse(
            book_title_id=book_title_id,
            total_copies=total,
            on_loan_copies=on_loan,
            held_copies=held,
            out_of_service_copies=out_of_service,
            available_copies=available,
            is_reservable=total > 0,
            will_hold_if_available=available > 0,
            reason=reason,
        )
