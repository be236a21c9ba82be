"""
Repository para operações de BookTitle e BookCopy no banco de dados.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.models.book import BookTitle, BookCopy
from reservation_engine.models.enums import CopyStatus
from reservation_engine.models.loan import LoanDetail
from reservation_engine.models.reservation import ReservationHold
from reservation_engine.repositories.base import BaseRepository


def _open_loan_exists():
    return exists().where(
        LoanDetail.copy_id == BookCopy.id,
        LoanDetail.return_date.is_(None),
    )


class BookTitleRepository(BaseRepository[BookTitle]):
    """Repository para operações de BookTitle."""

    def __init__(self, db: AsyncSession):
        super().__init__(BookTitle, db)


class BookCopyRepository(BaseRepository[BookCopy]):
    """Repository para operações de BookCopy."""

    def __init__(self, db: AsyncSession):
        super().__init__(BookCopy, db)

    async def create_copy(
        self,
        book_title_id: UUID,
        condition: str | None = None,
        price: Decimal | None = None,
    ) -> BookCopy:
        """Registra uma nova cópia AVAILABLE."""
        return await self.create(
            book_title_id=book_title_id,
            availability_status=CopyStatus.AVAILABLE,
            condition=condition,
            price=price,
        )

    async def get_free_copy(self, book_title_id: UUID) -> BookCopy | None:
        """
        Busca uma cópia que pode receber um hold agora.

        Livre = AVAILABLE, sem empréstimo aberto e sem nenhum hold gravado
        (mesmo vencido: o hold vencido só sai pela varredura de expiração).
        """
        has_hold = exists().where(ReservationHold.copy_id == BookCopy.id)
        result = await self.db.execute(
            select(BookCopy)
            .where(
                BookCopy.book_title_id == book_title_id,
                BookCopy.availability_status == CopyStatus.AVAILABLE,
                ~_open_loan_exists(),
                ~has_hold,
            )
            .order_by(BookCopy.created_at, BookCopy.id)
            .limit(1)
        )
        return result.scalars().first()

    async def count_available(self, book_title_id: UUID, now: datetime) -> int:
        """Conta cópias AVAILABLE sem empréstimo aberto e sem hold vigente."""
        active_hold = exists().where(
            ReservationHold.copy_id == BookCopy.id,
            ReservationHold.expires_at > now,
        )
        result = await self.db.execute(
            select(func.count(BookCopy.id))
            .where(
                BookCopy.book_title_id == book_title_id,
                BookCopy.availability_status == CopyStatus.AVAILABLE,
                ~_open_loan_exists(),
                ~active_hold,
            )
        )
        return result.scalar_one()

    async def count_by_status(self, book_title_id: UUID) -> dict[CopyStatus, int]:
        """Conta cópias de um título agrupadas por availability_status."""
        result = await self.db.execute(
            select(BookCopy.availability_status, func.count(BookCopy.id))
            .where(BookCopy.book_title_id == book_title_id)
            .group_by(BookCopy.availability_status)
        )
        counts = {copy_status: 0 for copy_status in CopyStatus}
        for copy_status, count in result.all():
            counts[copy_status] = count
        return counts

    async def count_on_loan(self, book_title_id: UUID) -> int:
        """Conta cópias do título com empréstimo aberto."""
        result = await self.db.execute(
            select(func.count(BookCopy.id))
            .where(
                BookCopy.book_title_id == book_title_id,
                _open_loan_exists(),
            )
        )
        return result.scalar_one()

    async def has_open_loan(self, copy_id: UUID) -> bool:
        """Retorna True se a cópia está emprestada (return_date nulo)."""
        result = await self.db.execute(
            select(func.count(LoanDetail.id))
            .where(
                LoanDetail.copy_id == copy_id,
                LoanDetail.return_date.is_(None),
            )
        )
        return result.scalar_one() > 0

    async def update_status(self, copy: BookCopy, status: CopyStatus) -> BookCopy:
        """Atualiza availability_status de uma cópia."""
        copy.availability_status = status
        await self.db.flush()
        return copy
