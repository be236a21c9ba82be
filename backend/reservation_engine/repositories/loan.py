"""
Repository para leitura do histórico de empréstimos.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.models.loan import LoanDetail
from reservation_engine.repositories.base import BaseRepository


class LoanRepository(BaseRepository[LoanDetail]):
    """Repository para LoanDetail (escrito pelo subsistema de empréstimos)."""

    def __init__(self, db: AsyncSession):
        super().__init__(LoanDetail, db)
