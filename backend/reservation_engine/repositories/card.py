"""
Repository para carteirinhas de biblioteca.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.models.card import LibraryCard
from reservation_engine.repositories.base import BaseRepository


class LibraryCardRepository(BaseRepository[LibraryCard]):
    """Repository para LibraryCard."""

    def __init__(self, db: AsyncSession):
        super().__init__(LibraryCard, db)
