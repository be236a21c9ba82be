"""
Repositories: acesso a dados por entidade.
"""

from reservation_engine.repositories.base import BaseRepository
from reservation_engine.repositories.book import BookTitleRepository, BookCopyRepository
from reservation_engine.repositories.card import LibraryCardRepository
from reservation_engine.repositories.hold import HoldRepository
from reservation_engine.repositories.loan import LoanRepository
from reservation_engine.repositories.notification import NotificationRepository
from reservation_engine.repositories.queue import QueueRepository
from reservation_engine.repositories.reservation import ReservationRepository

__all__ = [
    "BaseRepository",
    "BookTitleRepository",
    "BookCopyRepository",
    "LibraryCardRepository",
    "HoldRepository",
    "LoanRepository",
    "NotificationRepository",
    "QueueRepository",
    "ReservationRepository",
]
