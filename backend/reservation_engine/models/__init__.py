"""
Models SQLAlchemy da aplicação.

Importar todos os models aqui para que o Alembic detecte as mudanças.
"""

from reservation_engine.models.enums import CopyStatus, ReservationStatus, NotificationType
from reservation_engine.models.book import BookTitle, BookCopy
from reservation_engine.models.card import LibraryCard
from reservation_engine.models.loan import LoanDetail
from reservation_engine.models.reservation import (
    Reservation,
    ReservationQueueEntry,
    ReservationHold,
)
from reservation_engine.models.notification import Notification

__all__ = [
    "CopyStatus",
    "ReservationStatus",
    "NotificationType",
    "BookTitle",
    "BookCopy",
    "LibraryCard",
    "LoanDetail",
    "Reservation",
    "ReservationQueueEntry",
    "ReservationHold",
    "Notification",
]
