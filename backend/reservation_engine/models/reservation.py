"""
Models de reserva: Reservation, ReservationQueueEntry e ReservationHold.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reservation_engine.db.session import Base
from reservation_engine.models.base import UUIDMixin, TimestampMixin
from reservation_engine.models.enums import ReservationStatus

if TYPE_CHECKING:
    from reservation_engine.models.book import BookTitle, BookCopy
    from reservation_engine.models.card import LibraryCard


class Reservation(Base, UUIDMixin, TimestampMixin):
    """
    Reserva de um título por uma carteirinha.

    Fluxo de estados:
        1. PENDING: entrou na fila de espera (ReservationQueueEntry)
        2. READY: cópia separada (ReservationHold) até expiration_date
        3. FULFILLED: leitor retirou o livro (empréstimo criado)
        4. EXPIRED: hold venceu sem retirada
        5. CANCELLED: cancelada

    Hold e entrada de fila pertencem à reserva, mas são indexados por
    cópia/título para as consultas de alocação.

    Attributes:
        id: UUID único da reserva
        card_id: FK para a carteirinha
        book_title_id: FK para o título reservado
        reservation_date: Data/hora do pedido
        expiration_date: Limite de retirada (apenas READY)
        status: Status atual
    """
    __tablename__ = "reservations"

    card_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("library_cards.id", ondelete="CASCADE"),
        nullable=False,
    )
    book_title_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("book_titles.id", ondelete="CASCADE"),
        nullable=False,
    )
    reservation_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    expiration_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, name="reservation_status"),
        nullable=False,
        default=ReservationStatus.PENDING,
    )

    book_title: Mapped["BookTitle"] = relationship("BookTitle", lazy="selectin")
    card: Mapped["LibraryCard"] = relationship("LibraryCard", lazy="selectin")

    __table_args__ = (
        Index("ix_reservations_card_status", "card_id", "status"),
        Index("ix_reservations_title_status", "book_title_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Reservation {self.id} - {self.status.value}>"

    @property
    def is_active(self) -> bool:
        """Retorna True se a reserva está PENDING ou READY."""
        return self.status in ReservationStatus.active()

    @property
    def can_be_cancelled(self) -> bool:
        """Retorna True se a reserva pode ser cancelada."""
        return self.status in ReservationStatus.active()


class ReservationQueueEntry(Base, UUIDMixin, TimestampMixin):
    """
    Posição de uma reserva PENDING na fila do título.

    Posições são 1-based e densas por título: a remoção de uma entrada
    desloca a cauda (ver QueueManager.dequeue). A unicidade de position
    por título é garantida pelo lock do título, não por constraint, porque
    o deslocamento em massa violaria uma constraint imediata no meio do UPDATE.
    """
    __tablename__ = "reservation_queue"

    reservation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    book_title_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("book_titles.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_reservation_queue_title_position", "book_title_id", "position"),
    )

    def __repr__(self) -> str:
        return f"<ReservationQueueEntry {self.reservation_id} #{self.position}>"


class ReservationHold(Base, UUIDMixin, TimestampMixin):
    """
    Cópia separada para uma reserva por tempo limitado.

    No máximo um hold por reserva e um hold por cópia (constraints únicas).
    Enquanto existir, a cópia não pode ser alocada a outra reserva.
    """
    __tablename__ = "reservation_holds"

    reservation_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    copy_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("book_copies.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    book_copy: Mapped["BookCopy"] = relationship("BookCopy", lazy="selectin")

    def __repr__(self) -> str:
        return f"<ReservationHold {self.reservation_id} -> {self.copy_id}>"
