"""
Models de livros: BookTitle (título) e BookCopy (cópia física).
"""

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Enum, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reservation_engine.db.session import Base
from reservation_engine.models.base import UUIDMixin, TimestampMixin
from reservation_engine.models.enums import CopyStatus

if TYPE_CHECKING:
    from reservation_engine.models.loan import LoanDetail


class BookTitle(Base, UUIDMixin, TimestampMixin):
    """
    Título de um livro (obra).

    Um título pode ter múltiplas cópias físicas (BookCopy). Reservas são
    feitas por título; o lock de alocação também é por título.
    """
    __tablename__ = "book_titles"

    title: Mapped[str] = mapped_column(String(500), nullable=False)

    copies: Mapped[List["BookCopy"]] = relationship(
        "BookCopy",
        back_populates="book_title",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<BookTitle {self.title}>"


class BookCopy(Base, UUIDMixin, TimestampMixin):
    """
    Cópia física de um livro.

    O fato de estar separada para uma reserva não é gravado aqui: é derivado
    da existência de um ReservationHold para a cópia.

    Attributes:
        id: UUID único da cópia
        book_title_id: FK para o título do livro
        availability_status: AVAILABLE, ON_LOAN, DAMAGED ou LOST
        condition: Estado de conservação (texto livre)
        price: Preço de aquisição
    """
    __tablename__ = "book_copies"

    book_title_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("book_titles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    availability_status: Mapped[CopyStatus] = mapped_column(
        Enum(CopyStatus, name="copy_status"),
        nullable=False,
        default=CopyStatus.AVAILABLE,
        index=True,
    )
    condition: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    book_title: Mapped["BookTitle"] = relationship(
        "BookTitle",
        back_populates="copies",
        lazy="selectin",
    )
    loans: Mapped[List["LoanDetail"]] = relationship(
        "LoanDetail",
        back_populates="book_copy",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<BookCopy {self.id} - {self.availability_status.value}>"
