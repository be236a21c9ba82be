"""
Model de empréstimo (histórico de saídas de cópias).

Mantido pelo subsistema de empréstimos; o motor de reservas apenas lê
return_date IS NULL para saber quais cópias estão fora da biblioteca.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reservation_engine.db.session import Base
from reservation_engine.models.base import UUIDMixin, TimestampMixin

if TYPE_CHECKING:
    from reservation_engine.models.book import BookCopy
    from reservation_engine.models.card import LibraryCard


class LoanDetail(Base, UUIDMixin, TimestampMixin):
    """
    Empréstimo de uma cópia para uma carteirinha.

    Attributes:
        id: UUID do item de empréstimo (loan_detail_id)
        copy_id: FK para a cópia emprestada
        card_id: FK para a carteirinha do leitor
        loaned_at: Data/hora da saída
        due_date: Data de devolução prevista
        return_date: Data/hora da devolução (null enquanto emprestada)
    """
    __tablename__ = "loan_details"

    copy_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("book_copies.id", ondelete="RESTRICT"),
        nullable=False,
    )
    card_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("library_cards.id", ondelete="RESTRICT"),
        nullable=False,
    )
    loaned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    return_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    book_copy: Mapped["BookCopy"] = relationship(
        "BookCopy",
        back_populates="loans",
        lazy="selectin",
    )
    card: Mapped["LibraryCard"] = relationship("LibraryCard", lazy="selectin")

    __table_args__ = (
        # Cópias atualmente emprestadas
        Index("ix_loan_details_copy_open", "copy_id", "return_date"),
        Index("ix_loan_details_card_id", "card_id"),
    )

    def __repr__(self) -> str:
        status = "returned" if self.return_date else "active"
        return f"<LoanDetail {self.id} - {status}>"

    @property
    def is_active(self) -> bool:
        """Retorna True se a cópia ainda não foi devolvida."""
        return self.return_date is None
