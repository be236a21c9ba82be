"""
Model de carteirinha de biblioteca.
"""

import uuid

from sqlalchemy import String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from reservation_engine.db.session import Base
from reservation_engine.models.base import UUIDMixin, TimestampMixin


class LibraryCard(Base, UUIDMixin, TimestampMixin):
    """
    Carteirinha de um leitor.

    Reservas pertencem à carteirinha (card_id); notificações são endereçadas
    ao leitor (reader_id), cujo cadastro fica fora deste serviço.
    """
    __tablename__ = "library_cards"

    card_number: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    reader_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<LibraryCard {self.card_number}>"
