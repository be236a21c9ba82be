"""
Model de notificação enviada ao leitor.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from reservation_engine.db.session import Base
from reservation_engine.models.base import UUIDMixin
from reservation_engine.models.enums import NotificationType


class Notification(Base, UUIDMixin):
    """
    Aviso ao leitor (ex.: livro separado e pronto para retirada).

    Apenas registro informativo: nunca altera o estado de alocação.
    """
    __tablename__ = "notifications"

    reader_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    reservation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("reservations.id", ondelete="SET NULL"),
        nullable=True,
    )
    notification_type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType, name="notification_type"),
        nullable=False,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_notifications_reader_created", "reader_id", "created_date"),
    )

    def __repr__(self) -> str:
        return f"<Notification {self.notification_type.value} -> {self.reader_id}>"
