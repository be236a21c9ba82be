"""
Notification Emitter: avisa o leitor de que a cópia foi separada.

Fire-and-forget: chamado depois do commit da alocação, em sessão própria.
Falhas são registradas em log e nunca desfazem nem bloqueiam a alocação.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reservation_engine.models.enums import NotificationType
from reservation_engine.repositories.notification import NotificationRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadyNotice:
    """Aviso a ser entregue ao colaborador de notificações."""
    reader_id: UUID
    reservation_id: UUID
    message: str
    notification_type: NotificationType = NotificationType.BOOK_READY


def build_ready_message(title: str, expires_at: datetime) -> str:
    """Texto do aviso BOOK_READY."""
    return (
        f'O livro "{title}" está separado para você. '
        f"Retire na biblioteca até {expires_at.strftime('%d/%m/%Y %H:%M')} (UTC)."
    )


class NotificationEmitter(ABC):
    """Interface do colaborador de notificações."""

    @abstractmethod
    async def emit(self, notice: ReadyNotice) -> None:
        """Entrega um aviso; pode levantar qualquer exceção."""

    async def emit_all(self, notices: Iterable[ReadyNotice]) -> int:
        """
        Entrega avisos um a um sem propagar falhas.

        Returns:
            Número de avisos entregues
        """
        delivered = 0
        for notice in notices:
            try:
                await self.emit(notice)
                delivered += 1
            except Exception as e:
                logger.warning(
                    f"Falha ao notificar leitor {notice.reader_id} "
                    f"(reserva {notice.reservation_id}): {e}"
                )
        return delivered


class DatabaseNotificationEmitter(NotificationEmitter):
    """Grava o aviso na tabela notifications, lida pelo app do leitor."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def emit(self, notice: ReadyNotice) -> None:
        async with self.session_factory() as session:
            await NotificationRepository(session).create(
                reader_id=notice.reader_id,
                reservation_id=notice.reservation_id,
                notification_type=notice.notification_type,
                message=notice.message,
                is_read=False,
            )
            await session.commit()
        logger.info(
            f"Notificação {notice.notification_type.value} enviada ao leitor {notice.reader_id}"
        )


@lru_cache
def get_notifier() -> NotificationEmitter:
    """Emissor padrão (instância única por processo)."""
    from reservation_engine.db.session import async_session_factory

    return DatabaseNotificationEmitter(async_session_factory)
