"""
Enums utilizados nos models da aplicação.
"""

import enum


class CopyStatus(str, enum.Enum):
    """Status físico de uma cópia do livro."""
    AVAILABLE = "AVAILABLE"
    ON_LOAN = "ON_LOAN"
    DAMAGED = "DAMAGED"
    LOST = "LOST"


class ReservationStatus(str, enum.Enum):
    """
    Status de uma reserva de livro.

    Fluxo típico:
        PENDING -> READY -> FULFILLED (sucesso)
        READY -> EXPIRED (não retirou a tempo)
        PENDING/READY -> CANCELLED (cancelada)
    """
    PENDING = "PENDING"      # Na fila, aguardando cópia
    READY = "READY"          # Cópia separada (hold), aguardando retirada
    FULFILLED = "FULFILLED"  # Convertida em empréstimo
    EXPIRED = "EXPIRED"      # Hold venceu sem retirada
    CANCELLED = "CANCELLED"  # Cancelada pelo leitor ou pela equipe

    @classmethod
    def active(cls) -> tuple["ReservationStatus", ...]:
        return (cls.PENDING, cls.READY)


class NotificationType(str, enum.Enum):
    """Tipos de notificação emitidos pelo motor de reservas."""
    BOOK_READY = "BOOK_READY"
