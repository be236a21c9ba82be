"""
Schemas Pydantic para Reservation e para os resultados do motor de alocação.
"""

from datetime import datetime
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import Field, model_validator

from reservation_engine.models.enums import ReservationStatus
from reservation_engine.schemas.base import BaseSchema


class ReservationCreate(BaseSchema):
    """Schema para criação de reserva."""
    card_id: UUID
    book_title_id: UUID


class ReservationRead(BaseSchema):
    """Schema para leitura de reserva."""
    id: UUID
    card_id: UUID
    book_title_id: UUID
    status: ReservationStatus
    reservation_date: datetime
    expiration_date: datetime | None = None
    queue_position: int | None = Field(
        None,
        description="Posição na fila (apenas PENDING)",
    )

    @classmethod
    def from_reservation(
        cls,
        reservation,
        queue_position: int | None = None,
    ) -> "ReservationRead":
        """Constrói a partir de um model Reservation."""
        return cls(
            id=reservation.id,
            card_id=reservation.card_id,
            book_title_id=reservation.book_title_id,
            status=reservation.status,
            reservation_date=reservation.reservation_date,
            expiration_date=reservation.expiration_date,
            queue_position=queue_position,
        )


# ==========================================
# Resultado de um pedido de reserva (união discriminada por "mode")
# ==========================================

class HoldAllocation(BaseSchema):
    """Reserva atendida na hora: uma cópia foi separada."""
    mode: Literal["hold"] = "hold"
    reservation_id: UUID
    book_title_id: UUID
    copy_id: UUID
    expires_at: datetime


class QueuePlacement(BaseSchema):
    """Nenhuma cópia livre: a reserva entrou na fila."""
    mode: Literal["queue"] = "queue"
    reservation_id: UUID
    book_title_id: UUID
    position: int


ReservationOutcome = Annotated[
    Union[HoldAllocation, QueuePlacement],
    Field(discriminator="mode"),
]


class Promotion(BaseSchema):
    """Próxima reserva da fila promovida para READY."""
    reservation_id: UUID
    book_title_id: UUID
    copy_id: UUID
    expires_at: datetime


# ==========================================
# Cancelamento / retirada
# ==========================================

class CancelRequest(BaseSchema):
    """
    Pedido de cancelamento.

    A autorização (dono da carteirinha ou equipe) é feita por quem chama;
    requester_id serve apenas para registro em log.
    """
    requester_id: str | None = Field(None, max_length=100)


class CancelResult(BaseSchema):
    """Resposta do cancelamento de reserva."""
    ok: bool = True
    reservation_id: UUID
    book_title_id: UUID
    status: ReservationStatus
    promoted: Promotion | None = None
    message: str


class CheckFulfillRequest(BaseSchema):
    """Empréstimo criado: baixa a reserva ativa da carteirinha para o título."""
    card_id: UUID
    book_title_id: UUID


class FulfillResult(BaseSchema):
    """Resposta da baixa de reserva."""
    fulfilled: bool
    reservation_id: UUID | None = None
    book_title_id: UUID | None = None
    message: str


# ==========================================
# Varredura / devolução / disparo manual
# ==========================================

class SweepRequest(BaseSchema):
    """Parâmetros da varredura de holds vencidos."""
    hold_hours: int | None = Field(
        None,
        ge=1,
        description="Prazo dos novos holds (default: HOLD_DURATION_HOURS)",
    )


class SweepResult(BaseSchema):
    """Resultado da varredura de holds vencidos."""
    expired_count: int
    promoted: list[UUID] = Field(default_factory=list)
    affected_book_title_ids: list[UUID] = Field(default_factory=list)
    failed_book_title_ids: list[UUID] = Field(
        default_factory=list,
        description="Títulos cuja varredura falhou (serão re-tentados na próxima)",
    )
    message: str


class ReturnNotice(BaseSchema):
    """Aviso do subsistema de empréstimos de que uma cópia voltou."""
    copy_id: UUID | None = None
    loan_detail_id: UUID | None = None

    @model_validator(mode="after")
    def check_reference(self) -> "ReturnNotice":
        if self.copy_id is None and self.loan_detail_id is None:
            raise ValueError("Informe copy_id ou loan_detail_id")
        return self


class ReturnResult(BaseSchema):
    """Resposta do processamento de devolução."""
    promoted: bool
    reservation_id: UUID | None = None
    book_title_id: UUID


class TriggerNextRequest(BaseSchema):
    """Disparo manual de promoção para um título."""
    book_title_id: UUID
    hold_hours: int | None = Field(None, ge=1)


# ==========================================
# Projeções de leitura
# ==========================================

class QueueSnapshotEntry(BaseSchema):
    """Linha da fila de um título."""
    reservation_id: UUID
    card_id: UUID
    position: int
    status: ReservationStatus


class HoldDetail(BaseSchema):
    """Cópia separada para uma reserva."""
    hold_id: UUID
    reservation_id: UUID
    copy_id: UUID
    book_title_id: UUID
    expires_at: datetime


class ReaderReservationSummary(BaseSchema):
    """Reservas ativas de uma carteirinha."""
    card_id: UUID
    active_count: int
    can_reserve_more: bool
    active_reservations: list[ReservationRead]
