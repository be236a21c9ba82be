"""
Schemas Pydantic para disponibilidade e cópias.
"""

from decimal import Decimal
from uuid import UUID

from pydantic import Field

from reservation_engine.models.enums import CopyStatus
from reservation_engine.schemas.base import BaseSchema
from reservation_engine.schemas.reservation import Promotion


class AvailabilityResponse(BaseSchema):
    """Resumo de disponibilidade de um título."""
    book_title_id: UUID
    total_copies: int
    on_loan_copies: int
    held_copies: int
    out_of_service_copies: int = Field(description="Cópias DAMAGED ou LOST")
    available_copies: int
    is_reservable: bool = Field(description="O título possui cópias cadastradas")
    will_hold_if_available: bool = Field(
        description="Uma reserva feita agora receberia hold imediato",
    )
    reason: str


class CopyCreate(BaseSchema):
    """Schema para registrar nova cópia de um título."""
    condition: str | None = Field(None, max_length=100)
    price: Decimal | None = Field(None, ge=0)


class CopyRead(BaseSchema):
    """Schema para leitura de cópia."""
    id: UUID
    book_title_id: UUID
    availability_status: CopyStatus
    condition: str | None = None
    price: Decimal | None = None


class CopyStatusUpdate(BaseSchema):
    """Schema para alterar o status físico de uma cópia."""
    status: CopyStatus


class CopyMutationResult(BaseSchema):
    """Resposta de operações que podem liberar uma cópia para a fila."""
    book_copy: CopyRead
    promoted: Promotion | None = None
