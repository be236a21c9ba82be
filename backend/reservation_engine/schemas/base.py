"""
Schemas base reutilizáveis em toda a aplicação.
"""

from typing import List

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Schema base com configurações padrão."""
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
    )


class ErrorDetail(BaseModel):
    """Detalhe de um erro."""
    field: str | None = None
    message: str


class ErrorResponse(BaseModel):
    """
    Resposta de erro padrão.

    Gerada pelo exception handler de ReservationEngineError:
        {"error": "conflict", "message": "Reserva já está na fila deste título"}
    """
    error: str
    message: str
    details: List[ErrorDetail] | None = None
