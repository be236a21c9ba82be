"""
Taxonomia de erros do motor de reservas.

Os services levantam estas exceções; a camada HTTP as converte em
ErrorResponse via exception handler registrado em main.py.

    - NotFoundError: título, cópia, carteirinha ou reserva inexistente (404)
    - ConflictError: violação de invariante (hold duplicado, fila duplicada) (409)
    - StateError: operação incompatível com o status da reserva (409)
    - TransientInfraError: timeout de lock ou storage indisponível (503)
"""

from fastapi import status


class ReservationEngineError(Exception):
    """Erro base do motor de reservas."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "reservation_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ReservationEngineError):
    """Entidade referenciada não existe. Não deve ser re-tentado."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"


class ConflictError(ReservationEngineError):
    """Tentativa de violar uma invariante de alocação."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"


class StateError(ReservationEngineError):
    """Reserva em status terminal ou incompatível com a operação."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "invalid_state"


class TransientInfraError(ReservationEngineError):
    """
    Falha transitória de infraestrutura.

    A seção crítica é desfeita por inteiro, então a operação pode ser
    re-executada com segurança.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "transient_failure"
