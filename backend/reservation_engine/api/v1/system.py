"""
Endpoints de Sistema (integração com jobs e subsistema de empréstimos).

Contratos:
    - POST /system/sweep-expired: Expira holds vencidos e promove a fila
    - POST /system/on-return: Cópia devolvida, promove a fila do título
    - POST /system/trigger-next: Promoção manual para um título

Cache invalidation:
    - Todos invalidam availability dos títulos afetados

Status codes:
    - 200: Sucesso
    - 404: Cópia, empréstimo ou título não encontrado
    - 422: Corpo inválido (ex.: on-return sem copy_id nem loan_detail_id)
    - 503: Título ocupado ou storage indisponível (pode re-tentar)
"""

from fastapi import APIRouter
from pydantic import BaseModel

from reservation_engine.core.cache import cache_service
from reservation_engine.core.deps import Engine
from reservation_engine.schemas.reservation import (
    Promotion,
    ReturnNotice,
    ReturnResult,
    SweepRequest,
    SweepResult,
    TriggerNextRequest,
)

router = APIRouter(prefix="/system", tags=["System"])


class TriggerNextResponse(BaseModel):
    """Resposta da promoção manual."""

    promoted: Promotion | None = None
    message: str


@router.post(
    "/sweep-expired",
    response_model=SweepResult,
    summary="Expirar holds vencidos",
    description="Chamado por agendador externo. Cada título é processado isoladamente.",
)
async def sweep_expired(
    engine: Engine,
    data: SweepRequest | None = None,
) -> SweepResult:
    """
    Expira holds com expires_at <= agora.

    Para cada título afetado:
        1. Remove os holds vencidos
        2. Marca as reservas como EXPIRED
        3. Promove a fila, uma reserva por cópia liberada
    """
    hold_hours = data.hold_hours if data else None
    result = await engine.expire_stale_reservations(hold_hours=hold_hours)
    await cache_service.invalidate_availability(*result.affected_book_title_ids)
    return result


@router.post(
    "/on-return",
    response_model=ReturnResult,
    summary="Processar devolução",
    description="Informe copy_id ou loan_detail_id da cópia que voltou para a estante.",
)
async def on_return(data: ReturnNotice, engine: Engine) -> ReturnResult:
    """Promove a próxima reserva da fila do título da cópia devolvida."""
    result = await engine.handle_return(
        copy_id=data.copy_id,
        loan_detail_id=data.loan_detail_id,
    )
    await cache_service.invalidate_availability(result.book_title_id)
    return result


@router.post(
    "/trigger-next",
    response_model=TriggerNextResponse,
    summary="Promover próxima reserva",
)
async def trigger_next(data: TriggerNextRequest, engine: Engine) -> TriggerNextResponse:
    """Força uma tentativa de promoção (no-op se fila vazia ou sem cópia livre)."""
    promotion = await engine.on_copy_released(data.book_title_id, hold_hours=data.hold_hours)
    await cache_service.invalidate_availability(data.book_title_id)
    return TriggerNextResponse(
        promoted=promotion,
        message="Reserva promovida" if promotion else "Nenhuma reserva promovida",
    )
