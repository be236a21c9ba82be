"""
Endpoints de Inventário.

Contratos:
    - GET /inventory/titles/{id}/availability: Resumo de disponibilidade (cache Redis)
    - POST /inventory/titles/{id}/copies: Registra nova cópia
    - PATCH /inventory/copies/{id}/status: Altera status físico de uma cópia

Cache:
    - availability tem TTL curto (CACHE_AVAILABILITY_TTL_SECONDS), limitado
      ao próximo vencimento de hold, e é invalidado por toda mutação de alocação
"""

from uuid import UUID

from fastapi import APIRouter, status

from reservation_engine.core.cache import cache_service
from reservation_engine.core.deps import Clock, DbSession, Engine
from reservation_engine.schemas.inventory import (
    AvailabilityResponse,
    CopyCreate,
    CopyMutationResult,
    CopyStatusUpdate,
)
from reservation_engine.services.inventory import InventoryLedger

router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.get(
    "/titles/{book_title_id}/availability",
    response_model=AvailabilityResponse,
    summary="Disponibilidade do título",
)
async def get_availability(
    book_title_id: UUID,
    db: DbSession,
    clock: Clock,
) -> AvailabilityResponse:
    """
    Retorna total de cópias, emprestadas, separadas, fora de uso e livres.

    Raises:
        404: Título não encontrado
    """
    cached = await cache_service.get_availability(book_title_id)
    if cached:
        return AvailabilityResponse(**cached)

    now = clock()
    ledger = InventoryLedger(db)
    result = await ledger.availability_summary(book_title_id, now)
    next_expiry = await ledger.next_hold_expiry(book_title_id, now)
    await cache_service.set_availability(
        book_title_id,
        result.model_dump(mode="json"),
        ttl=cache_service.ttl_until(next_expiry, now),
    )
    return result


@router.post(
    "/titles/{book_title_id}/copies",
    response_model=CopyMutationResult,
    status_code=status.HTTP_201_CREATED,
    summary="Registrar cópia",
    description="Nova cópia entra AVAILABLE e atende a fila do título, se houver.",
)
async def add_copy(
    book_title_id: UUID,
    data: CopyCreate,
    engine: Engine,
) -> CopyMutationResult:
    result = await engine.acquire_copy(book_title_id, data.condition, data.price)
    await cache_service.invalidate_availability(book_title_id)
    return result


@router.patch(
    "/copies/{copy_id}/status",
    response_model=CopyMutationResult,
    summary="Alterar status da cópia",
    description="Voltar para AVAILABLE promove a fila. Cópia separada não pode virar DAMAGED/LOST.",
)
async def update_copy_status(
    copy_id: UUID,
    data: CopyStatusUpdate,
    engine: Engine,
) -> CopyMutationResult:
    """
    Raises:
        404: Cópia não encontrada
        409: Cópia separada para uma reserva
    """
    result = await engine.update_copy_status(copy_id, data.status)
    await cache_service.invalidate_availability(result.book_copy.book_title_id)
    return result
