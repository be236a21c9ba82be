"""
Endpoints de Reservas.

Contratos:
    - POST /reservations: Cria reserva (hold imediato ou fila)
    - GET /reservations/{id}: Detalhes da reserva
    - GET /reservations/{id}/hold: Cópia separada para a reserva
    - POST /reservations/{id}/cancel: Cancela reserva
    - POST /reservations/{id}/fulfill: Conclui reserva (empréstimo criado)
    - POST /reservations/check-fulfill: Conclui a reserva ativa de uma carteirinha
    - GET /reservations/queue/{book_title_id}: Fila de um título
    - GET /reservations/reader/{card_id}: Reservas ativas de uma carteirinha

Rate Limiting aplicado:
    - POST /reservations: 60 req/min (rate_limit_default)

Status codes:
    - 200: Sucesso
    - 201: Criado com sucesso
    - 404: Reserva, título ou carteirinha não encontrados
    - 409: Conflito (duplicata, limite, status incompatível)
    - 429: Rate limit excedido
    - 503: Título ocupado ou storage indisponível (pode re-tentar)
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from reservation_engine.core.cache import cache_service
from reservation_engine.core.deps import Engine, Reservations
from reservation_engine.core.rate_limit import rate_limit_default
from reservation_engine.schemas.reservation import (
    CancelRequest,
    CancelResult,
    CheckFulfillRequest,
    FulfillResult,
    HoldDetail,
    QueueSnapshotEntry,
    ReaderReservationSummary,
    ReservationCreate,
    ReservationOutcome,
    ReservationRead,
)

router = APIRouter(prefix="/reservations", tags=["Reservations"])


@router.post(
    "",
    response_model=ReservationOutcome,
    status_code=status.HTTP_201_CREATED,
    summary="Criar reserva",
    description="Separa uma cópia na hora se houver cópia livre; caso contrário, entra na fila.",
)
async def create_reservation(
    data: ReservationCreate,
    engine: Engine,
    service: Reservations,
    _: None = Depends(rate_limit_default),
) -> ReservationOutcome:
    """
    Cria nova reserva para a carteirinha.

    Regras:
        - Carteirinha com menos de 3 reservas ativas
        - Sem reserva ativa da mesma carteirinha para o título

    Returns:
        {"mode": "hold", ...} ou {"mode": "queue", "position": ...}
    """
    await service.check_eligibility(data.card_id, data.book_title_id)
    outcome = await engine.request_reservation(data.card_id, data.book_title_id)
    await cache_service.invalidate_availability(data.book_title_id)
    return outcome


@router.post(
    "/check-fulfill",
    response_model=FulfillResult,
    summary="Concluir reserva da carteirinha",
    description="Chamado pelo subsistema de empréstimos ao emprestar um título.",
)
async def check_fulfill(data: CheckFulfillRequest, engine: Engine) -> FulfillResult:
    """Conclui a reserva ativa da carteirinha para o título, se existir."""
    result = await engine.fulfill_for_card(data.card_id, data.book_title_id)
    if result.fulfilled:
        await cache_service.invalidate_availability(data.book_title_id)
    return result


@router.get(
    "/queue/{book_title_id}",
    response_model=list[QueueSnapshotEntry],
    summary="Fila de um título",
)
async def get_queue(book_title_id: UUID, service: Reservations) -> list[QueueSnapshotEntry]:
    """Fila de espera do título ordenada por posição."""
    return await service.queue_snapshot(book_title_id)


@router.get(
    "/reader/{card_id}",
    response_model=ReaderReservationSummary,
    summary="Reservas ativas da carteirinha",
)
async def get_reader_summary(card_id: UUID, service: Reservations) -> ReaderReservationSummary:
    return await service.reader_summary(card_id)


@router.get(
    "/{reservation_id}",
    response_model=ReservationRead,
    summary="Detalhes da reserva",
)
async def get_reservation(reservation_id: UUID, service: Reservations) -> ReservationRead:
    """Retorna a reserva com a posição na fila (apenas PENDING)."""
    return await service.get_reservation(reservation_id)


@router.get(
    "/{reservation_id}/hold",
    response_model=HoldDetail,
    summary="Cópia separada",
)
async def get_reservation_hold(reservation_id: UUID, service: Reservations) -> HoldDetail:
    return await service.get_hold_detail(reservation_id)


@router.post(
    "/{reservation_id}/cancel",
    response_model=CancelResult,
    summary="Cancelar reserva",
    description="Cancela reserva PENDING ou READY. A cópia liberada vai para a próxima da fila.",
)
async def cancel_reservation(
    reservation_id: UUID,
    engine: Engine,
    data: CancelRequest | None = None,
) -> CancelResult:
    """
    Cancela uma reserva.

    Raises:
        404: Reserva não encontrada
        409: Reserva já em status terminal
    """
    requester_id = data.requester_id if data else None
    result = await engine.cancel_reservation(reservation_id, requester_id=requester_id)
    await cache_service.invalidate_availability(result.book_title_id)
    return result


@router.post(
    "/{reservation_id}/fulfill",
    response_model=FulfillResult,
    summary="Concluir reserva",
)
async def fulfill_reservation(reservation_id: UUID, engine: Engine) -> FulfillResult:
    """Marca a reserva como FULFILLED (empréstimo criado)."""
    result = await engine.fulfill_reservation(reservation_id)
    await cache_service.invalidate_availability(result.book_title_id)
    return result
