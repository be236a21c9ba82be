"""
Allocation Engine: coordena inventário, holds e fila de um título.

Regras:
    - Toda decisão acontece dentro da seção crítica do título: lock do
      título + uma transação, com commit no fim ou rollback por inteiro
    - Pedido de reserva: cópia livre -> hold imediato (READY); senão fila (PENDING)
    - Cada cópia liberada promove no máximo uma reserva da fila (a de menor posição)
    - Hold vencido -> reserva EXPIRED e a cópia volta para a fila do título
    - Notificações são enviadas depois do commit e nunca desfazem a alocação
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import AsyncIterator, Callable, Union
from uuid import UUID

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.core.config import get_settings
from reservation_engine.core.exceptions import (
    ConflictError,
    NotFoundError,
    ReservationEngineError,
    StateError,
    TransientInfraError,
)
from reservation_engine.core.locks import TitleLockManager
from reservation_engine.models.enums import CopyStatus, ReservationStatus
from reservation_engine.models.reservation import Reservation, ReservationHold
from reservation_engine.repositories.card import LibraryCardRepository
from reservation_engine.repositories.reservation import ReservationRepository
from reservation_engine.schemas.inventory import CopyMutationResult, CopyRead
from reservation_engine.schemas.reservation import (
    CancelResult,
    FulfillResult,
    HoldAllocation,
    Promotion,
    QueuePlacement,
    ReturnResult,
    SweepResult,
)
from reservation_engine.services.holds import HoldManager
from reservation_engine.services.inventory import InventoryLedger
from reservation_engine.services.notifications import (
    NotificationEmitter,
    ReadyNotice,
    build_ready_message,
)
from reservation_engine.services.queue import QueueManager

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_connection_failure(error: DBAPIError) -> bool:
    """Banco fora do ar ou conexão perdida (asyncpg: InterfaceError ou conexão invalidada)."""
    return (
        isinstance(error, (OperationalError, InterfaceError))
        or error.connection_invalidated
    )


class AllocationEngine:
    """
    Motor de alocação de reservas.

    Uma instância por sessão de banco (por request ou por execução da
    varredura). O gerenciador de locks e o emissor de notificações são
    compartilhados pelo processo.
    """

    def __init__(
        self,
        db: AsyncSession,
        locks: TitleLockManager,
        notifier: NotificationEmitter,
        hold_hours: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.locks = locks
        self.notifier = notifier
        self.hold_hours = hold_hours or get_settings().HOLD_DURATION_HOURS
        self.clock = clock
        self.ledger = InventoryLedger(db)
        self.holds = HoldManager(db)
        self.queue = QueueManager(db)
        self.reservation_repo = ReservationRepository(db)
        self.card_repo = LibraryCardRepository(db)

    # ==========================================
    # Seção crítica
    # ==========================================

    @asynccontextmanager
    async def _title_section(self, book_title_id: UUID) -> AsyncIterator[list[ReadyNotice]]:
        """
        Lock do título + transação única.

        Entrega uma lista onde o corpo acumula os avisos a enviar; eles só
        saem depois do commit e fora do lock.
        """
        outbox: list[ReadyNotice] = []
        async with self.locks.acquire(book_title_id):
            try:
                yield outbox
                await self.db.commit()
            except IntegrityError as e:
                await self.db.rollback()
                logger.warning(f"Violação de integridade no título {book_title_id}: {e.orig}")
                raise ConflictError(
                    "Operação conflitou com outra alocação deste título"
                ) from e
            except DBAPIError as e:
                await self.db.rollback()
                if not is_connection_failure(e):
                    raise
                logger.error(f"Falha de storage no título {book_title_id}: {e.orig}")
                raise TransientInfraError(
                    "Banco de dados indisponível. Tente novamente."
                ) from e
            except Exception:
                await self.db.rollback()
                raise

        if outbox:
            await self.notifier.emit_all(outbox)

    # ==========================================
    # Pedido de reserva
    # ==========================================

    async def request_reservation(
        self,
        card_id: UUID,
        book_title_id: UUID,
        hold_hours: int | None = None,
    ) -> Union[HoldAllocation, QueuePlacement]:
        """
        Cria uma reserva: hold imediato se há cópia livre, senão fila.

        O limite de reservas por carteirinha é verificado antes, por
        ReservationService.check_eligibility.

        Raises:
            NotFoundError: Título ou carteirinha não encontrados
            ConflictError: Carteirinha já tem reserva ativa para o título
            TransientInfraError: Lock ou banco indisponível
        """
        hold_hours = hold_hours or self.hold_hours

        async with self._title_section(book_title_id):
            now = self.clock()
            await self.ledger.get_title(book_title_id)

            card = await self.card_repo.get_by_id(card_id)
            if not card:
                raise NotFoundError("Carteirinha não encontrada")

            existing = await self.reservation_repo.get_active_by_card_and_title(
                card_id, book_title_id
            )
            if existing:
                raise ConflictError("Você já possui uma reserva ativa para este título")

            reservation = await self.reservation_repo.create(
                card_id=card_id,
                book_title_id=book_title_id,
                reservation_date=now,
                status=ReservationStatus.PENDING,
            )

            hold = await self._try_hold(reservation, hold_hours, now)
            if hold is not None:
                outcome = HoldAllocation(
                    reservation_id=reservation.id,
                    book_title_id=book_title_id,
                    copy_id=hold.copy_id,
                    expires_at=hold.expires_at,
                )
            else:
                position = await self.queue.enqueue(book_title_id, reservation.id)
                outcome = QueuePlacement(
                    reservation_id=reservation.id,
                    book_title_id=book_title_id,
                    position=position,
                )

        logger.info(
            f"Reserva {outcome.reservation_id} criada ({outcome.mode}) "
            f"para carteirinha {card_id}, título {book_title_id}"
        )
        return outcome

    async def _try_hold(
        self,
        reservation: Reservation,
        hold_hours: int,
        now: datetime,
    ) -> ReservationHold | None:
        """Separa uma cópia livre para a reserva, se houver. Marca READY."""
        copy = await self.ledger.find_free_copy(reservation.book_title_id)
        if copy is None:
            return None

        try:
            hold = await self.holds.create_hold(reservation.id, copy.id, hold_hours, now)
        except ConflictError as e:
            logger.warning(f"Cópia {copy.id} não pôde ser separada: {e.message}")
            return None

        await self.reservation_repo.update_status(
            reservation,
            ReservationStatus.READY,
            expiration_date=hold.expires_at,
        )
        return hold

    # ==========================================
    # Promoção da fila
    # ==========================================

    async def on_copy_released(
        self,
        book_title_id: UUID,
        hold_hours: int | None = None,
    ) -> Promotion | None:
        """
        Uma cópia do título ficou livre: promove a próxima reserva da fila.

        No-op (None) se a fila está vazia ou se nenhuma cópia está livre.

        Raises:
            NotFoundError: Título não encontrado
        """
        async with self._title_section(book_title_id) as outbox:
            await self.ledger.get_title(book_title_id)
            promotion = await self._promote_next(
                book_title_id, hold_hours or self.hold_hours, self.clock(), outbox
            )
        return promotion

    async def handle_return(
        self,
        copy_id: UUID | None = None,
        loan_detail_id: UUID | None = None,
    ) -> ReturnResult:
        """Devolução informada pelo subsistema de empréstimos."""
        if copy_id is not None:
            book_title_id = await self.ledger.title_for_copy(copy_id)
        elif loan_detail_id is not None:
            book_title_id = await self.ledger.title_for_loan(loan_detail_id)
        else:
            raise ValueError("copy_id ou loan_detail_id é obrigatório")

        promotion = await self.on_copy_released(book_title_id)
        return ReturnResult(
            promoted=promotion is not None,
            reservation_id=promotion.reservation_id if promotion else None,
            book_title_id=book_title_id,
        )

    async def _promote_next(
        self,
        book_title_id: UUID,
        hold_hours: int,
        now: datetime,
        outbox: list[ReadyNotice],
    ) -> Promotion | None:
        """
        Promove a reserva PENDING da frente da fila para READY.

        Chamar apenas dentro de _title_section do mesmo título.
        """
        reservation_id = await self.queue.peek_next(book_title_id)
        if reservation_id is None:
            return None

        copy = await self.ledger.find_free_copy(book_title_id)
        if copy is None:
            logger.debug(f"Título {book_title_id}: fila aguardando, nenhuma cópia livre")
            return None

        reservation = await self.reservation_repo.get_fresh(reservation_id)
        try:
            hold = await self.holds.create_hold(reservation.id, copy.id, hold_hours, now)
        except ConflictError as e:
            logger.warning(f"Promoção da reserva {reservation_id} abortada: {e.message}")
            return None

        await self.reservation_repo.update_status(
            reservation,
            ReservationStatus.READY,
            expiration_date=hold.expires_at,
        )
        await self.queue.dequeue(reservation.id)
        outbox.append(await self._ready_notice(reservation, hold.expires_at))

        logger.info(
            f"Reserva {reservation.id} promovida: cópia {copy.id} separada "
            f"até {hold.expires_at.isoformat()}"
        )
        return Promotion(
            reservation_id=reservation.id,
            book_title_id=book_title_id,
            copy_id=copy.id,
            expires_at=hold.expires_at,
        )

    async def _ready_notice(self, reservation: Reservation, expires_at: datetime) -> ReadyNotice:
        card = await self.card_repo.get_by_id(reservation.card_id)
        book = await self.ledger.get_title(reservation.book_title_id)
        return ReadyNotice(
            reader_id=card.reader_id,
            reservation_id=reservation.id,
            message=build_ready_message(book.title, expires_at),
        )

    # ==========================================
    # Cancelamento
    # ==========================================

    async def cancel_reservation(
        self,
        reservation_id: UUID,
        requester_id: str | None = None,
    ) -> CancelResult:
        """
        Cancela uma reserva PENDING ou READY.

        Remove hold e entrada de fila e, em seguida, tenta promover a próxima
        da fila: além da cópia liberada pelo hold, pode haver uma cópia livre
        cuja devolução ainda não foi informada.

        Raises:
            NotFoundError: Reserva não encontrada
            StateError: Reserva já em status terminal
        """
        reservation = await self.reservation_repo.get_by_id(reservation_id)
        if not reservation:
            raise NotFoundError("Reserva não encontrada")
        book_title_id = reservation.book_title_id

        async with self._title_section(book_title_id) as outbox:
            reservation = await self.reservation_repo.get_fresh(reservation_id)
            if not reservation.can_be_cancelled:
                raise StateError(
                    f"Reserva com status {reservation.status.value} não pode ser cancelada"
                )

            await self.holds.release_hold(reservation.id)
            await self.queue.dequeue(reservation.id)
            await self.reservation_repo.update_status(
                reservation,
                ReservationStatus.CANCELLED,
                expiration_date=None,
            )

            promotion = await self._promote_next(
                book_title_id, self.hold_hours, self.clock(), outbox
            )

        logger.info(
            f"Reserva {reservation_id} cancelada"
            + (f" por {requester_id}" if requester_id else "")
        )
        return CancelResult(
            reservation_id=reservation_id,
            book_title_id=book_title_id,
            status=ReservationStatus.CANCELLED,
            promoted=promotion,
            message="Reserva cancelada com sucesso",
        )

    # ==========================================
    # Varredura de holds vencidos
    # ==========================================

    async def expire_stale_reservations(
        self,
        now: datetime | None = None,
        hold_hours: int | None = None,
    ) -> SweepResult:
        """
        Expira holds vencidos e repassa as cópias para a fila.

        Processa título a título, cada um na sua seção crítica. Falha em
        um título é registrada e não impede os demais.
        """
        now = now or self.clock()
        hold_hours = hold_hours or self.hold_hours

        title_ids = await self.holds.titles_with_stale_holds(now)

        expired_count = 0
        promoted: list[UUID] = []
        failed: list[UUID] = []
        affected: list[UUID] = []

        for book_title_id in title_ids:
            try:
                async with self._title_section(book_title_id) as outbox:
                    expired = await self.holds.expire_stale_holds(now, book_title_id)
                    for item in expired:
                        reservation = await self.reservation_repo.get_fresh(item.reservation_id)
                        if reservation and reservation.status == ReservationStatus.READY:
                            await self.reservation_repo.update_status(
                                reservation,
                                ReservationStatus.EXPIRED,
                                expiration_date=reservation.expiration_date,
                            )

                    title_promoted = []
                    for _ in expired:
                        promotion = await self._promote_next(book_title_id, hold_hours, now, outbox)
                        if promotion is None:
                            break
                        title_promoted.append(promotion.reservation_id)
            except (ReservationEngineError, SQLAlchemyError) as e:
                logger.error(f"Varredura falhou para o título {book_title_id}: {e}")
                failed.append(book_title_id)
                continue

            expired_count += len(expired)
            promoted.extend(title_promoted)
            affected.append(book_title_id)

        if expired_count or failed:
            logger.info(
                f"Varredura: {expired_count} hold(s) expirado(s), "
                f"{len(promoted)} promoção(ões), {len(failed)} título(s) com falha"
            )

        return SweepResult(
            expired_count=expired_count,
            promoted=promoted,
            affected_book_title_ids=affected,
            failed_book_title_ids=failed,
            message=f"{expired_count} hold(s) expirado(s), {len(promoted)} reserva(s) promovida(s)",
        )

    # ==========================================
    # Retirada (empréstimo criado)
    # ==========================================

    async def fulfill_reservation(self, reservation_id: UUID) -> FulfillResult:
        """
        Marca a reserva como FULFILLED e remove hold/entrada de fila.

        Raises:
            NotFoundError: Reserva não encontrada
            StateError: Reserva não está PENDING nem READY
        """
        reservation = await self.reservation_repo.get_by_id(reservation_id)
        if not reservation:
            raise NotFoundError("Reserva não encontrada")

        async with self._title_section(reservation.book_title_id):
            reservation = await self.reservation_repo.get_fresh(reservation_id)
            await self._fulfill(reservation)

        return FulfillResult(
            fulfilled=True,
            reservation_id=reservation_id,
            book_title_id=reservation.book_title_id,
            message="Reserva concluída",
        )

    async def fulfill_for_card(self, card_id: UUID, book_title_id: UUID) -> FulfillResult:
        """
        Empréstimo criado para a carteirinha: conclui a reserva ativa dela
        para o título, se existir.
        """
        async with self._title_section(book_title_id):
            reservation = await self.reservation_repo.get_active_by_card_and_title(
                card_id, book_title_id
            )
            if reservation is None:
                return FulfillResult(
                    fulfilled=False,
                    book_title_id=book_title_id,
                    message="Nenhuma reserva ativa para esta carteirinha e título",
                )
            await self._fulfill(reservation)

        return FulfillResult(
            fulfilled=True,
            reservation_id=reservation.id,
            book_title_id=book_title_id,
            message="Reserva concluída",
        )

    async def _fulfill(self, reservation: Reservation) -> None:
        if not reservation.is_active:
            raise StateError(
                f"Reserva com status {reservation.status.value} não pode ser concluída"
            )

        await self.holds.release_hold(reservation.id)
        await self.queue.dequeue(reservation.id)
        await self.reservation_repo.update_status(
            reservation,
            ReservationStatus.FULFILLED,
            expiration_date=reservation.expiration_date,
        )
        logger.info(f"Reserva {reservation.id} concluída")

    # ==========================================
    # Acervo
    # ==========================================

    async def acquire_copy(
        self,
        book_title_id: UUID,
        condition: str | None = None,
        price: Decimal | None = None,
    ) -> CopyMutationResult:
        """Nova cópia registrada: entra no acervo e atende a fila, se houver."""
        async with self._title_section(book_title_id) as outbox:
            copy = await self.ledger.add_copy(book_title_id, condition, price)
            promotion = await self._promote_next(
                book_title_id, self.hold_hours, self.clock(), outbox
            )

        return CopyMutationResult(
            book_copy=CopyRead.model_validate(copy),
            promoted=promotion,
        )

    async def update_copy_status(self, copy_id: UUID, status: CopyStatus) -> CopyMutationResult:
        """
        Altera o status físico de uma cópia.

        Voltar para AVAILABLE promove a fila. Uma cópia separada não pode
        ser marcada DAMAGED ou LOST enquanto o hold existir.

        Raises:
            NotFoundError: Cópia não encontrada
            ConflictError: Cópia separada para uma reserva
        """
        book_title_id = await self.ledger.title_for_copy(copy_id)

        async with self._title_section(book_title_id) as outbox:
            if status in (CopyStatus.DAMAGED, CopyStatus.LOST):
                if await self.holds.is_copy_held(copy_id):
                    raise ConflictError(
                        "Cópia separada para uma reserva. Cancele ou conclua a reserva antes."
                    )

            copy = await self.ledger.mark_copy_status(copy_id, status)

            promotion = None
            if status == CopyStatus.AVAILABLE:
                promotion = await self._promote_next(
                    book_title_id, self.hold_hours, self.clock(), outbox
                )

        return CopyMutationResult(
            book_copy=CopyRead.model_validate(copy),
            promoted=promotion,
        )
