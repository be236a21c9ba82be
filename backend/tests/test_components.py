"""
Testes dos componentes de alocação: QueueManager, HoldManager e InventoryLedger.

Os componentes não fazem commit nem lock; os testes chamam direto na
sessão de teste e conferem o efeito após flush.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from reservation_engine.core.exceptions import ConflictError, NotFoundError
from reservation_engine.models.enums import CopyStatus, ReservationStatus
from reservation_engine.models.reservation import Reservation
from reservation_engine.services.holds import HoldManager
from reservation_engine.services.inventory import InventoryLedger
from reservation_engine.services.queue import QueueManager

pytestmark = pytest.mark.anyio

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


async def new_reservation(db, card_id, book_title_id, status=ReservationStatus.PENDING) -> Reservation:
    reservation = Reservation(
        card_id=card_id,
        book_title_id=book_title_id,
        reservation_date=NOW,
        status=status,
    )
    db.add(reservation)
    await db.flush()
    return reservation


# ==========================================
# QueueManager
# ==========================================

class TestQueueManager:
    """Testes para QueueManager."""

    async def test_enqueue_assigns_dense_positions(self, test_db, factory):
        book = await factory.title()
        card = await factory.card()
        queue = QueueManager(test_db)

        positions = []
        for _ in range(3):
            reservation = await new_reservation(test_db, card.id, book.id)
            positions.append(await queue.enqueue(book.id, reservation.id))

        assert positions == [1, 2, 3]

    async def test_queues_are_independent_per_title(self, test_db, factory):
        book_a = await factory.title(name="A")
        book_b = await factory.title(name="B")
        card = await factory.card()
        queue = QueueManager(test_db)

        r_a = await new_reservation(test_db, card.id, book_a.id)
        r_b = await new_reservation(test_db, card.id, book_b.id)

        assert await queue.enqueue(book_a.id, r_a.id) == 1
        assert await queue.enqueue(book_b.id, r_b.id) == 1

    async def test_dequeue_head_shifts_tail(self, test_db, factory):
        book = await factory.title()
        card = await factory.card()
        queue = QueueManager(test_db)
        reservations = [await new_reservation(test_db, card.id, book.id) for _ in range(3)]
        for r in reservations:
            await queue.enqueue(book.id, r.id)

        removed = await queue.dequeue(reservations[0].id)

        assert removed == 1
        assert await queue.position_of(reservations[1].id) == 1
        assert await queue.position_of(reservations[2].id) == 2
        assert await queue.position_of(reservations[0].id) is None

    async def test_dequeue_tail_leaves_others(self, test_db, factory):
        book = await factory.title()
        card = await factory.card()
        queue = QueueManager(test_db)
        reservations = [await new_reservation(test_db, card.id, book.id) for _ in range(2)]
        for r in reservations:
            await queue.enqueue(book.id, r.id)

        assert await queue.dequeue(reservations[1].id) == 2
        assert await queue.position_of(reservations[0].id) == 1

    async def test_dequeue_absent_is_noop(self, test_db):
        queue = QueueManager(test_db)
        assert await queue.dequeue(uuid.uuid4()) is None

    async def test_enqueue_after_dequeue_appends(self, test_db, factory):
        book = await factory.title()
        card = await factory.card()
        queue = QueueManager(test_db)
        first, second, third = [await new_reservation(test_db, card.id, book.id) for _ in range(3)]
        await queue.enqueue(book.id, first.id)
        await queue.enqueue(book.id, second.id)
        await queue.dequeue(first.id)

        assert await queue.enqueue(book.id, third.id) == 2

    async def test_peek_next_skips_non_pending(self, test_db, factory):
        book = await factory.title()
        card = await factory.card()
        queue = QueueManager(test_db)
        stale = await new_reservation(test_db, card.id, book.id)
        waiting = await new_reservation(test_db, card.id, book.id)
        await queue.enqueue(book.id, stale.id)
        await queue.enqueue(book.id, waiting.id)

        stale.status = ReservationStatus.CANCELLED
        await test_db.flush()

        assert await queue.peek_next(book.id) == waiting.id

    async def test_peek_next_empty(self, test_db, factory):
        book = await factory.title()
        assert await QueueManager(test_db).peek_next(book.id) is None

    async def test_snapshot_is_ordered(self, test_db, factory):
        book = await factory.title()
        cards = [await factory.card() for _ in range(3)]
        queue = QueueManager(test_db)
        reservations = [await new_reservation(test_db, c.id, book.id) for c in cards]
        for r in reservations:
            await queue.enqueue(book.id, r.id)
        await queue.dequeue(reservations[1].id)

        snapshot = await queue.snapshot(book.id)

        assert [(e.reservation_id, e.position) for e in snapshot] == [
            (reservations[0].id, 1),
            (reservations[2].id, 2),
        ]
        assert snapshot[1].card_id == cards[2].id
        assert snapshot[0].status == ReservationStatus.PENDING


# ==========================================
# HoldManager
# ==========================================

class TestHoldManager:
    """Testes para HoldManager."""

    async def test_create_hold_sets_deadline(self, test_db, factory):
        book = await factory.title(copies=1)
        card = await factory.card()
        (copy,) = await factory.copies_of(book.id)
        reservation = await new_reservation(test_db, card.id, book.id)

        hold = await HoldManager(test_db).create_hold(reservation.id, copy.id, 24, NOW)

        assert hold.copy_id == copy.id
        assert hold.expires_at == NOW + timedelta(hours=24)

    async def test_copy_cannot_be_held_twice(self, test_db, factory):
        book = await factory.title(copies=1)
        card = await factory.card()
        (copy,) = await factory.copies_of(book.id)
        first = await new_reservation(test_db, card.id, book.id)
        second = await new_reservation(test_db, card.id, book.id)
        holds = HoldManager(test_db)
        await holds.create_hold(first.id, copy.id, 24, NOW)

        with pytest.raises(ConflictError):
            await holds.create_hold(second.id, copy.id, 24, NOW)

    async def test_reservation_cannot_hold_two_copies(self, test_db, factory):
        book = await factory.title(copies=2)
        card = await factory.card()
        copy_a, copy_b = await factory.copies_of(book.id)
        reservation = await new_reservation(test_db, card.id, book.id)
        holds = HoldManager(test_db)
        await holds.create_hold(reservation.id, copy_a.id, 24, NOW)

        with pytest.raises(ConflictError):
            await holds.create_hold(reservation.id, copy_b.id, 24, NOW)

    async def test_lost_copy_cannot_be_held(self, test_db, factory):
        book = await factory.title(copies=1)
        card = await factory.card()
        (copy,) = await factory.copies_of(book.id)
        copy.availability_status = CopyStatus.LOST
        reservation = await new_reservation(test_db, card.id, book.id)

        with pytest.raises(ConflictError):
            await HoldManager(test_db).create_hold(reservation.id, copy.id, 24, NOW)

    async def test_copy_on_loan_cannot_be_held(self, test_db, factory):
        book = await factory.title(copies=1)
        card = await factory.card()
        (copy,) = await factory.copies_of(book.id)
        await factory.loan(copy.id, card.id)
        copy = (await factory.copies_of(book.id))[0]
        copy.availability_status = CopyStatus.AVAILABLE
        reservation = await new_reservation(test_db, card.id, book.id)

        with pytest.raises(ConflictError):
            await HoldManager(test_db).create_hold(reservation.id, copy.id, 24, NOW)

    async def test_unknown_copy(self, test_db, factory):
        book = await factory.title()
        card = await factory.card()
        reservation = await new_reservation(test_db, card.id, book.id)

        with pytest.raises(NotFoundError):
            await HoldManager(test_db).create_hold(reservation.id, uuid.uuid4(), 24, NOW)

    async def test_release_is_idempotent(self, test_db, factory):
        book = await factory.title(copies=1)
        card = await factory.card()
        (copy,) = await factory.copies_of(book.id)
        reservation = await new_reservation(test_db, card.id, book.id)
        holds = HoldManager(test_db)
        await holds.create_hold(reservation.id, copy.id, 24, NOW)

        assert await holds.release_hold(reservation.id) is not None
        assert await holds.release_hold(reservation.id) is None
        assert await holds.is_copy_held(copy.id) is False

    async def test_expire_stale_only_removes_lapsed(self, test_db, factory):
        book = await factory.title(copies=2)
        card = await factory.card()
        copy_a, copy_b = await factory.copies_of(book.id)
        old = await new_reservation(test_db, card.id, book.id)
        fresh = await new_reservation(test_db, card.id, book.id)
        holds = HoldManager(test_db)
        await holds.create_hold(old.id, copy_a.id, 1, NOW)
        await holds.create_hold(fresh.id, copy_b.id, 24, NOW)

        later = NOW + timedelta(hours=2)
        assert await holds.titles_with_stale_holds(later) == [book.id]

        expired = await holds.expire_stale_holds(later)

        assert [(e.reservation_id, e.copy_id, e.book_title_id) for e in expired] == [
            (old.id, copy_a.id, book.id)
        ]
        assert await holds.get_hold(old.id) is None
        assert await holds.get_hold(fresh.id) is not None

    async def test_expire_stale_filters_by_title(self, test_db, factory):
        book_a = await factory.title(copies=1, name="A")
        book_b = await factory.title(copies=1, name="B")
        card = await factory.card()
        (copy_a,) = await factory.copies_of(book_a.id)
        (copy_b,) = await factory.copies_of(book_b.id)
        r_a = await new_reservation(test_db, card.id, book_a.id)
        r_b = await new_reservation(test_db, card.id, book_b.id)
        holds = HoldManager(test_db)
        await holds.create_hold(r_a.id, copy_a.id, 1, NOW)
        await holds.create_hold(r_b.id, copy_b.id, 1, NOW)

        expired = await holds.expire_stale_holds(NOW + timedelta(hours=2), book_title_id=book_a.id)

        assert [e.reservation_id for e in expired] == [r_a.id]
        assert await holds.get_hold(r_b.id) is not None


# ==========================================
# InventoryLedger
# ==========================================

class TestInventoryLedger:
    """Testes para InventoryLedger."""

    async def test_count_available_excludes_loans_holds_and_damage(self, test_db, factory):
        book = await factory.title(copies=4)
        card = await factory.card()
        c1, c2, c3, _ = await factory.copies_of(book.id)
        await factory.loan(c1.id, card.id)
        reservation = await new_reservation(test_db, card.id, book.id)
        await HoldManager(test_db).create_hold(reservation.id, c2.id, 24, NOW)
        ledger = InventoryLedger(test_db)
        await ledger.mark_copy_status(c3.id, CopyStatus.DAMAGED)

        assert await ledger.count_available_copies(book.id, NOW) == 1

    async def test_lapsed_hold_counts_as_available(self, test_db, factory):
        book = await factory.title(copies=1)
        card = await factory.card()
        (copy,) = await factory.copies_of(book.id)
        reservation = await new_reservation(test_db, card.id, book.id)
        await HoldManager(test_db).create_hold(reservation.id, copy.id, 1, NOW)
        ledger = InventoryLedger(test_db)

        assert await ledger.count_available_copies(book.id, NOW) == 0
        assert await ledger.count_available_copies(book.id, NOW + timedelta(hours=2)) == 1
        # a cópia só volta a ser alocável depois da varredura
        assert await ledger.find_free_copy(book.id) is None

    async def test_returned_loan_frees_copy(self, test_db, factory):
        book = await factory.title(copies=1)
        card = await factory.card()
        (copy,) = await factory.copies_of(book.id)
        loan = await factory.loan(copy.id, card.id)
        ledger = InventoryLedger(test_db)
        assert await ledger.find_free_copy(book.id) is None

        await factory.return_loan(loan.id)

        free = await ledger.find_free_copy(book.id)
        assert free is not None
        assert free.id == copy.id

    async def test_unknown_title(self, test_db):
        with pytest.raises(NotFoundError):
            await InventoryLedger(test_db).count_available_copies(uuid.uuid4(), NOW)

    async def test_next_hold_expiry(self, test_db, factory):
        book = await factory.title(copies=2)
        card1, card2 = await factory.card(), await factory.card()
        c1, c2 = await factory.copies_of(book.id)
        ledger = InventoryLedger(test_db)
        holds = HoldManager(test_db)
        assert await ledger.next_hold_expiry(book.id, NOW) is None

        long_hold = await new_reservation(test_db, card1.id, book.id)
        short_hold = await new_reservation(test_db, card2.id, book.id)
        await holds.create_hold(long_hold.id, c1.id, 24, NOW)
        await holds.create_hold(short_hold.id, c2.id, 2, NOW)

        soonest = await ledger.next_hold_expiry(book.id, NOW)
        assert soonest.replace(tzinfo=None) == (NOW + timedelta(hours=2)).replace(tzinfo=None)
        # hold vencido fica de fora
        later = await ledger.next_hold_expiry(book.id, NOW + timedelta(hours=3))
        assert later.replace(tzinfo=None) == (NOW + timedelta(hours=24)).replace(tzinfo=None)

    async def test_title_for_loan(self, test_db, factory):
        book = await factory.title(copies=1)
        card = await factory.card()
        (copy,) = await factory.copies_of(book.id)
        loan = await factory.loan(copy.id, card.id)
        ledger = InventoryLedger(test_db)

        assert await ledger.title_for_loan(loan.id) == book.id
        assert await ledger.title_for_copy(copy.id) == book.id
        with pytest.raises(NotFoundError):
            await ledger.title_for_loan(uuid.uuid4())

    async def test_availability_summary(self, test_db, factory):
        book = await factory.title(copies=3)
        card = await factory.card()
        c1, c2, c3 = await factory.copies_of(book.id)
        await factory.loan(c1.id, card.id)
        reservation = await new_reservation(test_db, card.id, book.id)
        await HoldManager(test_db).create_hold(reservation.id, c2.id, 24, NOW)

        summary = await InventoryLedger(test_db).availability_summary(book.id, NOW)

        assert summary.total_copies == 3
        assert summary.on_loan_copies == 1
        assert summary.held_copies == 1
        assert summary.out_of_service_copies == 0
        assert summary.available_copies == 1
        assert summary.is_reservable is True
        assert summary.will_hold_if_available is True

    async def test_availability_summary_without_copies(self, test_db, factory):
        book = await factory.title(copies=0)

        summary = await InventoryLedger(test_db).availability_summary(book.id, NOW)

        assert summary.total_copies == 0
        assert summary.is_reservable is False
        assert summary.will_hold_if_available is False

    async def test_add_copy(self, test_db, factory):
        book = await factory.title(copies=0)
        ledger = InventoryLedger(test_db)

        copy = await ledger.add_copy(book.id, condition="Novo")

        assert copy.availability_status == CopyStatus.AVAILABLE
        assert await ledger.count_available_copies(book.id, NOW) == 1
