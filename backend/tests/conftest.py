"""
Fixtures compartilhadas para testes.

Cada teste recebe um banco SQLite próprio (aiosqlite em tmp_path), criado
a partir do metadata dos models. Locks são em memória e notificações são
apenas registradas.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import reservation_engine.models  # noqa: F401
from reservation_engine.core.deps import get_allocation_engine, get_clock
from reservation_engine.core.locks import LocalTitleLockManager
from reservation_engine.db.session import Base, get_db
from reservation_engine.main import app
from reservation_engine.models.book import BookTitle, BookCopy
from reservation_engine.models.card import LibraryCard
from reservation_engine.models.enums import CopyStatus, ReservationStatus
from reservation_engine.models.loan import LoanDetail
from reservation_engine.models.reservation import (
    Reservation,
    ReservationHold,
    ReservationQueueEntry,
)
from reservation_engine.services.allocation import AllocationEngine
from reservation_engine.services.notifications import NotificationEmitter


# ==========================================
# Event loop configuration
# ==========================================

@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


# ==========================================
# Colaboradores de teste
# ==========================================

class RecordingEmitter(NotificationEmitter):
    """Guarda os avisos em memória."""

    def __init__(self):
        self.notices = []

    async def emit(self, notice) -> None:
        self.notices.append(notice)


class FrozenClock:
    """Relógio controlado pelo teste."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, hours: float) -> datetime:
        self.now = self.now + timedelta(hours=hours)
        return self.now


# ==========================================
# Database fixtures
# ==========================================

@pytest.fixture
async def test_engine(tmp_path):
    """
    Engine SQLite por teste com NullPool.

    Cada sessão abre sua própria conexão, o que permite testar seções
    críticas concorrentes com sessões independentes.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'reservations.db'}",
        echo=False,
        poolclass=NullPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Sessão usada pelo teste para montar dados e conferir resultados."""
    async with session_factory() as session:
        yield session


# ==========================================
# Engine fixtures
# ==========================================

@pytest.fixture
def locks() -> LocalTitleLockManager:
    return LocalTitleLockManager(timeout=5.0)


@pytest.fixture
def notifier() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
async def engine_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Sessão exclusiva do motor (separada da sessão de conferência)."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def allocation(engine_session, locks, notifier, clock) -> AllocationEngine:
    return AllocationEngine(engine_session, locks, notifier, hold_hours=24, clock=clock)


@pytest.fixture
async def make_engine(session_factory, locks, notifier, clock):
    """
    Cria motores adicionais, cada um com sua própria sessão.

    Usado nos testes de concorrência. As sessões são fechadas no teardown.
    """
    sessions = []

    def _make() -> AllocationEngine:
        session = session_factory()
        sessions.append(session)
        return AllocationEngine(session, locks, notifier, hold_hours=24, clock=clock)

    yield _make

    for session in sessions:
        await session.close()


# ==========================================
# Data fixtures
# ==========================================

class DataFactory:
    """Cria títulos, cópias, carteirinhas e empréstimos já commitados."""

    def __init__(self, db: AsyncSession, clock: FrozenClock):
        self.db = db
        self.clock = clock
        self._cards = 0

    async def title(self, copies: int = 0, name: str = "Memórias Póstumas") -> BookTitle:
        book = BookTitle(title=name)
        self.db.add(book)
        await self.db.flush()
        for _ in range(copies):
            self.db.add(BookCopy(book_title_id=book.id, availability_status=CopyStatus.AVAILABLE))
        await self.db.commit()
        return book

    async def copies_of(self, book_title_id: uuid.UUID) -> list[BookCopy]:
        result = await self.db.execute(
            select(BookCopy)
            .where(BookCopy.book_title_id == book_title_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def card(self) -> LibraryCard:
        self._cards += 1
        card = LibraryCard(card_number=f"CARD-{self._cards:04d}", reader_id=uuid.uuid4())
        self.db.add(card)
        await self.db.commit()
        return card

    async def loan(self, copy_id: uuid.UUID, card_id: uuid.UUID) -> LoanDetail:
        """Empréstimo aberto: cópia vira ON_LOAN."""
        copy = await self.db.get(BookCopy, copy_id, populate_existing=True)
        copy.availability_status = CopyStatus.ON_LOAN
        loan = LoanDetail(
            copy_id=copy_id,
            card_id=card_id,
            loaned_at=self.clock(),
            due_date=self.clock() + timedelta(days=14),
        )
        self.db.add(loan)
        await self.db.commit()
        return loan

    async def return_loan(self, loan_id: uuid.UUID) -> LoanDetail:
        """Devolução: fecha o empréstimo e a cópia volta para AVAILABLE."""
        loan = await self.db.get(LoanDetail, loan_id, populate_existing=True)
        loan.return_date = self.clock()
        await self.db.flush()
        copy = await self.db.get(BookCopy, loan.copy_id, populate_existing=True)
        copy.availability_status = CopyStatus.AVAILABLE
        await self.db.commit()
        return loan

    async def reservation(self, reservation_id: uuid.UUID) -> Reservation:
        return await self.db.get(Reservation, reservation_id, populate_existing=True)

    async def hold_for(self, reservation_id: uuid.UUID) -> ReservationHold | None:
        result = await self.db.execute(
            select(ReservationHold)
            .where(ReservationHold.reservation_id == reservation_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def queue_positions(self, book_title_id: uuid.UUID) -> list[tuple[uuid.UUID, int]]:
        result = await self.db.execute(
            select(ReservationQueueEntry.reservation_id, ReservationQueueEntry.position)
            .where(ReservationQueueEntry.book_title_id == book_title_id)
            .order_by(ReservationQueueEntry.position)
        )
        return [(row.reservation_id, row.position) for row in result.all()]


@pytest.fixture
def factory(test_db, clock) -> DataFactory:
    return DataFactory(test_db, clock)


@pytest.fixture
def check_invariants(test_db):
    """
    Confere as invariantes de alocação de um título:
        - holds + cópias emprestadas <= total de cópias
        - posições da fila são exatamente 1..N, N = reservas PENDING
        - toda READY tem hold; nenhuma PENDING tem hold
        - no máximo um hold por cópia e por reserva
    """

    async def _check(book_title_id: uuid.UUID) -> None:
        total = await test_db.scalar(
            select(func.count(BookCopy.id)).where(BookCopy.book_title_id == book_title_id)
        )
        holds = (
            await test_db.execute(
                select(ReservationHold)
                .join(BookCopy, BookCopy.id == ReservationHold.copy_id)
                .where(BookCopy.book_title_id == book_title_id)
                .execution_options(populate_existing=True)
            )
        ).scalars().all()
        on_loan = await test_db.scalar(
            select(func.count(LoanDetail.id))
            .join(BookCopy, BookCopy.id == LoanDetail.copy_id)
            .where(BookCopy.book_title_id == book_title_id, LoanDetail.return_date.is_(None))
        )
        assert len(holds) + on_loan <= total

        assert len({h.copy_id for h in holds}) == len(holds)
        assert len({h.reservation_id for h in holds}) == len(holds)

        positions = (
            await test_db.execute(
                select(ReservationQueueEntry.position)
                .where(ReservationQueueEntry.book_title_id == book_title_id)
                .order_by(ReservationQueueEntry.position)
            )
        ).scalars().all()

        reservations = (
            await test_db.execute(
                select(Reservation)
                .where(Reservation.book_title_id == book_title_id)
                .execution_options(populate_existing=True)
            )
        ).scalars().all()
        pending = [r for r in reservations if r.status == ReservationStatus.PENDING]
        ready = [r for r in reservations if r.status == ReservationStatus.READY]

        assert list(positions) == list(range(1, len(pending) + 1))

        held_ids = {h.reservation_id for h in holds}
        assert {r.id for r in ready} == held_ids
        assert not held_ids & {r.id for r in pending}

    return _check


# ==========================================
# HTTP Client fixtures
# ==========================================

@pytest.fixture
async def client(session_factory, locks, notifier, clock) -> AsyncGenerator[AsyncClient, None]:
    """
    Cliente HTTP assíncrono para testes.

    Substitui get_db, o relógio e o motor para usar o banco, o relógio,
    os locks e o notificador de teste.
    """

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_engine():
        async with session_factory() as session:
            yield AllocationEngine(session, locks, notifier, hold_hours=24, clock=clock)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_allocation_engine] = override_get_engine
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
