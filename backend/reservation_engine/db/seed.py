"""
Script de seed para criar dados de demonstração no banco.

Uso:
    python -m reservation_engine.db.seed

Cria um título com duas cópias e três carteirinhas, se ainda não existirem.
"""

import asyncio
import logging
import uuid

from sqlalchemy import select

from reservation_engine.db.session import async_session_factory
from reservation_engine.models.book import BookTitle, BookCopy
from reservation_engine.models.card import LibraryCard
from reservation_engine.models.enums import CopyStatus

logger = logging.getLogger(__name__)

DEMO_TITLE = "Dom Casmurro"
DEMO_CARDS = ["CARD-0001", "CARD-0002", "CARD-0003"]


async def create_demo_title() -> None:
    """Cria o título de demonstração com 2 cópias AVAILABLE."""
    async with async_session_factory() as db:
        result = await db.execute(select(BookTitle).where(BookTitle.title == DEMO_TITLE))
        if result.scalar_one_or_none():
            logger.info(f"Título já existe: {DEMO_TITLE}")
            return

        book = BookTitle(title=DEMO_TITLE)
        db.add(book)
        await db.flush()

        for _ in range(2):
            db.add(
                BookCopy(
                    book_title_id=book.id,
                    availability_status=CopyStatus.AVAILABLE,
                    condition="Bom",
                )
            )
        await db.commit()

        logger.info(f"Título criado: {DEMO_TITLE} (ID: {book.id})")


async def create_demo_cards() -> None:
    """Cria carteirinhas de demonstração."""
    async with async_session_factory() as db:
        for card_number in DEMO_CARDS:
            result = await db.execute(
                select(LibraryCard).where(LibraryCard.card_number == card_number)
            )
            if result.scalar_one_or_none():
                logger.info(f"Carteirinha já existe: {card_number}")
                continue

            card = LibraryCard(card_number=card_number, reader_id=uuid.uuid4())
            db.add(card)
            await db.flush()
            logger.info(f"Carteirinha criada: {card_number} (ID: {card.id})")

        await db.commit()


async def main() -> None:
    """Executa todos os seeds."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    logger.info("Executando seeds...")
    await create_demo_title()
    await create_demo_cards()
    logger.info("Seeds concluídos!")


if __name__ == "__main__":
    asyncio.run(main())
