"""
Repository base com operações genéricas.

Os repositories apenas fazem flush: quem abre a transação (o motor de
alocação, dentro do lock do título) decide o commit ou rollback.
"""

from typing import Any, Generic, Type, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reservation_engine.db.session import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Repository base.

    Fornece métodos genéricos para:
    - get_by_id: Buscar por ID
    - get_fresh: Buscar por ID ignorando o identity map (dentro do lock)
    - create: Criar registro
    - delete: Remover registro
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        self.model = model
        self.db = db

    async def get_by_id(self, id: UUID) -> ModelType | None:
        """Busca registro por ID."""
        result = await self.db.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def get_fresh(self, id: UUID) -> ModelType | None:
        """
        Busca registro por ID recarregando atributos já presentes na sessão.

        Usado após adquirir o lock do título, quando o objeto pode ter sido
        lido antes por esta mesma sessão.
        """
        result = await self.db.execute(
            select(self.model)
            .where(self.model.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> ModelType:
        """Cria novo registro."""
        instance = self.model(**kwargs)
        self.db.add(instance)
        await self.db.flush()
        return instance

    async def delete(self, instance: ModelType) -> None:
        """Remove registro."""
        await self.db.delete(instance)
        await self.db.flush()
