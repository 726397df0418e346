"""
Primary-key CRUD shared by model-specific CRUD classes.

Methods flush but never commit; the session owner decides the transaction.

Dependencies: sqlalchemy
System role: Foundation for database CRUD operations
"""

from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from chatbox.boundary.db.base import Base

ModelT = TypeVar("ModelT", bound=Base)


class BaseCRUD(Generic[ModelT]):
    """
    Create, get and delete by primary key for one model class.

    Attributes:
        model: SQLAlchemy model class operated on
    """

    def __init__(self, model: type[ModelT]) -> None:
        self.model = model

    async def create(self, session: AsyncSession, **values: Any) -> ModelT:
        """Insert a row and return it with server defaults loaded."""
        instance = self.model(**values)
        session.add(instance)
        await session.flush()
        await session.refresh(instance)
        return instance

    async def get(self, session: AsyncSession, pk: Any) -> ModelT | None:
        return await session.get(self.model, pk)

    async def delete(self, session: AsyncSession, pk: Any) -> bool:
        """
        Delete a row by primary key.

        Returns:
            bool: False if no row had that key
        """
        instance = await self.get(session, pk)
        if instance is None:
            return False
        await session.delete(instance)
        await session.flush()
        return True
