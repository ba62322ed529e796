"""
Base repository with common CRUD operations.
All repositories should extend this class for database access.
"""
from typing import Generic, TypeVar, Type, Optional, List, Sequence

from sqlalchemy import select, delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from ephemera.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository with common CRUD operations.

    Provides generic database operations that can be reused across all repositories.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            db: Async database session
        """
        self.model = model
        self.db = db

    async def create(self, **kwargs) -> ModelType:
        """
        Create a new record.

        Example:
            ```python
            session = await session_repo.create(user_id=user.id, device_name="Laptop")
            ```
        """
        instance = self.model(**kwargs)
        self.db.add(instance)
        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    async def get(self, id: str) -> Optional[ModelType]:
        """
        Get a record by ID.

        Example:
            ```python
            message = await message_repo.get(message_id)
            if message:
                print(message.content)
            ```
        """
        result = await self.db.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def get_many(self, ids: Sequence[str]) -> List[ModelType]:
        """Get multiple records by IDs (unordered)."""
        if not ids:
            return []
        result = await self.db.execute(
            select(self.model).where(self.model.id.in_(list(ids)))
        )
        return list(result.scalars().all())

    async def delete(self, id: str) -> bool:
        """
        Delete a record by ID (hard delete).

        Returns:
            True if deleted, False if not found
        """
        result = await self.db.execute(
            delete(self.model).where(self.model.id == id)
        )
        await self.db.flush()
        return result.rowcount > 0

    def insert(self, model: Type[Base]):
        """
        Dialect-specific INSERT for the bound database.

        Both PostgreSQL and SQLite inserts support
        on_conflict_do_nothing(), which the ledger writes rely on.
        """
        dialect = self.db.get_bind().dialect.name
        if dialect == "sqlite":
            return sqlite.insert(model)
        return postgresql.insert(model)
