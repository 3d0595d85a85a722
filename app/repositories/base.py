"""
Base repository.

Shared lookups for the chainhook repositories. Repositories flush but
never commit: every caller owns its transaction, which is what lets the
poller commit a cursor together with the events of its range.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Lookup helpers bound to one model and one session.

    Example:
        class SubscriptionRepository(BaseRepository[Subscription]):
            def __init__(self, session: AsyncSession):
                super().__init__(Subscription, session)
    """

    def __init__(
        self, model: type[ModelType], session: AsyncSession
    ) -> None:
        self.model = model
        self.session = session

    async def get_by_id(self, id: int) -> ModelType | None:
        """Primary key lookup (served from the identity map when loaded)."""
        return await self.session.get(self.model, id)

    async def get_by(self, **filters: Any) -> ModelType | None:
        """
        First row matching all column filters.

        Args:
            **filters: Column name -> value equality filters

        Returns:
            Matching row or None
        """
        stmt = select(self.model).filter_by(**filters).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def count(self, **filters: Any) -> int:
        """Number of rows matching the column filters."""
        stmt = select(func.count()).select_from(self.model).filter_by(**filters)
        result = await self.session.execute(stmt)
        return result.scalar() or 0
