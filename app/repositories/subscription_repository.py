"""
Subscription repository.

Data access layer for subscriptions and their block cursors.
"""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import SubscriptionStatus
from app.models.subscription import Subscription
from app.repositories.base import BaseRepository


class SubscriptionRepository(BaseRepository[Subscription]):
    """Repository for subscriptions."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(Subscription, session)

    async def get_active_ids(self) -> list[int]:
        """
        Get IDs of all subscriptions the poller should process.

        Returns:
            Active subscription IDs in creation order
        """
        stmt = (
            select(Subscription.id)
            .where(Subscription.status == SubscriptionStatus.ACTIVE.value)
            .order_by(Subscription.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_for_owner(
        self, subscription_id: int, owner_id: str
    ) -> Subscription | None:
        """
        Get subscription only if it belongs to the owner.

        Args:
            subscription_id: Subscription ID
            owner_id: Owner identity resolved by the management API

        Returns:
            Subscription or None
        """
        return await self.get_by(id=subscription_id, owner_id=owner_id)

    async def advance_cursor(self, subscription_id: int, block: int) -> bool:
        """
        Move the cursor forward.

        The update only applies when `block` is ahead of the stored
        cursor, so concurrent or replayed cycles can never rewind it.

        Args:
            subscription_id: Subscription ID
            block: New last processed block

        Returns:
            True if the cursor moved
        """
        stmt = (
            update(Subscription)
            .where(
                Subscription.id == subscription_id,
                Subscription.last_processed_block < block,
            )
            .values(last_processed_block=block)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def reset_cursor(self, subscription_id: int, block: int = 0) -> bool:
        """
        Administrative cursor reset.

        Setting 0 makes the poller re-initialize the cursor at the
        current head on its next cycle.

        Args:
            subscription_id: Subscription ID
            block: Block to rewind to

        Returns:
            True if the subscription exists
        """
        if block < 0:
            raise ValueError("Cursor block must be >= 0")

        stmt = (
            update(Subscription)
            .where(Subscription.id == subscription_id)
            .values(last_processed_block=block)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1
