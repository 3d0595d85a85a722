"""
Webhook Delivery - Replay Module.

Module: replay.py
Operator and owner recovery actions: replaying events (including the
FAILED dead-letter set) and rewinding subscription cursors.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.captured_event import CapturedEvent
from app.repositories.captured_event_repository import CapturedEventRepository
from app.repositories.subscription_repository import SubscriptionRepository
from app.utils.datetime_utils import Clock, SystemClock


class ReplayManager:
    """Replay and cursor reset management."""

    def __init__(self, session: AsyncSession, clock: Clock | None = None) -> None:
        """Initialize replay manager."""
        self.session = session
        self.clock = clock or SystemClock()
        self.event_repo = CapturedEventRepository(session)
        self.subscription_repo = SubscriptionRepository(session)

    async def replay_event(
        self, event_id: int, owner_id: str | None = None
    ) -> tuple[bool, str | None]:
        """
        Reset an event to PENDING with retry_count 0, due now.

        Works from any state; a DELIVERED event is delivered again.

        Args:
            event_id: Captured event ID
            owner_id: If given, the event's subscription must belong to it

        Returns:
            Tuple of (success, error_message)
        """
        event = await self.event_repo.get_by_id(event_id)
        if event is None:
            return False, "Event not found"

        if owner_id is not None:
            subscription = await self.subscription_repo.get_for_owner(
                event.subscription_id, owner_id
            )
            if subscription is None:
                return False, "Event not found"

        previous_status = event.status
        await self.event_repo.replay(event_id, self.clock.now())
        await self.session.commit()

        logger.info(
            f"[Replay] Event {event_id} replayed "
            f"({previous_status} -> PENDING)"
        )
        return True, None

    async def get_failed_events(self, limit: int = 100) -> list[CapturedEvent]:
        """
        Get FAILED events (for operator review).

        Returns:
            FAILED events, longest-failed first
        """
        return await self.event_repo.list_failed(limit=limit)

    async def replay_failed_events(self, limit: int = 100) -> int:
        """
        Replay up to `limit` FAILED events.

        Returns:
            Number of events replayed
        """
        failed = await self.get_failed_events(limit=limit)
        now = self.clock.now()
        for event in failed:
            await self.event_repo.replay(event.id, now)
        await self.session.commit()

        if failed:
            logger.info(f"[Replay] Replayed {len(failed)} FAILED events")
        return len(failed)

    async def reset_cursor(
        self,
        subscription_id: int,
        block: int = 0,
        owner_id: str | None = None,
    ) -> tuple[bool, str | None]:
        """
        Rewind (or set) a subscription cursor.

        Block 0 re-initializes the cursor at the chain head on the next
        poll. Rescanned logs are absorbed by the idempotent insert.

        Args:
            subscription_id: Subscription ID
            block: New last processed block
            owner_id: If given, the subscription must belong to it

        Returns:
            Tuple of (success, error_message)
        """
        if block < 0:
            return False, "Block must be >= 0"

        if owner_id is not None:
            subscription = await self.subscription_repo.get_for_owner(
                subscription_id, owner_id
            )
            if subscription is None:
                return False, "Subscription not found"

        if not await self.subscription_repo.reset_cursor(subscription_id, block):
            return False, "Subscription not found"
        await self.session.commit()

        logger.warning(
            f"[Replay] Subscription {subscription_id} cursor reset to {block}"
        )
        return True, None
