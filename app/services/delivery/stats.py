"""
Webhook Delivery - Statistics Module.

Module: stats.py
Provides delivery statistics and owner-scoped event queries.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import DEFAULT_EVENTS_PAGE_SIZE
from app.models.captured_event import CapturedEvent
from app.models.delivery_attempt import DeliveryAttempt
from app.models.enums import EventStatus, SubscriptionStatus
from app.repositories.captured_event_repository import CapturedEventRepository
from app.repositories.delivery_attempt_repository import (
    DeliveryAttemptRepository,
)
from app.repositories.subscription_repository import SubscriptionRepository


class DeliveryStatsManager:
    """Delivery statistics and read-side queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize stats manager."""
        self.session = session
        self.event_repo = CapturedEventRepository(session)
        self.attempt_repo = DeliveryAttemptRepository(session)
        self.subscription_repo = SubscriptionRepository(session)

    async def get_delivery_stats(self) -> dict:
        """
        Get delivery statistics.

        Returns:
            Dict with event counts per status and subscription counts
        """
        events_by_status = await self.event_repo.count_by_status()

        return {
            "events": events_by_status,
            "total_events": sum(events_by_status.values()),
            "active_subscriptions": await self.subscription_repo.count(
                status=SubscriptionStatus.ACTIVE.value
            ),
            "paused_subscriptions": await self.subscription_repo.count(
                status=SubscriptionStatus.PAUSED.value
            ),
        }

    async def get_subscription_events(
        self,
        owner_id: str,
        subscription_id: int,
        status: EventStatus | None = None,
        limit: int = DEFAULT_EVENTS_PAGE_SIZE,
    ) -> list[CapturedEvent] | None:
        """
        Get a subscription's events, newest first.

        Args:
            owner_id: Caller's owner identity
            subscription_id: Subscription ID
            status: Optional status filter
            limit: Max results

        Returns:
            List of events, or None if the subscription is not the owner's
        """
        subscription = await self.subscription_repo.get_for_owner(
            subscription_id, owner_id
        )
        if subscription is None:
            return None

        return await self.event_repo.list_for_subscription(
            subscription_id, status=status, limit=limit
        )

    async def get_event_attempts(
        self, owner_id: str, subscription_id: int, event_id: int
    ) -> list[DeliveryAttempt] | None:
        """
        Get an event's delivery attempts, oldest first.

        Returns:
            List of attempts, or None if the event is not visible to the owner
        """
        subscription = await self.subscription_repo.get_for_owner(
            subscription_id, owner_id
        )
        if subscription is None:
            return None

        event = await self.event_repo.get_by(
            id=event_id, subscription_id=subscription_id
        )
        if event is None:
            return None

        return await self.attempt_repo.list_for_event(event_id)
