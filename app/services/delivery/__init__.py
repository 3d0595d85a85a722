"""
Webhook Delivery Service - Main Module.

This module provides webhook delivery of captured events with exponential
backoff, a bounded retry budget and explicit replay.

Module Structure:
- constants.py: Configuration defaults and outcome names
- backoff.py: Retry budget and capped exponential backoff
- webhook_client.py: aiohttp webhook POST client
- payload.py: Webhook body and headers
- attempt_log.py: Append-only delivery attempt log
- handler.py: Single event delivery
- processor.py: Delivery cycle (stale recovery + concurrent batch)
- replay.py: Event replay and cursor reset
- stats.py: Statistics and owner-scoped queries

Public Interface:
- WebhookDeliveryService: Main service class
"""

from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import EventStatus
from app.utils.datetime_utils import Clock, SystemClock

from .attempt_log import DeliveryAttemptLog
from .backoff import RetryPolicy
from .constants import BATCH_SIZE, DEFAULT_STALE_AFTER_SECONDS
from .handler import DeliveryHandler
from .payload import build_webhook_body, build_webhook_headers
from .processor import DeliveryProcessor
from .replay import ReplayManager
from .stats import DeliveryStatsManager
from .webhook_client import WebhookClient, WebhookResult


class WebhookDeliveryService:
    """
    Webhook delivery service.

    Owns no session: the delivery cycle opens one session per event, and
    each management call opens its own.
    """

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        webhook_client: WebhookClient | None = None,
        retry_policy: RetryPolicy | None = None,
        clock: Clock | None = None,
        batch_size: int = BATCH_SIZE,
        concurrency: int = 10,
        stale_after: float = DEFAULT_STALE_AFTER_SECONDS,
    ) -> None:
        """Initialize delivery service."""
        self.session_factory = session_factory
        self.clock = clock or SystemClock()
        self.webhook_client = webhook_client or WebhookClient()
        self.retry_policy = retry_policy or RetryPolicy()

        # Initialize all components
        self.handler = DeliveryHandler(
            session_factory, self.webhook_client, self.retry_policy, self.clock
        )
        self.processor = DeliveryProcessor(
            session_factory,
            self.handler,
            batch_size=batch_size,
            concurrency=concurrency,
            stale_after=stale_after,
        )

    async def process_due_events(self) -> dict:
        """Run one delivery cycle."""
        return await self.processor.process_due_events()

    async def replay_event(
        self, event_id: int, owner_id: str | None = None
    ) -> tuple[bool, str | None]:
        """Reset an event to PENDING (owner-scoped when owner_id is given)."""
        async with self.session_factory() as session:
            return await ReplayManager(session, self.clock).replay_event(
                event_id, owner_id=owner_id
            )

    async def reset_cursor(
        self,
        subscription_id: int,
        block: int = 0,
        owner_id: str | None = None,
    ) -> tuple[bool, str | None]:
        """Rewind a subscription cursor."""
        async with self.session_factory() as session:
            return await ReplayManager(session, self.clock).reset_cursor(
                subscription_id, block=block, owner_id=owner_id
            )

    async def get_failed_events(self, limit: int = 100):
        """Get FAILED events (for operator review)."""
        async with self.session_factory() as session:
            return await ReplayManager(session, self.clock).get_failed_events(
                limit=limit
            )

    async def get_delivery_stats(self) -> dict:
        """Get delivery statistics."""
        async with self.session_factory() as session:
            return await DeliveryStatsManager(session).get_delivery_stats()

    async def get_subscription_events(
        self,
        owner_id: str,
        subscription_id: int,
        status: EventStatus | None = None,
        limit: int = 50,
    ):
        """Get an owner's subscription events, newest first."""
        async with self.session_factory() as session:
            return await DeliveryStatsManager(session).get_subscription_events(
                owner_id, subscription_id, status=status, limit=limit
            )

    async def get_event_attempts(
        self, owner_id: str, subscription_id: int, event_id: int
    ):
        """Get an owner's event delivery attempts, oldest first."""
        async with self.session_factory() as session:
            return await DeliveryStatsManager(session).get_event_attempts(
                owner_id, subscription_id, event_id
            )

    async def close(self) -> None:
        """Close the webhook HTTP session."""
        await self.webhook_client.close()


__all__ = [
    "WebhookDeliveryService",
    "DeliveryAttemptLog",
    "DeliveryHandler",
    "DeliveryProcessor",
    "DeliveryStatsManager",
    "ReplayManager",
    "RetryPolicy",
    "WebhookClient",
    "WebhookResult",
    "build_webhook_body",
    "build_webhook_headers",
]
