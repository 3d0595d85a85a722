"""
Webhook Delivery - Handler Module.

Module: handler.py
Delivers a single event: claim, POST, record the attempt, resolve the
state transition.
"""

from collections.abc import Callable
from datetime import datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import EventStatus
from app.repositories.captured_event_repository import CapturedEventRepository
from app.repositories.subscription_repository import SubscriptionRepository
from app.utils.datetime_utils import Clock, SystemClock
from app.utils.exceptions import RetryExhaustedError, WebhookDeliveryError
from app.utils.security import mask_url

from .attempt_log import DeliveryAttemptLog
from .backoff import RetryPolicy
from .constants import (
    BODY_MAX_LENGTH,
    DEFERRED,
    DELIVERED,
    FAILED,
    RETRIED,
    SKIPPED,
)
from .payload import build_webhook_body, build_webhook_headers
from .webhook_client import WebhookClient, WebhookResult


class DeliveryHandler:
    """Per-event delivery logic."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        webhook_client: WebhookClient,
        retry_policy: RetryPolicy,
        clock: Clock | None = None,
    ) -> None:
        """Initialize handler."""
        self.session_factory = session_factory
        self.webhook_client = webhook_client
        self.retry_policy = retry_policy
        self.clock = clock or SystemClock()

    async def deliver(self, event_id: int) -> str:
        """
        Deliver one due event.

        The claim is committed on its own before the POST, so the event is
        PROCESSING for other workers during the request. Every transition
        out of PROCESSING caused by a delivery try writes exactly one
        attempt row in the same transaction. An unexpected error after the
        claim is recorded as a failed attempt in a fresh session.

        Args:
            event_id: Captured event ID

        Returns:
            One of: 'delivered', 'retried', 'failed', 'deferred', 'skipped'
        """
        async with self.session_factory() as session:
            event_repo = CapturedEventRepository(session)

            if not await event_repo.claim(event_id, self.clock.now()):
                # Another worker claimed it or it is no longer PENDING
                await session.rollback()
                return SKIPPED
            await session.commit()

            try:
                return await self._deliver_claimed(session, event_id)
            except Exception as e:
                logger.exception(
                    f"[Delivery] Unexpected error delivering event {event_id}"
                )
                await session.rollback()
                error = WebhookDeliveryError(
                    f"Internal error: {type(e).__name__}: {e}"
                )

        return await self.fail_claimed(event_id, error)

    async def _deliver_claimed(self, session: AsyncSession, event_id: int) -> str:
        """POST a claimed event and record the outcome."""
        event_repo = CapturedEventRepository(session)
        event = await event_repo.get_by_id(event_id)
        subscription = await SubscriptionRepository(session).get_by_id(
            event.subscription_id
        )

        if subscription is None or not subscription.is_active:
            # Paused means "not yet": keep retry count and schedule
            await event_repo.release(event_id, self.clock.now())
            await session.commit()
            logger.debug(
                f"[Delivery] Event {event_id} deferred, subscription "
                f"{event.subscription_id} inactive"
            )
            return DEFERRED

        attempt_log = DeliveryAttemptLog(session)
        attempt_number = await attempt_log.count_for_event(event_id) + 1
        retry_count = event.retry_count

        webhook_url = subscription.webhook_url
        result = await self.webhook_client.send(
            webhook_url,
            build_webhook_body(event, subscription),
            headers=build_webhook_headers(event_id, attempt_number),
        )

        now = self.clock.now()
        await attempt_log.record(event_id, result, now)

        if result.success:
            outcome = DELIVERED
            moved = await event_repo.mark_delivered(event_id, now)
        else:
            outcome, moved = await self._handle_failure(
                event_repo,
                event_id,
                retry_count,
                WebhookDeliveryError.from_result(result),
                now,
            )

        if not moved:
            logger.warning(
                f"[Delivery] Event {event_id} left PROCESSING before "
                f"its outcome was recorded"
            )

        await session.commit()

        if outcome == DELIVERED:
            logger.info(
                f"[Delivery] Event {event_id} delivered to "
                f"{mask_url(webhook_url)} "
                f"(HTTP {result.status_code}, attempt {attempt_number})"
            )
        return outcome

    async def fail_claimed(self, event_id: int, error: WebhookDeliveryError) -> str:
        """
        Resolve a PROCESSING event whose delivery try did not complete.

        Records a failed attempt carrying the error text and schedules a
        retry, or fails the event once the budget is spent. Used after an
        unexpected error and for claims abandoned by a dead worker.

        Args:
            event_id: Captured event ID
            error: Failure to record

        Returns:
            'retried' or 'failed', or 'skipped' if the event is no longer
            PROCESSING
        """
        now = self.clock.now()

        async with self.session_factory() as session:
            event_repo = CapturedEventRepository(session)
            event = await event_repo.get_by_id(event_id)
            if event is None or event.status != EventStatus.PROCESSING.value:
                return SKIPPED

            await DeliveryAttemptLog(session).record(
                event_id,
                WebhookResult(success=False, error=str(error)[:BODY_MAX_LENGTH]),
                now,
            )
            outcome, moved = await self._handle_failure(
                event_repo, event_id, event.retry_count, error, now
            )
            if not moved:
                # Resolved concurrently; drop the attempt with the transition
                await session.rollback()
                return SKIPPED

            await session.commit()

        return outcome

    async def _handle_failure(
        self,
        event_repo: CapturedEventRepository,
        event_id: int,
        retry_count: int,
        error: WebhookDeliveryError,
        now: datetime,
    ) -> tuple[str, bool]:
        """
        Schedule a retry or fail the event.

        Returns:
            Tuple of (outcome, whether the transition applied)
        """
        try:
            next_retry_at = self.retry_policy.next_retry_at(now, retry_count)
        except RetryExhaustedError as e:
            moved = await event_repo.mark_failed(event_id, now)
            logger.error(
                f"[Delivery] Event {event_id} FAILED after "
                f"{retry_count} retries ({error}): {e}"
            )
            return FAILED, moved

        moved = await event_repo.schedule_retry(
            event_id, retry_count + 1, next_retry_at, now
        )
        logger.warning(
            f"[Delivery] Event {event_id} failed ({error}), retry "
            f"{retry_count + 1}/{self.retry_policy.max_retries} at "
            f"{next_retry_at.isoformat()}"
        )
        return RETRIED, moved
