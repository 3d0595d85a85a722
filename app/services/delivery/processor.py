"""
Webhook Delivery - Processor Module.

Module: processor.py
Handles batch processing of due events.
Recovers stale claims, then delivers due events concurrently.
"""

import asyncio
from collections.abc import Callable
from datetime import timedelta

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.captured_event_repository import CapturedEventRepository
from app.utils.exceptions import WebhookDeliveryError

from .constants import (
    BATCH_SIZE,
    DEFAULT_STALE_AFTER_SECONDS,
    DEFERRED,
    DELIVERED,
    ERRORS,
    FAILED,
    RETRIED,
    SKIPPED,
    STALE_CLAIM_ERROR,
)
from .handler import DeliveryHandler


class DeliveryProcessor:
    """Delivery cycle logic."""

    def __init__(
        self,
        session_factory: Callable[[], AsyncSession],
        handler: DeliveryHandler,
        batch_size: int = BATCH_SIZE,
        concurrency: int = 10,
        stale_after: float = DEFAULT_STALE_AFTER_SECONDS,
    ) -> None:
        """
        Initialize processor.

        Args:
            session_factory: Creates a new AsyncSession
            handler: Per-event delivery handler
            batch_size: Max events selected per cycle
            concurrency: Max webhook requests in flight
            stale_after: Seconds after which a PROCESSING claim is abandoned
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")

        self.session_factory = session_factory
        self.handler = handler
        self.clock = handler.clock
        self.batch_size = batch_size
        self.concurrency = concurrency
        self.stale_after = timedelta(seconds=stale_after)

    async def process_due_events(self) -> dict:
        """
        Run one delivery cycle.

        Called by the scheduler (e.g., every 5 seconds).

        Returns:
            Dict with processed count and per-outcome counts
        """
        stats = self._create_empty_stats()
        stats["recovered"] = await self._recover_stale()

        async with self.session_factory() as session:
            due_ids = await CapturedEventRepository(session).get_due(
                self.clock.now(), self.batch_size
            )

        if not due_ids:
            return stats

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(event_id: int) -> str:
            async with semaphore:
                return await self._deliver_safe(event_id)

        outcomes = await asyncio.gather(*(run(event_id) for event_id in due_ids))

        for outcome in outcomes:
            stats["processed"] += 1
            stats[outcome] += 1

        logger.info(
            f"[Delivery] Cycle complete: {stats[DELIVERED]} delivered, "
            f"{stats[RETRIED]} retried, {stats[FAILED]} failed, "
            f"{stats[DEFERRED]} deferred out of {stats['processed']} due"
        )

        return stats

    async def _recover_stale(self) -> int:
        """
        Resolve claims abandoned by a dead worker.

        Each counts as a failed attempt, so an event that keeps crashing
        its worker still runs out of retries and ends FAILED.

        Returns:
            Number of events moved out of PROCESSING
        """
        now = self.clock.now()
        async with self.session_factory() as session:
            stale_ids = await CapturedEventRepository(session).get_stale_ids(
                now - self.stale_after, self.batch_size
            )

        recovered = 0
        for event_id in stale_ids:
            try:
                outcome = await self.handler.fail_claimed(
                    event_id, WebhookDeliveryError(STALE_CLAIM_ERROR)
                )
            except Exception as e:
                logger.error(
                    f"[Delivery] Error recovering stale event {event_id}: {e}"
                )
                continue
            if outcome in (RETRIED, FAILED):
                recovered += 1

        if recovered:
            logger.warning(
                f"[Delivery] Recovered {recovered} stale PROCESSING events"
            )
        return recovered

    async def _deliver_safe(self, event_id: int) -> str:
        """
        Deliver a single event with error handling.

        The handler records its own failures; this only guards the batch
        against errors it could not record (e.g. the database is down).

        Returns:
            Outcome name
        """
        try:
            return await self.handler.deliver(event_id)
        except Exception as e:
            logger.error(f"[Delivery] Error delivering event {event_id}: {e}")
            return ERRORS

    def _create_empty_stats(self) -> dict:
        """Create empty statistics dict."""
        return {
            "processed": 0,
            "recovered": 0,
            DELIVERED: 0,
            RETRIED: 0,
            FAILED: 0,
            DEFERRED: 0,
            SKIPPED: 0,
            ERRORS: 0,
        }
