"""
Event Poller - Core Module.

Module: core.py
Cursor-based log ingestion. One cycle walks every active subscription,
fetches logs from its last processed block up to the chain head (capped
per cycle) and records them as PENDING captured events.
"""

import asyncio
from datetime import datetime
from collections.abc import Callable

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.constants import MAX_BLOCK_RANGE
from app.models.enums import EventStatus
from app.models.subscription import Subscription
from app.repositories.captured_event_repository import CapturedEventRepository
from app.repositories.subscription_repository import SubscriptionRepository
from app.services.blockchain import ChainClientPool, RawLog
from app.services.event_decoder import (
    DecodedEvent,
    EventDecoder,
    EventPayload,
    RawLogEvent,
)
from app.utils.datetime_utils import Clock, SystemClock
from app.utils.exceptions import RpcUnavailableError, UnsupportedChainError
from app.utils.security import mask_address

SessionFactory = Callable[[], AsyncSession]

# Per-subscription outcomes
INITIALIZED = "initialized"
PROCESSED = "processed"
UP_TO_DATE = "up_to_date"
SKIPPED = "skipped"
ERRORS = "errors"


class EventPollerService:
    """
    Cursor-based poller.

    Each subscription is handled in its own session and transaction, so a
    failure in one never rolls back or blocks another. The cursor advance
    is committed together with the events of its range: a crash before the
    commit leaves the cursor behind, and the rescan is absorbed by the
    idempotent insert.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        client_pool: ChainClientPool,
        clock: Clock | None = None,
        max_block_range: int = MAX_BLOCK_RANGE,
        concurrency: int = 4,
    ) -> None:
        """
        Initialize poller.

        Args:
            session_factory: Creates a new AsyncSession per subscription
            client_pool: Per-chain RPC clients
            clock: Time source for event timestamps
            max_block_range: Max blocks fetched per subscription per cycle
            concurrency: Max subscriptions processed at once
        """
        if max_block_range < 1:
            raise ValueError("max_block_range must be >= 1")
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")

        self.session_factory = session_factory
        self.client_pool = client_pool
        self.clock = clock or SystemClock()
        self.max_block_range = max_block_range
        self.concurrency = concurrency

    async def poll_cycle(self) -> dict:
        """
        Run one poll cycle over all active subscriptions.

        Returns:
            Dict with subscription outcome counts and event counts
        """
        async with self.session_factory() as session:
            subscription_ids = await SubscriptionRepository(
                session
            ).get_active_ids()

        stats = self._create_empty_stats()
        if not subscription_ids:
            return stats

        # Each subscription id appears once, so no two workers share a cursor
        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(subscription_id: int) -> tuple[str, dict]:
            async with semaphore:
                return await self._process_subscription_safe(subscription_id)

        results = await asyncio.gather(
            *(run(subscription_id) for subscription_id in subscription_ids)
        )

        for outcome, counts in results:
            stats["subscriptions"] += 1
            stats[outcome] += 1
            for key, value in counts.items():
                stats[key] += value

        if stats["captured"] or stats[ERRORS]:
            logger.info(
                f"[Poller] Cycle complete: {stats['subscriptions']} subscriptions, "
                f"{stats['captured']} events captured, "
                f"{stats['duplicates']} duplicates, {stats[ERRORS]} errors"
            )

        return stats

    async def _process_subscription_safe(
        self, subscription_id: int
    ) -> tuple[str, dict]:
        """
        Process one subscription, containing every error.

        Returns:
            Tuple of (outcome, event counts)
        """
        try:
            return await self.process_subscription(subscription_id)
        except UnsupportedChainError as e:
            logger.warning(f"[Poller] Subscription {subscription_id}: {e}")
        except RpcUnavailableError as e:
            logger.warning(
                f"[Poller] Subscription {subscription_id} skipped, "
                f"RPC unavailable: {e}"
            )
        except Exception as e:
            logger.error(
                f"[Poller] Error processing subscription {subscription_id}: {e}"
            )
        return ERRORS, {}

    async def process_subscription(
        self, subscription_id: int
    ) -> tuple[str, dict]:
        """
        Advance one subscription by at most `max_block_range` blocks.

        Args:
            subscription_id: Subscription ID

        Returns:
            Tuple of (outcome, event counts)

        Raises:
            UnsupportedChainError: If the chain has no RPC endpoint
            RpcUnavailableError: If the chain RPC fails
        """
        async with self.session_factory() as session:
            subscription_repo = SubscriptionRepository(session)
            subscription = await subscription_repo.get_by_id(subscription_id)
            if subscription is None or not subscription.is_active:
                return SKIPPED, {}

            client = self.client_pool.get_client(subscription.chain_id)
            head = await client.get_block_number()
            last_block = subscription.last_processed_block

            if last_block == 0:
                # Start from now: no backfill below the head at first sight
                await subscription_repo.advance_cursor(subscription.id, head)
                await session.commit()
                logger.info(
                    f"[Poller] Subscription {subscription.id} cursor "
                    f"initialized at block {head}"
                )
                return INITIALIZED, {}

            if last_block >= head:
                return UP_TO_DATE, {}

            end_block = min(head, last_block + self.max_block_range)
            logs = await client.get_logs(
                subscription.contract_address, last_block + 1, end_block
            )

            counts = await self._store_logs(session, subscription, logs)

            await subscription_repo.advance_cursor(subscription.id, end_block)
            await session.commit()

            logger.debug(
                f"[Poller] Subscription {subscription.id} "
                f"({mask_address(subscription.contract_address)}) "
                f"blocks {last_block + 1}-{end_block}: "
                f"{counts['captured']} new events"
            )
            return PROCESSED, counts

    async def _store_logs(
        self,
        session: AsyncSession,
        subscription: Subscription,
        logs: list[RawLog],
    ) -> dict:
        """Decode and insert logs; returns captured/duplicates/filtered counts."""
        counts = {"captured": 0, "duplicates": 0, "filtered": 0}
        if not logs:
            return counts

        event_repo = CapturedEventRepository(session)
        decoder = EventDecoder(subscription.abi)
        now = self.clock.now()

        for log in logs:
            payload = decoder.decode_log(log)

            # Unrecognized events bypass the allow-list
            if isinstance(payload, DecodedEvent) and not subscription.forwards(
                payload.name
            ):
                counts["filtered"] += 1
                continue

            inserted = await event_repo.insert_if_absent(
                **self._event_values(subscription.id, log, payload, now)
            )
            counts["captured" if inserted else "duplicates"] += 1

        return counts

    @staticmethod
    def _event_values(
        subscription_id: int,
        log: RawLog,
        payload: EventPayload,
        now: datetime,
    ) -> dict:
        """Column values for a new PENDING event."""
        return {
            "subscription_id": subscription_id,
            "block_number": log.block_number,
            "block_hash": log.block_hash,
            "transaction_hash": log.transaction_hash.lower(),
            "log_index": log.log_index,
            "event_name": payload.name,
            "payload": payload.to_json(),
            "decode_error": (
                payload.error if isinstance(payload, RawLogEvent) else None
            ),
            "status": EventStatus.PENDING.value,
            "retry_count": 0,
            "next_retry_at": now,
            "created_at": now,
            "updated_at": now,
        }

    def _create_empty_stats(self) -> dict:
        """Create empty statistics dict."""
        return {
            "subscriptions": 0,
            INITIALIZED: 0,
            PROCESSED: 0,
            UP_TO_DATE: 0,
            SKIPPED: 0,
            ERRORS: 0,
            "captured": 0,
            "duplicates": 0,
            "filtered": 0,
        }
