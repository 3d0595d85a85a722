"""
Captured Event repository.

Data access layer for captured events and their delivery state machine.
Every transition is a single conditional UPDATE on the expected current
status, so two workers can never move the same event concurrently.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import func, insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.captured_event import CapturedEvent
from app.models.enums import EventStatus, SubscriptionStatus
from app.models.subscription import Subscription
from app.repositories.base import BaseRepository

_LOG_KEY = ["subscription_id", "transaction_hash", "log_index"]


class CapturedEventRepository(BaseRepository[CapturedEvent]):
    """Repository for captured events."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(CapturedEvent, session)

    async def insert_if_absent(self, **values: Any) -> bool:
        """
        Insert an event unless one exists for the same log.

        Uniqueness key: (subscription_id, transaction_hash, log_index).

        Args:
            **values: Column values

        Returns:
            True if a new row was inserted, False if it already existed
        """
        dialect = self.session.get_bind().dialect.name

        if dialect in ("postgresql", "sqlite"):
            insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert
            stmt = (
                insert_fn(CapturedEvent)
                .values(**values)
                .on_conflict_do_nothing(index_elements=_LOG_KEY)
            )
            result = await self.session.execute(stmt)
            return result.rowcount == 1

        try:
            async with self.session.begin_nested():
                await self.session.execute(insert(CapturedEvent).values(**values))
            return True
        except IntegrityError:
            return False

    async def get_due(self, now: datetime, limit: int) -> list[int]:
        """
        Get IDs of PENDING events whose retry time has come.

        Only events of active subscriptions are returned; events of paused
        or missing subscriptions keep their schedule untouched.

        Args:
            now: Current time
            limit: Batch size

        Returns:
            Event IDs, oldest due first
        """
        stmt = (
            select(CapturedEvent.id)
            .join(Subscription, Subscription.id == CapturedEvent.subscription_id)
            .where(
                CapturedEvent.status == EventStatus.PENDING.value,
                CapturedEvent.next_retry_at <= now,
                Subscription.status == SubscriptionStatus.ACTIVE.value,
            )
            .order_by(CapturedEvent.next_retry_at.asc(), CapturedEvent.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _transition(
        self,
        event_id: int,
        expected: EventStatus,
        **values: Any,
    ) -> bool:
        """Compare-and-swap on status."""
        stmt = (
            update(CapturedEvent)
            .where(
                CapturedEvent.id == event_id,
                CapturedEvent.status == expected.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def claim(self, event_id: int, now: datetime) -> bool:
        """
        Claim a PENDING event for delivery (PENDING -> PROCESSING).

        Returns:
            True if this caller owns the event now
        """
        return await self._transition(
            event_id,
            EventStatus.PENDING,
            status=EventStatus.PROCESSING.value,
            updated_at=now,
        )

    async def release(self, event_id: int, now: datetime) -> bool:
        """Return a claimed event to PENDING without touching its schedule."""
        return await self._transition(
            event_id,
            EventStatus.PROCESSING,
            status=EventStatus.PENDING.value,
            updated_at=now,
        )

    async def mark_delivered(self, event_id: int, now: datetime) -> bool:
        """PROCESSING -> DELIVERED."""
        return await self._transition(
            event_id,
            EventStatus.PROCESSING,
            status=EventStatus.DELIVERED.value,
            delivered_at=now,
            updated_at=now,
        )

    async def schedule_retry(
        self,
        event_id: int,
        retry_count: int,
        next_retry_at: datetime,
        now: datetime,
    ) -> bool:
        """PROCESSING -> PENDING with a new retry count and due time."""
        return await self._transition(
            event_id,
            EventStatus.PROCESSING,
            status=EventStatus.PENDING.value,
            retry_count=retry_count,
            next_retry_at=next_retry_at,
            updated_at=now,
        )

    async def mark_failed(self, event_id: int, now: datetime) -> bool:
        """PROCESSING -> FAILED."""
        return await self._transition(
            event_id,
            EventStatus.PROCESSING,
            status=EventStatus.FAILED.value,
            updated_at=now,
        )

    async def replay(self, event_id: int, now: datetime) -> bool:
        """
        Reset an event to deliverable state (any state -> PENDING).

        Args:
            event_id: Event ID
            now: Current time, becomes the new due time

        Returns:
            True if the event exists
        """
        stmt = (
            update(CapturedEvent)
            .where(CapturedEvent.id == event_id)
            .values(
                status=EventStatus.PENDING.value,
                retry_count=0,
                next_retry_at=now,
                delivered_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def get_stale_ids(self, cutoff: datetime, limit: int) -> list[int]:
        """
        Get events stuck in PROCESSING since before `cutoff`, oldest first.

        Happens when the process dies between claim and outcome.

        Args:
            cutoff: Claims last touched before this time are abandoned
            limit: Max IDs to return

        Returns:
            Event IDs
        """
        stmt = (
            select(CapturedEvent.id)
            .where(
                CapturedEvent.status == EventStatus.PROCESSING.value,
                CapturedEvent.updated_at < cutoff,
            )
            .order_by(CapturedEvent.updated_at, CapturedEvent.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_subscription(
        self,
        subscription_id: int,
        status: EventStatus | None = None,
        limit: int = 50,
    ) -> list[CapturedEvent]:
        """
        Get a subscription's events, newest first.

        Args:
            subscription_id: Subscription ID
            status: Optional status filter
            limit: Max results

        Returns:
            List of events
        """
        stmt = select(CapturedEvent).where(
            CapturedEvent.subscription_id == subscription_id
        )
        if status is not None:
            stmt = stmt.where(CapturedEvent.status == status.value)

        stmt = stmt.order_by(
            CapturedEvent.created_at.desc(), CapturedEvent.id.desc()
        ).limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_failed(self, limit: int = 100) -> list[CapturedEvent]:
        """Get FAILED events awaiting replay, oldest first."""
        stmt = (
            select(CapturedEvent)
            .where(CapturedEvent.status == EventStatus.FAILED.value)
            .order_by(CapturedEvent.updated_at.asc(), CapturedEvent.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_status(self) -> dict[str, int]:
        """
        Count events per delivery status.

        Returns:
            Mapping of every status to its count
        """
        stmt = select(CapturedEvent.status, func.count()).group_by(
            CapturedEvent.status
        )
        result = await self.session.execute(stmt)
        counts = {status.value: 0 for status in EventStatus}
        for status, count in result.all():
            counts[status] = count
        return counts
