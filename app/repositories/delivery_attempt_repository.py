"""
Delivery Attempt repository.

Append-only access to the delivery audit trail.
"""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.delivery_attempt import DeliveryAttempt
from app.repositories.base import BaseRepository


class DeliveryAttemptRepository(BaseRepository[DeliveryAttempt]):
    """Repository for delivery attempts."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(DeliveryAttempt, session)

    async def append(
        self,
        event_id: int,
        success: bool,
        created_at: datetime,
        response_status: int | None = None,
        response_body: str | None = None,
        error: str | None = None,
        duration_ms: int | None = None,
    ) -> DeliveryAttempt:
        """
        Append one attempt row.

        Args:
            event_id: Captured event ID
            success: Whether the webhook accepted the event
            created_at: Attempt time
            response_status: HTTP status, if a response arrived
            response_body: Truncated response body
            error: Transport error text
            duration_ms: Request duration

        Returns:
            Created attempt
        """
        attempt = DeliveryAttempt(
            event_id=event_id,
            success=success,
            response_status=response_status,
            response_body=response_body,
            error=error,
            duration_ms=duration_ms,
            created_at=created_at,
        )
        self.session.add(attempt)
        await self.session.flush()
        return attempt

    async def list_for_event(self, event_id: int) -> list[DeliveryAttempt]:
        """
        Get all attempts for an event, oldest first.

        Args:
            event_id: Captured event ID

        Returns:
            List of attempts
        """
        stmt = (
            select(DeliveryAttempt)
            .where(DeliveryAttempt.event_id == event_id)
            .order_by(DeliveryAttempt.created_at.asc(), DeliveryAttempt.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
