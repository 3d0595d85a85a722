"""
Webhook Delivery - Attempt Log Module.

Module: attempt_log.py
Append-only audit trail of delivery tries.
"""

from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.delivery_attempt import DeliveryAttempt
from app.repositories.delivery_attempt_repository import (
    DeliveryAttemptRepository,
)

from .webhook_client import WebhookResult


class DeliveryAttemptLog:
    """Records one DeliveryAttempt per webhook POST."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize attempt log."""
        self.session = session
        self.attempt_repo = DeliveryAttemptRepository(session)

    async def record(
        self, event_id: int, result: WebhookResult, now: datetime
    ) -> DeliveryAttempt:
        """
        Append the outcome of one POST.

        Args:
            event_id: Captured event ID
            result: Webhook outcome
            now: Attempt time

        Returns:
            Created attempt
        """
        return await self.attempt_repo.append(
            event_id=event_id,
            success=result.success,
            created_at=now,
            response_status=result.status_code,
            response_body=result.response_body,
            error=result.error,
            duration_ms=result.duration_ms,
        )

    async def count_for_event(self, event_id: int) -> int:
        """Number of attempts recorded so far."""
        return await self.attempt_repo.count(event_id=event_id)

    async def list_for_event(self, event_id: int) -> list[DeliveryAttempt]:
        """Get attempts for an event, oldest first."""
        return await self.attempt_repo.list_for_event(event_id)
