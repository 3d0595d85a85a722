"""
Captured Event model.

One on-chain log occurrence destined for webhook delivery.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import EventStatus


class CapturedEvent(Base):
    """
    Captured contract event with delivery bookkeeping.

    `payload` holds the serialized tagged union produced by the decoder:
    either {"kind": "decoded", ...} or {"kind": "raw", ...}.
    """

    __tablename__ = "captured_events"
    __table_args__ = (
        UniqueConstraint(
            "subscription_id",
            "transaction_hash",
            "log_index",
            name="uq_captured_events_log",
        ),
        Index("ix_captured_events_status_next_retry", "status", "next_retry_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Owning subscription (by reference; events outlive deleted subscriptions)
    subscription_id: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True
    )

    # Log identification
    block_number: Mapped[int] = mapped_column(BigInteger, nullable=False)
    block_hash: Mapped[str | None] = mapped_column(String(66), nullable=True)
    transaction_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # Decoded content
    event_name: Mapped[str] = mapped_column(String(255), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    decode_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Delivery state
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EventStatus.PENDING.value
    )
    next_retry_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    retry_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    delivered_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CapturedEvent(id={self.id}, sub={self.subscription_id}, "
            f"event={self.event_name}, tx={self.transaction_hash[:16]}..., "
            f"status={self.status}, retries={self.retry_count})>"
        )
