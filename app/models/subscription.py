"""
Subscription model.

Binds an owner's webhook to the events of one contract on one chain.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, BigInteger, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from app.models.base import Base
from app.models.enums import SubscriptionStatus


class Subscription(Base):
    """
    Contract event subscription.

    The poller owns `last_processed_block`: it is only advanced by the
    poller and only rewound by an explicit administrative reset.
    A value of 0 means the cursor has never been initialized.
    """

    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    owner_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )

    # Contract identification
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    contract_address: Mapped[str] = mapped_column(
        String(42), nullable=False, index=True
    )  # lowercase hex
    abi: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)

    # Delivery target
    webhook_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    event_filters: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list
    )  # empty = forward everything

    # Cursor
    last_processed_block: Mapped[int] = mapped_column(
        BigInteger, nullable=False, default=0
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SubscriptionStatus.ACTIVE.value,
        index=True,
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
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    @validates("contract_address")
    def _normalize_address(self, key: str, value: str) -> str:
        if not value.startswith("0x") or len(value) != 42:
            raise ValueError(f"Invalid contract address: {value}")
        int(value[2:], 16)
        return value.lower()

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Subscription(id={self.id}, chain={self.chain_id}, "
            f"contract={self.contract_address}, "
            f"cursor={self.last_processed_block}, status={self.status})>"
        )

    @property
    def is_active(self) -> bool:
        """Check if subscription should be polled and delivered."""
        return self.status == SubscriptionStatus.ACTIVE.value

    def forwards(self, event_name: str) -> bool:
        """Check if a decoded event passes the allow-list."""
        if not self.event_filters:
            return True
        return event_name in self.event_filters
