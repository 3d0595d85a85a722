"""
Model enumerations.
"""

from enum import Enum


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""

    ACTIVE = "active"
    PAUSED = "paused"


class EventStatus(str, Enum):
    """
    Delivery state of a captured event.

    PENDING -> PROCESSING -> DELIVERED
    PROCESSING -> PENDING (retry scheduled or delivery deferred)
    PROCESSING -> FAILED (retry budget exhausted)
    FAILED -> PENDING (explicit replay)
    """

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"
