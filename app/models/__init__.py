"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.base import Base
from app.models.captured_event import CapturedEvent
from app.models.delivery_attempt import DeliveryAttempt
from app.models.enums import EventStatus, SubscriptionStatus
from app.models.subscription import Subscription

__all__ = [
    # Base
    "Base",
    # Enums
    "EventStatus",
    "SubscriptionStatus",
    # Models
    "Subscription",
    "CapturedEvent",
    "DeliveryAttempt",
]
