"""
Services.

Business logic layer.
"""

from app.services.blockchain import ChainClient, ChainClientPool, RawLog
from app.services.delivery import WebhookDeliveryService
from app.services.event_decoder import EventDecoder
from app.services.event_poller import EventPollerService

__all__ = [
    "ChainClient",
    "ChainClientPool",
    "RawLog",
    "EventDecoder",
    "EventPollerService",
    "WebhookDeliveryService",
]
