"""
Event Decoder.

ABI-based decoding of raw logs into a tagged payload union.
"""

from .decoder import EventDecoder
from .types import (
    DecodedEvent,
    EventArgument,
    EventPayload,
    RawLogEvent,
    payload_from_json,
)

__all__ = [
    "EventDecoder",
    "DecodedEvent",
    "EventArgument",
    "EventPayload",
    "RawLogEvent",
    "payload_from_json",
]
