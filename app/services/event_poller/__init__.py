"""
Event Poller.

Cursor-based ingestion of contract logs into the event store.
"""

from .core import EventPollerService

__all__ = ["EventPollerService"]
