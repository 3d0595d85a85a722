"""
Event Poller Background Task.

One poll cycle per scheduler tick:
1. Load active subscriptions
2. Fetch new logs for each (capped block range)
3. Store captured events and advance cursors

Runs every `poll_interval` seconds, independent of delivery.
"""

import asyncio

from loguru import logger

from app.services.event_poller import EventPollerService
from jobs.health import record_cycle


async def run_event_poller(poller: EventPollerService) -> dict:
    """
    Poller task - runs one cycle.

    Args:
        poller: Configured poller service

    Returns:
        Dict with cycle results
    """
    results = {"success": False, "stats": {}, "errors": []}

    try:
        results["stats"] = await poller.poll_cycle()
        results["success"] = True

    except asyncio.CancelledError:
        logger.info("[Poller Task] Task cancelled")
        raise
    except Exception as e:
        logger.exception(f"[Poller Task] Task failed: {e}")
        results["errors"].append(str(e))

    record_cycle("poller", results)
    return results
