"""
Webhook Delivery Background Task.

One delivery cycle per scheduler tick: recover stale claims, then
deliver due events. Runs every `delivery_interval` seconds.
"""

import asyncio

from loguru import logger

from app.services.delivery import WebhookDeliveryService
from jobs.health import record_cycle


async def run_webhook_delivery(delivery_service: WebhookDeliveryService) -> dict:
    """
    Delivery task - runs one cycle.

    Args:
        delivery_service: Configured delivery service

    Returns:
        Dict with cycle results
    """
    results = {"success": False, "stats": {}, "errors": []}

    try:
        results["stats"] = await delivery_service.process_due_events()
        results["success"] = True

    except asyncio.CancelledError:
        logger.info("[Delivery Task] Task cancelled")
        raise
    except Exception as e:
        logger.exception(f"[Delivery Task] Task failed: {e}")
        results["errors"].append(str(e))

    record_cycle("delivery", results)
    return results
