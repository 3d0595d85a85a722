"""
Chainhook scheduler.

Process entry point: runs the poll and delivery cycles on independent
fixed intervals and serves health checks until SIGINT/SIGTERM.

Usage:
    python -m jobs.scheduler
"""

import asyncio
import signal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from app.config.database import async_engine, async_session_maker
from app.config.logging import setup_logging
from app.config.settings import settings
from app.services.blockchain import ChainClientPool
from app.services.delivery import RetryPolicy, WebhookClient, WebhookDeliveryService
from app.services.event_poller import EventPollerService
from jobs.health import set_scheduler, start_health_server, stop_health_server
from jobs.tasks.event_poller_task import run_event_poller
from jobs.tasks.webhook_delivery_task import run_webhook_delivery

# Running scheduler, used by shutdown hooks
scheduler_instance: AsyncIOScheduler | None = None


def create_scheduler(
    poller: EventPollerService,
    delivery_service: WebhookDeliveryService,
    poll_interval: int = 10,
    delivery_interval: int = 5,
) -> AsyncIOScheduler:
    """
    Create the scheduler with both cycle jobs.

    A cycle that overruns its interval is never started twice
    (max_instances=1); missed ticks collapse into one run.

    Args:
        poller: Poller service
        delivery_service: Delivery service
        poll_interval: Seconds between poll cycles
        delivery_interval: Seconds between delivery cycles

    Returns:
        Configured, not yet started scheduler
    """
    scheduler = AsyncIOScheduler(timezone="UTC")

    scheduler.add_job(
        run_event_poller,
        "interval",
        seconds=poll_interval,
        args=[poller],
        id="event_poller",
        name="Event poller",
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        run_webhook_delivery,
        "interval",
        seconds=delivery_interval,
        args=[delivery_service],
        id="webhook_delivery",
        name="Webhook delivery",
        max_instances=1,
        coalesce=True,
    )

    return scheduler


def build_services() -> tuple[ChainClientPool, EventPollerService, WebhookDeliveryService]:
    """Build the client pool and both services from settings."""
    client_pool = ChainClientPool(
        rpc_urls=settings.chain_rpc_urls,
        timeout=settings.rpc_timeout,
    )
    poller = EventPollerService(
        async_session_maker,
        client_pool,
        max_block_range=settings.max_block_range,
        concurrency=settings.poller_concurrency,
    )
    delivery_service = WebhookDeliveryService(
        async_session_maker,
        webhook_client=WebhookClient(
            timeout=settings.webhook_timeout,
            body_max_length=settings.response_body_max_length,
        ),
        retry_policy=RetryPolicy(
            max_retries=settings.delivery_max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        ),
        batch_size=settings.delivery_batch_size,
        concurrency=settings.delivery_concurrency,
        stale_after=settings.processing_stale_after,
    )
    return client_pool, poller, delivery_service


async def main() -> None:
    """Run the scheduler until a stop signal arrives."""
    global scheduler_instance

    setup_logging()
    logger.info(
        f"[Scheduler] Starting chainhook ({settings.environment}), "
        f"poll every {settings.poll_interval}s, "
        f"deliver every {settings.delivery_interval}s"
    )

    client_pool, poller, delivery_service = build_services()
    logger.info(
        f"[Scheduler] Chains configured: "
        f"{', '.join(map(str, client_pool.supported_chain_ids))}"
    )
    scheduler = create_scheduler(
        poller,
        delivery_service,
        poll_interval=settings.poll_interval,
        delivery_interval=settings.delivery_interval,
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    scheduler.start()
    scheduler_instance = scheduler
    set_scheduler(scheduler)
    health_runner = await start_health_server(port=settings.health_check_port)

    try:
        await stop_event.wait()
    finally:
        logger.info("[Scheduler] Shutdown initiated...")
        scheduler.shutdown(wait=False)
        set_scheduler(None)
        scheduler_instance = None

        await stop_health_server(health_runner)
        await delivery_service.close()
        await client_pool.close()
        await async_engine.dispose()
        logger.info("[Scheduler] Shutdown complete")


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
