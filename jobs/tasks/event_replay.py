"""
Management-triggered recovery tasks.

Dramatiq actors the management API enqueues to replay an event or
reset a subscription cursor out of process.
"""

import dramatiq
from loguru import logger

from app.services.delivery import ReplayManager
from jobs.async_runner import run_async
from jobs.broker import broker  # noqa: F401
from jobs.utils.database import create_task_engine, create_task_session_maker


@dramatiq.actor(max_retries=3, time_limit=60_000)  # 1 min timeout
def replay_event(event_id: int, owner_id: str | None = None) -> None:
    """
    Reset a captured event to PENDING with retry count 0.

    Args:
        event_id: Captured event ID
        owner_id: Caller's owner identity (None for operators)
    """
    logger.info(f"[Replay Task] Replaying event {event_id}")

    success, error = run_async(_replay_event_async(event_id, owner_id))
    if not success:
        logger.warning(f"[Replay Task] Event {event_id} not replayed: {error}")


@dramatiq.actor(max_retries=3, time_limit=60_000)
def reset_subscription_cursor(
    subscription_id: int, block: int = 0, owner_id: str | None = None
) -> None:
    """
    Rewind a subscription cursor (0 re-initializes it at the chain head).

    Args:
        subscription_id: Subscription ID
        block: New last processed block
        owner_id: Caller's owner identity (None for operators)
    """
    logger.info(
        f"[Replay Task] Resetting cursor of subscription "
        f"{subscription_id} to {block}"
    )

    success, error = run_async(
        _reset_cursor_async(subscription_id, block, owner_id)
    )
    if not success:
        logger.warning(
            f"[Replay Task] Cursor of subscription {subscription_id} "
            f"not reset: {error}"
        )


async def _replay_event_async(
    event_id: int, owner_id: str | None
) -> tuple[bool, str | None]:
    """Async implementation of event replay."""
    # Local engine with NullPool: the worker thread owns its own loop
    engine = create_task_engine()
    session_maker = create_task_session_maker(engine)
    try:
        async with session_maker() as session:
            return await ReplayManager(session).replay_event(
                event_id, owner_id=owner_id
            )
    finally:
        await engine.dispose()


async def _reset_cursor_async(
    subscription_id: int, block: int, owner_id: str | None
) -> tuple[bool, str | None]:
    """Async implementation of cursor reset."""
    engine = create_task_engine()
    session_maker = create_task_session_maker(engine)
    try:
        async with session_maker() as session:
            return await ReplayManager(session).reset_cursor(
                subscription_id, block=block, owner_id=owner_id
            )
    finally:
        await engine.dispose()
