#!/usr/bin/env python3
"""
Operator CLI for chainhook.

Commands:
    replay EVENT_ID [EVENT_ID ...]   Reset events to PENDING (retry count 0)
    replay --failed [--limit N]      Replay the FAILED events
    reset-cursor SUBSCRIPTION_ID [--block N]
                                     Rewind a cursor (0 = restart at head)
    stats                            Event counts per status and FAILED list

Usage:
    python scripts/chainhook_admin.py stats
    python scripts/chainhook_admin.py replay 42 43
    python scripts/chainhook_admin.py reset-cursor 7 --block 19000000
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.delivery import DeliveryStatsManager, ReplayManager
from jobs.utils.database import create_task_engine, create_task_session_maker

# Configure logger
logger.remove()
logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level} | {message}")


async def cmd_replay(session: AsyncSession, args: argparse.Namespace) -> int:
    """Replay individual events or the FAILED set."""
    manager = ReplayManager(session)

    if args.failed:
        count = await manager.replay_failed_events(limit=args.limit)
        logger.info(f"Replayed {count} FAILED events")
        return 0

    if not args.event_ids:
        logger.error("Give event IDs or --failed")
        return 2

    exit_code = 0
    for event_id in args.event_ids:
        success, error = await manager.replay_event(event_id)
        if success:
            logger.info(f"Event {event_id} replayed")
        else:
            logger.error(f"Event {event_id}: {error}")
            exit_code = 1
    return exit_code


async def cmd_reset_cursor(session: AsyncSession, args: argparse.Namespace) -> int:
    """Rewind a subscription cursor."""
    success, error = await ReplayManager(session).reset_cursor(
        args.subscription_id, block=args.block
    )
    if not success:
        logger.error(f"Subscription {args.subscription_id}: {error}")
        return 1

    logger.info(
        f"Subscription {args.subscription_id} cursor set to {args.block}"
    )
    return 0


async def cmd_stats(session: AsyncSession, args: argparse.Namespace) -> int:
    """Print delivery statistics and the FAILED events."""
    stats = await DeliveryStatsManager(session).get_delivery_stats()

    print(f"Subscriptions: {stats['active_subscriptions']} active, "
          f"{stats['paused_subscriptions']} paused")
    print(f"Events: {stats['total_events']} total")
    for status, count in stats["events"].items():
        print(f"  {status:<11} {count}")

    failed = await ReplayManager(session).get_failed_events(limit=args.limit)
    if failed:
        print(f"\nFAILED events (oldest first, max {args.limit}):")
        for event in failed:
            print(
                f"  #{event.id} sub={event.subscription_id} "
                f"{event.event_name} block={event.block_number} "
                f"retries={event.retry_count} tx={event.transaction_hash}"
            )
    return 0


COMMANDS = {
    "replay": cmd_replay,
    "reset-cursor": cmd_reset_cursor,
    "stats": cmd_stats,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="chainhook operator tools")
    subparsers = parser.add_subparsers(dest="command", required=True)

    replay = subparsers.add_parser("replay", help="Replay captured events")
    replay.add_argument("event_ids", nargs="*", type=int)
    replay.add_argument(
        "--failed", action="store_true", help="Replay FAILED events"
    )
    replay.add_argument("--limit", type=int, default=100)

    reset = subparsers.add_parser("reset-cursor", help="Rewind a cursor")
    reset.add_argument("subscription_id", type=int)
    reset.add_argument("--block", type=int, default=0)

    stats = subparsers.add_parser("stats", help="Delivery statistics")
    stats.add_argument("--limit", type=int, default=20)

    return parser


async def run(args: argparse.Namespace) -> int:
    engine = create_task_engine()
    session_maker = create_task_session_maker(engine)
    try:
        async with session_maker() as session:
            return await COMMANDS[args.command](session, args)
    finally:
        await engine.dispose()


def main() -> None:
    args = build_parser().parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
