"""
Health check server for the chainhook scheduler.

Endpoints:
- /health: scheduler state, job schedule and the last result of each
  cycle; "degraded" when the latest poll or delivery cycle failed
- /readiness: 200 once the scheduler is running
- /liveness: 200 while the process serves requests
"""

import asyncio
from datetime import datetime

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from app.utils.datetime_utils import utc_now

# Scheduler being monitored (set by jobs.scheduler)
_scheduler: AsyncIOScheduler | None = None

# Last result per cycle name ("poller", "delivery")
_last_cycles: dict[str, dict] = {}


def set_scheduler(scheduler: AsyncIOScheduler | None) -> None:
    """Register (or clear) the scheduler reported by the endpoints."""
    global _scheduler
    _scheduler = scheduler
    if scheduler is not None:
        logger.info("[Health] Scheduler registered")


def record_cycle(name: str, result: dict, at: datetime | None = None) -> None:
    """
    Remember the outcome of a periodic cycle.

    Args:
        name: Cycle name
        result: Task result dict (success, stats, errors)
        at: Completion time
    """
    _last_cycles[name] = {
        "finished_at": (at or utc_now()).isoformat(),
        "success": result.get("success", False),
        "stats": result.get("stats", {}),
        "errors": result.get("errors", []),
    }


def get_last_cycles() -> dict[str, dict]:
    """Snapshot of the recorded cycle results."""
    return dict(_last_cycles)


def _job_schedule(scheduler: AsyncIOScheduler) -> list[dict]:
    return [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": (
                job.next_run_time.isoformat() if job.next_run_time else None
            ),
        }
        for job in scheduler.get_jobs()
    ]


async def health_handler(request: web.Request) -> web.Response:
    if _scheduler is None:
        return web.json_response(
            {"status": "unhealthy", "error": "Scheduler not initialized"},
            status=503,
        )

    cycles = get_last_cycles()
    if not _scheduler.running:
        status = "stopped"
    elif any(not cycle["success"] for cycle in cycles.values()):
        status = "degraded"
    else:
        status = "healthy"

    jobs = _job_schedule(_scheduler)
    return web.json_response(
        {
            "status": status,
            "scheduler_running": _scheduler.running,
            "jobs_count": len(jobs),
            "jobs": jobs,
            "last_cycles": cycles,
        }
    )


async def readiness_handler(request: web.Request) -> web.Response:
    ready = _scheduler is not None and _scheduler.running
    return web.json_response(
        {"status": "ready" if ready else "not_ready", "ready": ready},
        status=200 if ready else 503,
    )


async def liveness_handler(request: web.Request) -> web.Response:
    return web.json_response({"status": "alive", "alive": True})


def create_health_app() -> web.Application:
    """Build the health check application."""
    app = web.Application()
    app.add_routes(
        [
            web.get("/health", health_handler),
            web.get("/readiness", readiness_handler),
            web.get("/liveness", liveness_handler),
        ]
    )
    return app


async def start_health_server(
    host: str = "0.0.0.0",
    port: int = 8081,
) -> web.AppRunner:
    """
    Serve the health endpoints in the running event loop.

    Args:
        host: Bind address
        port: Bind port

    Returns:
        AppRunner to pass to stop_health_server
    """
    runner = web.AppRunner(create_health_app())
    await runner.setup()
    await web.TCPSite(runner, host, port).start()

    logger.info(f"[Health] Listening on {host}:{port}")
    return runner


async def stop_health_server(runner: web.AppRunner, timeout: int = 5) -> None:
    """Stop the health server, waiting at most `timeout` seconds."""
    try:
        await asyncio.wait_for(runner.cleanup(), timeout=timeout)
        logger.info("[Health] Server stopped")
    except TimeoutError:
        logger.warning(f"[Health] Cleanup timed out after {timeout}s")
