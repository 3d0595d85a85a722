"""
Dramatiq broker configuration.

Redis-backed queue for management operations triggered outside the
scheduler process (event replay, cursor reset).
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import CurrentMessage, Retries, ShutdownNotifications
from loguru import logger
from sqlalchemy.exc import InterfaceError, OperationalError

from app.config.settings import settings
from app.utils.exceptions import is_transient

ACTOR_MAX_RETRIES = 3


def _should_retry(retries_so_far: int, exception: Exception) -> bool:
    """Retry management actors on transient and DB connection failures."""
    if retries_so_far >= ACTOR_MAX_RETRIES:
        return False
    return is_transient(exception) or isinstance(
        exception, (OperationalError, InterfaceError)
    )


redis_broker = RedisBroker(
    host=settings.redis_host,
    port=settings.redis_port,
    password=settings.redis_password or None,
    db=settings.redis_db,
    namespace="chainhook",
)

redis_broker.add_middleware(ShutdownNotifications())
redis_broker.add_middleware(CurrentMessage())
redis_broker.add_middleware(
    Retries(
        max_retries=ACTOR_MAX_RETRIES,
        min_backoff=2_000,
        max_backoff=30_000,
        retry_when=_should_retry,
    )
)

dramatiq.set_broker(redis_broker)
broker = redis_broker

logger.info(
    f"[Broker] Dramatiq on redis://{settings.redis_host}:"
    f"{settings.redis_port}/{settings.redis_db} (namespace chainhook)"
)
