"""
RPC Wrapper with Timeout.

Bounds every chain RPC call and maps provider failures onto
RpcUnavailableError so callers handle one error type.
"""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import aiohttp
from loguru import logger
from web3.exceptions import Web3Exception

from app.utils.exceptions import RpcUnavailableError

T = TypeVar("T")

# Errors a provider can surface for an unreachable or misbehaving node
RPC_ERRORS = (
    Web3Exception,
    aiohttp.ClientError,
    OSError,
    ValueError,
)


async def with_timeout(
    coro: Awaitable[T],
    timeout: float,
    operation_name: str = "RPC call",
) -> T:
    """
    Execute RPC coroutine with timeout.

    Args:
        coro: Coroutine to execute
        timeout: Timeout in seconds
        operation_name: Operation name for logging

    Returns:
        Result of the coroutine

    Raises:
        RpcUnavailableError: If the call times out or the provider fails
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        error_msg = f"{operation_name} timed out after {timeout}s"
        logger.warning(error_msg)
        raise RpcUnavailableError(error_msg) from e
    except RPC_ERRORS as e:
        error_msg = f"{operation_name} failed: {e}"
        logger.warning(error_msg)
        raise RpcUnavailableError(error_msg) from e
