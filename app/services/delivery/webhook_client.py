"""
Webhook Delivery - HTTP Client Module.

Module: webhook_client.py
POSTs JSON bodies to subscriber webhooks and reports the outcome.
Transport failures are returned as results, never raised.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any

import aiohttp
from loguru import logger

from app.config.constants import WEBHOOK_USER_AGENT
from app.utils.security import mask_url

from .constants import BODY_MAX_LENGTH, DEFAULT_WEBHOOK_TIMEOUT_SECONDS


@dataclass(frozen=True)
class WebhookResult:
    """
    Outcome of one webhook POST.

    Attributes:
        success: True for any 2xx response
        status_code: HTTP status, None if no response arrived
        response_body: Response text truncated to the configured length
        error: Transport error text (timeout, connection refused, ...)
        duration_ms: Wall time of the request
    """

    success: bool
    status_code: int | None = None
    response_body: str | None = None
    error: str | None = None
    duration_ms: int | None = None


class WebhookClient:
    """aiohttp client with a per-request total timeout."""

    def __init__(
        self,
        timeout: float = DEFAULT_WEBHOOK_TIMEOUT_SECONDS,
        body_max_length: int = BODY_MAX_LENGTH,
    ) -> None:
        """
        Initialize client.

        Args:
            timeout: Total timeout per request in seconds
            body_max_length: Max stored response body length
        """
        self.timeout = timeout
        self.body_max_length = body_max_length
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": WEBHOOK_USER_AGENT},
            )
        return self._session

    async def send(
        self,
        url: str,
        body: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> WebhookResult:
        """
        POST a JSON body.

        Args:
            url: Webhook URL
            body: JSON-serializable body
            headers: Extra request headers

        Returns:
            WebhookResult
        """
        started = time.monotonic()
        try:
            session = await self._get_session()
            async with session.post(
                url,
                json=body,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                text = await response.text(errors="replace")
                # PostgreSQL TEXT rejects NUL characters
                text = text.replace("\x00", "")
                return WebhookResult(
                    success=200 <= response.status < 300,
                    status_code=response.status,
                    response_body=text[: self.body_max_length],
                    duration_ms=self._elapsed_ms(started),
                )
        except TimeoutError:
            logger.debug(f"[Webhook] Timeout posting to {mask_url(url)}")
            return WebhookResult(
                success=False,
                error=f"Timeout after {self.timeout}s",
                duration_ms=self._elapsed_ms(started),
            )
        except aiohttp.ClientError as e:
            logger.debug(f"[Webhook] Error posting to {mask_url(url)}: {e}")
            return WebhookResult(
                success=False,
                error=f"{type(e).__name__}: {e}"[: self.body_max_length],
                duration_ms=self._elapsed_ms(started),
            )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    async def close(self) -> None:
        """Close the underlying session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
            # Let the connector finish closing transports
            await asyncio.sleep(0)
        self._session = None
