"""
Webhook Delivery - Backoff Module.

Module: backoff.py
Capped exponential backoff and the retry budget.
"""

from datetime import datetime, timedelta

from app.utils.exceptions import RetryExhaustedError

from .constants import (
    DEFAULT_BASE_DELAY_SECONDS,
    DEFAULT_MAX_DELAY_SECONDS,
    MAX_RETRIES,
)


class RetryPolicy:
    """
    Retry budget with capped exponential backoff.

    `retry_count` is the number of retries already scheduled. A failed
    attempt on an event with `retry_count < max_retries` schedules retry
    number `retry_count + 1`; otherwise the budget is spent.
    """

    def __init__(
        self,
        max_retries: int = MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        max_delay: float = DEFAULT_MAX_DELAY_SECONDS,
    ) -> None:
        """
        Initialize policy.

        Args:
            max_retries: Retries allowed after the first attempt
            base_delay: Base delay in seconds
            max_delay: Delay cap in seconds
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if base_delay <= 0 or max_delay < base_delay:
            raise ValueError("Require 0 < base_delay <= max_delay")

        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay

    def delay(self, retry_number: int) -> timedelta:
        """
        Delay before the given retry.

        Formula: min(2^retry_number * base_delay, max_delay)

        Args:
            retry_number: 1-based retry number

        Returns:
            Delay as timedelta
        """
        seconds = min(2 ** retry_number * self.base_delay, self.max_delay)
        return timedelta(seconds=seconds)

    def is_exhausted(self, retry_count: int) -> bool:
        """Check if no retry remains after a failure at `retry_count`."""
        return retry_count >= self.max_retries

    def next_retry_at(self, now: datetime, retry_count: int) -> datetime:
        """
        Due time of the next retry after a failed attempt.

        Args:
            now: Time of the failed attempt
            retry_count: Retries already scheduled for the event

        Returns:
            When the event becomes due again

        Raises:
            RetryExhaustedError: If the retry budget is spent
        """
        if self.is_exhausted(retry_count):
            raise RetryExhaustedError(
                f"Retry budget of {self.max_retries} exhausted"
            )
        return now + self.delay(retry_count + 1)
