"""
Exception handling utilities.

Defines categorized exception types for proper error handling.
Every error raised inside a poll or delivery cycle is scoped to one
subscription or one event and is logged there; none aborts the cycle.
"""


class ChainhookError(Exception):
    """Base exception for ingestion and delivery errors."""
    pass


class UnsupportedChainError(ChainhookError):
    """Raised when a subscription references a chain without an RPC endpoint."""

    def __init__(self, chain_id: int) -> None:
        super().__init__(f"Chain {chain_id} not supported")
        self.chain_id = chain_id


class RpcUnavailableError(ChainhookError):
    """Raised when a chain RPC call fails or times out."""
    pass


class DecodeError(ChainhookError):
    """Raised when a log cannot be decoded with the subscription ABI."""
    pass


class WebhookDeliveryError(ChainhookError):
    """A delivery try that did not end in a 2xx response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @classmethod
    def from_result(cls, result) -> "WebhookDeliveryError":
        """Build from a failed WebhookResult (HTTP status or transport error)."""
        if result.status_code is not None:
            return cls(f"HTTP {result.status_code}", result.status_code)
        return cls(result.error or "Unknown error")


class RetryExhaustedError(ChainhookError):
    """Raised when an event has used its whole retry budget."""
    pass


# Exception categories based on handling strategy

# Retried automatically (next cycle or via backoff)
TRANSIENT_ERRORS = (
    RpcUnavailableError,
    WebhookDeliveryError,
)


def is_transient(exc: Exception) -> bool:
    """
    Check if exception is expected to clear on its own.

    Args:
        exc: Exception to check

    Returns:
        True if the operation will be retried later
    """
    return isinstance(exc, TRANSIENT_ERRORS)
