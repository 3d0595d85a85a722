"""
Security utilities for log output.
"""

from urllib.parse import urlsplit


def mask_address(address: str | None) -> str:
    """
    Mask contract address for logging: 0x1234...5678

    Args:
        address: Contract address to mask

    Returns:
        Masked address showing first 6 and last 4 characters

    Examples:
        >>> mask_address("0x1234567890abcdef1234567890abcdef12345678")
        '0x1234...5678'
        >>> mask_address(None)
        '***'
        >>> mask_address("short")
        '***'
    """
    if not address or len(address) < 10:
        return "***"
    return f"{address[:6]}...{address[-4:]}"


def mask_url(url: str | None) -> str:
    """
    Reduce a URL to scheme and host for logging.

    Webhook and RPC URLs often embed tokens in the path or query.

    Examples:
        >>> mask_url("https://hooks.example.com/t/abc123?key=secret")
        'https://hooks.example.com/***'
        >>> mask_url(None)
        '***'
    """
    if not url:
        return "***"
    parts = urlsplit(url)
    if not parts.scheme or not parts.hostname:
        return "***"
    host = parts.hostname
    if parts.port:
        host = f"{host}:{parts.port}"
    return f"{parts.scheme}://{host}/***"
