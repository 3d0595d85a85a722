"""
Blockchain services module.

Per-chain RPC clients behind a lazily populated pool.
"""

from .client import ChainClient
from .client_pool import ChainClientPool
from .types import RawLog

__all__ = [
    "ChainClient",
    "ChainClientPool",
    "RawLog",
]
