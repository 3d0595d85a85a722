"""
Chain Client Pool.

Lazily creates and caches one RPC client per chain.
"""

import threading
from collections.abc import Callable, Mapping

from loguru import logger

from app.config.constants import SUPPORTED_CHAINS
from app.utils.exceptions import UnsupportedChainError
from app.utils.security import mask_url

from .client import ChainClient

ClientFactory = Callable[[int, str, float], ChainClient]


class ChainClientPool:
    """
    Per-chain RPC client cache.

    Clients are built on first use and kept for the process lifetime.
    Construction is single-flight: concurrent first callers for the same
    chain get the same instance.
    """

    def __init__(
        self,
        rpc_urls: Mapping[int, str] | None = None,
        timeout: float = 30.0,
        client_factory: ClientFactory = ChainClient,
    ) -> None:
        """
        Initialize pool.

        Args:
            rpc_urls: Per-chain endpoint overrides merged over the defaults
            timeout: Per-call RPC timeout handed to every client
            client_factory: Builds a client from (chain_id, rpc_url, timeout)
        """
        self._rpc_urls = {**SUPPORTED_CHAINS, **(rpc_urls or {})}
        self._timeout = timeout
        self._client_factory = client_factory
        self._clients: dict[int, ChainClient] = {}
        self._lock = threading.Lock()

    @property
    def supported_chain_ids(self) -> list[int]:
        """Chain IDs with a configured endpoint."""
        return sorted(self._rpc_urls)

    def get_client(self, chain_id: int) -> ChainClient:
        """
        Get the client for a chain, creating it on first use.

        Args:
            chain_id: Chain identifier

        Returns:
            Cached ChainClient

        Raises:
            UnsupportedChainError: If no endpoint is configured for the chain
        """
        client = self._clients.get(chain_id)
        if client is not None:
            return client

        with self._lock:
            client = self._clients.get(chain_id)
            if client is None:
                rpc_url = self._rpc_urls.get(chain_id)
                if rpc_url is None:
                    raise UnsupportedChainError(chain_id)

                client = self._client_factory(chain_id, rpc_url, self._timeout)
                self._clients[chain_id] = client
                logger.info(
                    f"[ChainPool] Client created for chain {chain_id} "
                    f"({mask_url(rpc_url)})"
                )
        return client

    async def close(self) -> None:
        """Close every cached client."""
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()

        for client in clients:
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"[ChainPool] Error closing client: {e}")
