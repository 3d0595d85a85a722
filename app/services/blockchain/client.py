"""
Chain RPC client.

Thin async wrapper over AsyncWeb3 exposing the two calls the poller needs.
"""

import aiohttp
from web3 import AsyncWeb3
from web3.middleware import ExtraDataToPOAMiddleware

from app.config.constants import POA_CHAIN_IDS
from app.utils.security import mask_address

from .rpc_wrapper import with_timeout
from .types import RawLog


class ChainClient:
    """
    RPC client for a single chain.

    Every call is bounded by `timeout` and raises RpcUnavailableError on
    provider failure.
    """

    def __init__(self, chain_id: int, rpc_url: str, timeout: float) -> None:
        """
        Initialize client.

        Args:
            chain_id: Chain identifier
            rpc_url: HTTP(S) JSON-RPC endpoint
            timeout: Per-call timeout in seconds
        """
        self.chain_id = chain_id
        self.timeout = timeout
        self.w3 = AsyncWeb3(
            AsyncWeb3.AsyncHTTPProvider(
                rpc_url,
                request_kwargs={"timeout": aiohttp.ClientTimeout(total=timeout)},
            )
        )
        if chain_id in POA_CHAIN_IDS:
            self.w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

    async def get_block_number(self) -> int:
        """
        Get current chain head.

        Returns:
            Latest block number
        """
        block = await with_timeout(
            self.w3.eth.block_number,
            timeout=self.timeout,
            operation_name=f"eth_blockNumber on chain {self.chain_id}",
        )
        return int(block)

    async def get_logs(
        self,
        address: str,
        from_block: int,
        to_block: int,
    ) -> list[RawLog]:
        """
        Get all logs emitted by a contract in an inclusive block range.

        Args:
            address: Contract address
            from_block: First block (inclusive)
            to_block: Last block (inclusive)

        Returns:
            Logs in chain order
        """
        logs = await with_timeout(
            self.w3.eth.get_logs(
                {
                    "address": AsyncWeb3.to_checksum_address(address),
                    "fromBlock": from_block,
                    "toBlock": to_block,
                }
            ),
            timeout=self.timeout,
            operation_name=(
                f"eth_getLogs {mask_address(address)} "
                f"[{from_block}-{to_block}] on chain {self.chain_id}"
            ),
        )
        return [RawLog.from_web3(log) for log in logs]

    async def close(self) -> None:
        """Release the provider's HTTP session."""
        disconnect = getattr(self.w3.provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()
