"""
Chain boundary types.
"""

from dataclasses import dataclass
from typing import Any

from web3 import Web3


@dataclass(frozen=True)
class RawLog:
    """
    One log as returned by eth_getLogs, normalized to hex strings.

    Attributes:
        address: Emitting contract, lowercase
        data: Non-indexed argument data, 0x-hex
        topics: Topic words, 0x-hex; topics[0] is the event signature
        block_number: Block containing the log
        block_hash: Hash of that block
        transaction_hash: Emitting transaction
        log_index: Position of the log within the block
    """

    address: str
    data: str
    topics: tuple[str, ...]
    block_number: int
    block_hash: str | None
    transaction_hash: str
    log_index: int

    @classmethod
    def from_web3(cls, log: Any) -> "RawLog":
        """Build from a web3 log entry (AttributeDict with HexBytes values)."""
        block_hash = log.get("blockHash")
        return cls(
            address=str(log["address"]).lower(),
            data=Web3.to_hex(log["data"]),
            topics=tuple(Web3.to_hex(topic) for topic in log["topics"]),
            block_number=int(log["blockNumber"]),
            block_hash=Web3.to_hex(block_hash) if block_hash is not None else None,
            transaction_hash=Web3.to_hex(log["transactionHash"]),
            log_index=int(log["logIndex"]),
        )
