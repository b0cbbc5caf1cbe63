"""Log entries as returned by ``eth_getLogs`` and in receipts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from web3 import Web3

from ethlite.errors import ProtocolViolation
from ethlite.types.quantity import hex_to_bytes, to_int, to_optional_int


@dataclass(frozen=True)
class LogEntry:
    """
    One emitted log.

    Attributes:
        address: Emitting contract (checksummed when parsed from RPC)
        topics: 32-byte topics as lowercase 0x-prefixed hex strings
        data: Non-indexed event data
        block_number: Block containing the log
        transaction_hash: Transaction that emitted it
        log_index: Position of the log in the block
        removed: True when a reorg removed the log
    """

    address: str
    topics: Tuple[str, ...]
    data: bytes
    block_number: int
    transaction_hash: str
    log_index: int
    block_hash: Optional[str] = None
    transaction_index: Optional[int] = None
    removed: bool = False

    @property
    def sort_key(self) -> Tuple[int, int]:
        return (self.block_number, self.log_index)

    @property
    def dedupe_key(self) -> Tuple[int, int, str]:
        return (self.block_number, self.log_index, self.transaction_hash)

    @property
    def topic0(self) -> Optional[str]:
        return self.topics[0] if self.topics else None

    @classmethod
    def from_rpc(cls, raw: Mapping[str, Any]) -> "LogEntry":
        address = raw.get("address")
        if not isinstance(address, str) or not Web3.is_address(address):
            raise ProtocolViolation(f"log.address is not an address: {address!r}")
        return cls(
            address=Web3.to_checksum_address(address),
            topics=tuple(str(t).lower() for t in raw.get("topics") or ()),
            data=hex_to_bytes(raw.get("data"), "log.data"),
            block_number=to_int(raw.get("blockNumber"), "log.blockNumber"),
            transaction_hash=str(raw.get("transactionHash") or "").lower(),
            log_index=to_int(raw.get("logIndex"), "log.logIndex"),
            block_hash=raw.get("blockHash"),
            transaction_index=to_optional_int(raw.get("transactionIndex"), "log.transactionIndex"),
            removed=bool(raw.get("removed", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "topics": list(self.topics),
            "data": "0x" + self.data.hex(),
            "blockNumber": self.block_number,
            "transactionHash": self.transaction_hash,
            "logIndex": self.log_index,
        }
