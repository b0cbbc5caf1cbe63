"""
Call and transaction data model.

Requests are frozen; each lifecycle step produces a new instance with
``dataclasses.replace`` instead of mutating the previous one.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from web3 import Web3

from ethlite.errors import SignerError
from ethlite.types.log import LogEntry
from ethlite.types.quantity import hex_to_bytes, to_int, to_optional_int, to_quantity


@dataclass(frozen=True)
class CallRequest:
    """Read-only call (``eth_call`` / ``eth_estimateGas`` parameter object)."""

    to: str
    data: bytes = b""
    value: Optional[int] = None
    from_: Optional[str] = None

    def to_rpc(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {"to": self.to, "data": "0x" + self.data.hex()}
        if self.value:
            params["value"] = to_quantity(self.value)
        if self.from_:
            params["from"] = self.from_
        return params

    def with_sender(self, sender: Optional[str]) -> "CallRequest":
        return self if sender is None else replace(self, from_=sender)


@dataclass(frozen=True)
class FeeEstimate:
    """
    Fee parameters for one submission.

    Either ``gas_price`` (legacy) or the EIP-1559 pair is set.
    """

    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    suggested_gas_limit: Optional[int] = None

    @property
    def is_eip1559(self) -> bool:
        return self.max_fee_per_gas is not None


@dataclass(frozen=True)
class TransactionRequest:
    """
    Write transaction, filled in step by step before signing.

    ``nonce``, ``gas_limit`` and fee fields stay None until the lifecycle
    manager populates them.
    """

    to: Optional[str]
    data: bytes = b""
    value: int = 0
    chain_id: int = 1
    nonce: Optional[int] = None
    gas_limit: Optional[int] = None
    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None

    @property
    def has_fees(self) -> bool:
        return self.gas_price is not None or self.max_fee_per_gas is not None

    def to_call(self, sender: Optional[str] = None) -> CallRequest:
        if self.to is None:
            raise SignerError("Contract creation requests cannot be simulated as calls")
        return CallRequest(to=self.to, data=self.data, value=self.value or None, from_=sender)

    def with_fees(self, fees: FeeEstimate) -> "TransactionRequest":
        if fees.is_eip1559:
            return replace(
                self,
                gas_price=None,
                max_fee_per_gas=fees.max_fee_per_gas,
                max_priority_fee_per_gas=fees.max_priority_fee_per_gas,
            )
        return replace(
            self,
            gas_price=fees.gas_price,
            max_fee_per_gas=None,
            max_priority_fee_per_gas=None,
        )

    def to_signable(self) -> Dict[str, Any]:
        """
        Render as the dict ``eth_account`` signs.

        Raises:
            SignerError: If nonce, gas limit or fees are still missing
        """
        missing = [
            label
            for label, value in (("nonce", self.nonce), ("gas_limit", self.gas_limit))
            if value is None
        ]
        if not self.has_fees:
            missing.append("fees")
        if missing:
            raise SignerError(f"Transaction is not fully populated; missing {', '.join(missing)}")

        tx: Dict[str, Any] = {
            "data": self.data,
            "value": self.value,
            "nonce": self.nonce,
            "gas": self.gas_limit,
            "chainId": self.chain_id,
        }
        if self.to is not None:
            tx["to"] = Web3.to_checksum_address(self.to)
        if self.max_fee_per_gas is not None:
            tx["type"] = 2
            tx["maxFeePerGas"] = self.max_fee_per_gas
            tx["maxPriorityFeePerGas"] = self.max_priority_fee_per_gas or 0
        else:
            tx["gasPrice"] = self.gas_price
        return tx


@dataclass(frozen=True)
class SignedTransaction:
    """Raw signed bytes plus the hash that identifies them on-chain."""

    raw: bytes
    hash: str
    sender: str
    nonce: int
    request: TransactionRequest

    @property
    def raw_hex(self) -> str:
        return "0x" + self.raw.hex()


class ReceiptStatus(IntEnum):
    REVERTED = 0
    SUCCESS = 1


@dataclass(frozen=True)
class TransactionReceipt:
    """Outcome of a mined transaction."""

    transaction_hash: str
    block_number: int
    status: ReceiptStatus
    gas_used: int
    logs: Tuple[LogEntry, ...] = ()
    block_hash: Optional[str] = None
    effective_gas_price: Optional[int] = None
    from_: Optional[str] = None
    to: Optional[str] = None
    contract_address: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is ReceiptStatus.SUCCESS

    @classmethod
    def from_rpc(cls, raw: Mapping[str, Any]) -> "TransactionReceipt":
        return cls(
            transaction_hash=str(raw.get("transactionHash") or "").lower(),
            block_number=to_int(raw.get("blockNumber"), "receipt.blockNumber"),
            status=ReceiptStatus(to_int(raw.get("status"), "receipt.status")),
            gas_used=to_int(raw.get("gasUsed"), "receipt.gasUsed"),
            logs=tuple(LogEntry.from_rpc(item) for item in raw.get("logs") or ()),
            block_hash=raw.get("blockHash"),
            effective_gas_price=to_optional_int(raw.get("effectiveGasPrice"), "receipt.effectiveGasPrice"),
            from_=raw.get("from"),
            to=raw.get("to"),
            contract_address=raw.get("contractAddress"),
        )


@dataclass(frozen=True)
class TransactionInfo:
    """Transaction as returned by ``eth_getTransactionByHash`` or a full block."""

    hash: str
    from_: str
    nonce: int
    to: Optional[str] = None
    value: int = 0
    gas: Optional[int] = None
    input: bytes = b""
    block_number: Optional[int] = None

    @property
    def pending(self) -> bool:
        return self.block_number is None

    @classmethod
    def from_rpc(cls, raw: Mapping[str, Any]) -> "TransactionInfo":
        return cls(
            hash=str(raw.get("hash") or "").lower(),
            from_=str(raw.get("from") or ""),
            nonce=to_int(raw.get("nonce"), "tx.nonce"),
            to=raw.get("to"),
            value=to_int(raw.get("value") or 0, "tx.value"),
            gas=to_optional_int(raw.get("gas"), "tx.gas"),
            input=hex_to_bytes(raw.get("input"), "tx.input"),
            block_number=to_optional_int(raw.get("blockNumber"), "tx.blockNumber"),
        )


@dataclass(frozen=True)
class Block:
    """Block header plus transaction hashes (or full transactions)."""

    number: int
    hash: Optional[str]
    timestamp: int
    base_fee_per_gas: Optional[int] = None
    gas_limit: Optional[int] = None
    gas_used: Optional[int] = None
    transactions: Tuple[Union[str, TransactionInfo], ...] = ()

    @classmethod
    def from_rpc(cls, raw: Mapping[str, Any]) -> "Block":
        txs = tuple(
            TransactionInfo.from_rpc(tx) if isinstance(tx, Mapping) else str(tx).lower()
            for tx in raw.get("transactions") or ()
        )
        return cls(
            number=to_int(raw.get("number"), "block.number"),
            hash=raw.get("hash"),
            timestamp=to_int(raw.get("timestamp"), "block.timestamp"),
            base_fee_per_gas=to_optional_int(raw.get("baseFeePerGas"), "block.baseFeePerGas"),
            gas_limit=to_optional_int(raw.get("gasLimit"), "block.gasLimit"),
            gas_used=to_optional_int(raw.get("gasUsed"), "block.gasUsed"),
            transactions=txs,
        )
