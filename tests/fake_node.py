"""
In-memory JSON-RPC node used by the tests.

``FakeChain`` keeps a block head, balances, code, canned call results,
logs and mined transactions, and accepts real signed transactions (the
sender is recovered with eth_account). Error cases are produced through
``map_rpc_error`` so they look exactly like what ``JsonRpcTransport`` raises.
"""

from collections import Counter
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import eth_abi
import rlp
from eth_account import Account
from eth_account.typed_transactions import TypedTransaction
from eth_utils import big_endian_to_int, keccak, to_checksum_address
from hexbytes import HexBytes

from ethlite.abi import AbiFunction
from ethlite.constants import REVERT_SELECTOR
from ethlite.errors import RpcError
from ethlite.transport import map_rpc_error

# =============================================================================
# Constants
# =============================================================================

CHAIN_ID = 84532
# Well-known throwaway key from the eth-account documentation
PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
SENDER = Account.from_key(PRIVATE_KEY).address
TOKEN = to_checksum_address("0x" + "11" * 20)
HOLDER = to_checksum_address("0x" + "22" * 20)
RECIPIENT = to_checksum_address("0x" + "33" * 20)
OTHER = to_checksum_address("0x" + "44" * 20)
BASE_FEE = 1_000_000_000
PRIORITY_FEE = 1_000_000


def address_topic(address: str) -> str:
    return "0x" + "00" * 12 + address[2:].lower()


def _hex(data: Any) -> str:
    if isinstance(data, str):
        return data
    return "0x" + bytes(data).hex()


# =============================================================================
# Fake chain
# =============================================================================

class FakeChain:
    """Scriptable in-memory transport implementing the JSON-RPC methods ethlite uses."""

    def __init__(self, chain_id: int = CHAIN_ID, head: int = 100) -> None:
        self.chain_id = chain_id
        self.head = head
        self.base_fee: Optional[int] = BASE_FEE
        self.priority_fee = PRIORITY_FEE
        self.gas_price = BASE_FEE + PRIORITY_FEE
        self.gas_estimate = 50_000
        self.auto_mine = True
        self.receipt_status = 1

        self.requests: List[Tuple[str, List[Any]]] = []
        self.counts: Counter = Counter()
        self.hooks: Dict[str, Callable[[int], None]] = {}
        self.failures: Dict[str, List[Exception]] = {}

        self.balances: Dict[str, int] = {}
        self.code: Dict[str, bytes] = {}
        self.call_results: Dict[Tuple[str, bytes], bytes] = {}
        self.reverts: Dict[Tuple[str, bytes, str], bytes] = {}

        self.mined_nonces: Dict[str, int] = {}
        self.pending: Dict[str, Dict[str, Any]] = {}
        self.blocks: Dict[int, List[Dict[str, Any]]] = {}
        self.receipts: Dict[str, Dict[str, Any]] = {}
        self.sent: List[Dict[str, Any]] = []

        self.logs: List[Dict[str, Any]] = []
        self.max_block_range: Optional[int] = None
        self.max_results: Optional[int] = None
        self.log_requests: List[Tuple[int, int]] = []

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def call(self, method: str, params: Sequence[Any] = ()) -> Any:
        params = list(params)
        self.requests.append((method, params))
        self.counts[method] += 1
        hook = self.hooks.get(method)
        if hook is not None:
            hook(self.counts[method])
        queued = self.failures.get(method)
        if queued:
            raise queued.pop(0)
        handler = getattr(self, "_" + method, None)
        if handler is None:
            raise RpcError(-32601, f"the method {method} does not exist/is not available")
        return handler(*params)

    def fail_next(self, method: str, exc: Exception) -> None:
        self.failures.setdefault(method, []).append(exc)

    # ------------------------------------------------------------------
    # Scripting helpers
    # ------------------------------------------------------------------

    def respond(self, address: str, fn: AbiFunction, *values: Any) -> None:
        """Make ``eth_call`` to ``fn`` on ``address`` return ``values``."""
        self.call_results[(address.lower(), fn.selector)] = eth_abi.encode(list(fn.output_types), list(values))

    def revert(
        self,
        address: str,
        fn: AbiFunction,
        reason: str,
        methods: Sequence[str] = ("eth_call", "eth_estimateGas"),
    ) -> None:
        payload = bytes.fromhex(REVERT_SELECTOR[2:]) + eth_abi.encode(["string"], [reason])
        for method in methods:
            self.reverts[(address.lower(), fn.selector, method)] = payload

    def add_log(
        self,
        block: int,
        topics: Sequence[str],
        data: bytes = b"",
        address: str = TOKEN,
        log_index: int = 0,
        tx_hash: Optional[str] = None,
        removed: bool = False,
    ) -> Dict[str, Any]:
        entry = {
            "address": address.lower(),
            "topics": list(topics),
            "data": _hex(data),
            "blockNumber": hex(block),
            "blockHash": "0x" + f"{block:064x}",
            "transactionHash": tx_hash or "0x" + f"{block:032x}{log_index:032x}",
            "transactionIndex": "0x0",
            "logIndex": hex(log_index),
            "removed": removed,
        }
        self.logs.append(entry)
        return entry

    def mine(self, info: Dict[str, Any], status: Optional[int] = None) -> None:
        self.head += 1
        mined = dict(info, blockNumber=hex(self.head))
        self.blocks.setdefault(self.head, []).append(mined)
        sender = info["from"].lower()
        self.mined_nonces[sender] = max(self.mined_nonces.get(sender, 0), int(info["nonce"], 16) + 1)
        self.pending.pop(info["hash"], None)
        self.receipts[info["hash"]] = {
            "transactionHash": info["hash"],
            "blockNumber": hex(self.head),
            "blockHash": "0x" + f"{self.head:064x}",
            "status": hex(self.receipt_status if status is None else status),
            "gasUsed": hex(21_000),
            "effectiveGasPrice": hex(BASE_FEE + PRIORITY_FEE),
            "from": info["from"],
            "to": info["to"],
            "contractAddress": None,
            "logs": [],
        }

    def mine_pending(self) -> None:
        for info in list(self.pending.values()):
            self.mine(info)

    def reorg(self, tx_hash: str) -> None:
        """Drop the block holding ``tx_hash`` and return the transaction to the pool."""
        receipt = self.receipts.pop(tx_hash)
        number = int(receipt["blockNumber"], 16)
        for info in self.blocks.pop(number, []):
            info = {k: v for k, v in info.items() if k != "blockNumber"}
            self.pending[info["hash"]] = info
            sender = info["from"].lower()
            self.mined_nonces[sender] = int(info["nonce"], 16)
        self.head = number - 1

    def replace_pending(self, tx_hash: str) -> str:
        """Mine a different transaction with the same sender and nonce."""
        original = self.pending.pop(tx_hash)
        replacement = dict(original, hash="0x" + keccak(bytes.fromhex(tx_hash[2:])).hex())
        self.mine(replacement)
        return replacement["hash"]

    # ------------------------------------------------------------------
    # JSON-RPC methods
    # ------------------------------------------------------------------

    def _eth_chainId(self) -> str:
        return hex(self.chain_id)

    def _eth_blockNumber(self) -> str:
        return hex(self.head)

    def _eth_getBalance(self, address: str, block: str) -> str:
        return hex(self.balances.get(address.lower(), 0))

    def _eth_getCode(self, address: str, block: str) -> str:
        return _hex(self.code.get(address.lower(), b""))

    def _eth_gasPrice(self) -> str:
        return hex(self.gas_price)

    def _eth_maxPriorityFeePerGas(self) -> str:
        return hex(self.priority_fee)

    def _eth_getBlockByNumber(self, tag: str, full: bool) -> Optional[Dict[str, Any]]:
        number = self.head if tag in ("latest", "pending", "safe", "finalized") else int(tag, 16)
        if number > self.head:
            return None
        txs = self.blocks.get(number, [])
        block: Dict[str, Any] = {
            "number": hex(number),
            "hash": "0x" + f"{number:064x}",
            "timestamp": hex(1_700_000_000 + number * 2),
            "gasLimit": hex(30_000_000),
            "gasUsed": hex(21_000 * len(txs)),
            "transactions": list(txs) if full else [tx["hash"] for tx in txs],
        }
        if self.base_fee is not None:
            block["baseFeePerGas"] = hex(self.base_fee)
        return block

    def _reverted(self, call: Dict[str, Any], method: str) -> None:
        data = bytes.fromhex(call.get("data", "0x")[2:])
        payload = self.reverts.get((call["to"].lower(), data[:4], method))
        if payload is not None:
            raise map_rpc_error({"code": 3, "message": "execution reverted", "data": _hex(payload)}, method)

    def _eth_call(self, call: Dict[str, Any], block: str = "latest") -> str:
        self._reverted(call, "eth_call")
        data = bytes.fromhex(call.get("data", "0x")[2:])
        return _hex(self.call_results.get((call["to"].lower(), data[:4]), b""))

    def _eth_estimateGas(self, call: Dict[str, Any], block: str = "latest") -> str:
        self._reverted(call, "eth_estimateGas")
        return hex(self.gas_estimate)

    def _eth_getTransactionCount(self, address: str, block: str) -> str:
        mined = self.mined_nonces.get(address.lower(), 0)
        if block == "pending":
            mined += sum(1 for info in self.pending.values() if info["from"].lower() == address.lower())
        return hex(mined)

    def _eth_sendRawTransaction(self, raw_hex: str) -> str:
        raw = HexBytes(raw_hex)
        sender = Account.recover_transaction(raw)
        tx = _decode_raw(raw)
        nonce = tx["nonce"]
        if nonce < self.mined_nonces.get(sender.lower(), 0):
            raise map_rpc_error({"code": -32000, "message": "nonce too low"}, "eth_sendRawTransaction")
        if nonce > int(self._eth_getTransactionCount(sender, "pending"), 16):
            # Gapped nonces would sit in the queue forever
            raise map_rpc_error({"code": -32000, "message": "nonce too high"}, "eth_sendRawTransaction")
        tx_hash = "0x" + keccak(bytes(raw)).hex()
        info = {
            "hash": tx_hash,
            "from": sender,
            "nonce": hex(nonce),
            "to": to_checksum_address(tx["to"]) if tx.get("to") else None,
            "value": hex(tx.get("value", 0)),
            "gas": hex(tx["gas"]),
            "input": _hex(tx.get("data", b"")),
        }
        self.sent.append(info)
        self.pending[tx_hash] = info
        if self.auto_mine:
            self.mine(info)
        return tx_hash

    def _eth_getTransactionReceipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return self.receipts.get(tx_hash.lower())

    def _eth_getTransactionByHash(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        if tx_hash in self.pending:
            return dict(self.pending[tx_hash], blockNumber=None)
        for txs in self.blocks.values():
            for info in txs:
                if info["hash"] == tx_hash:
                    return info
        return None

    def _eth_getLogs(self, flt: Dict[str, Any]) -> List[Dict[str, Any]]:
        start = int(flt["fromBlock"], 16)
        end = int(flt["toBlock"], 16)
        self.log_requests.append((start, end))
        if self.max_block_range is not None and end - start + 1 > self.max_block_range:
            raise map_rpc_error(
                {"code": -32005, "message": f"exceed maximum block range: {self.max_block_range}"},
                "eth_getLogs",
            )

        addresses = flt.get("address")
        if isinstance(addresses, str):
            addresses = [addresses]
        wanted = {a.lower() for a in addresses or ()}

        matches = []
        for entry in self.logs:
            if not start <= int(entry["blockNumber"], 16) <= end:
                continue
            if wanted and entry["address"] not in wanted:
                continue
            if not _topics_match(flt.get("topics") or [], entry["topics"]):
                continue
            matches.append(entry)

        if self.max_results is not None and len(matches) > self.max_results:
            raise map_rpc_error(
                {"code": -32005, "message": f"query returned more than {self.max_results} results"},
                "eth_getLogs",
            )
        return matches


def _topics_match(wanted: Sequence[Any], topics: Sequence[str]) -> bool:
    for position, entry in enumerate(wanted):
        if entry is None:
            continue
        if position >= len(topics):
            return False
        options = entry if isinstance(entry, list) else [entry]
        if topics[position].lower() not in {o.lower() for o in options}:
            return False
    return True


def _decode_raw(raw: HexBytes) -> Dict[str, Any]:
    if raw[0] >= 0xC0:
        # Legacy RLP list: nonce, gasPrice, gas, to, value, data, v, r, s
        nonce, _, gas, to, value, data = rlp.decode(bytes(raw))[:6]
        return {
            "nonce": big_endian_to_int(nonce),
            "gas": big_endian_to_int(gas),
            "to": to,
            "value": big_endian_to_int(value),
            "data": data,
        }
    return TypedTransaction.from_bytes(raw).as_dict()
