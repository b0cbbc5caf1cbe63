"""
Client context.

A ``Client`` bundles the network descriptor, the transport and an
optional signer, and is passed explicitly to everything that needs them.
There is no module-level provider or default account.

Example:
    >>> async with await Client.connect("base-sepolia", private_key=key) as client:
    ...     print(await client.block_number())
    ...     token = client.erc20("0x...")
    ...     sub = await token.transfer(recipient, 10**6)
    ...     sub.raise_for_error()
"""

from __future__ import annotations

from typing import Any, List, Optional, Union

from ethlite.config import (
    LifecycleConfig,
    LogQueryConfig,
    Network,
    NetworkDescriptor,
    get_network,
)
from ethlite.constants import EMPTY_CODE, MAX_FEE_MULTIPLIER
from ethlite.contract import AbiLike, Contract
from ethlite.errors import ChainMismatch, ProtocolViolation, SignerError, ValidationError
from ethlite.lifecycle import Submission, TransactionLifecycleManager
from ethlite.logs import LogFilter, LogQueryEngine
from ethlite.signer import Signer
from ethlite.tokens import ERC20
from ethlite.transport import JsonRpcTransport, Transport, redact_endpoint
from ethlite.types import (
    Block,
    CallRequest,
    FeeEstimate,
    LogEntry,
    TransactionInfo,
    TransactionReceipt,
    hex_to_bytes,
    to_int,
)
from ethlite.utils.logging import get_logger
from ethlite.utils.validation import (
    BlockIdentifier,
    to_block_param,
    validate_address,
    validate_hash,
)

_logger = get_logger(__name__)


class Client:
    """
    Explicit session context: network + transport + optional signer.

    Args:
        network: Chain the session talks to
        transport: JSON-RPC transport (defaults to ``JsonRpcTransport(network.endpoint)``)
        signer: Optional signer; write operations require one
        lifecycle_config: Defaults for ``lifecycle``
        log_config: Settings for the shared log engine
    """

    def __init__(
        self,
        network: NetworkDescriptor,
        transport: Optional[Transport] = None,
        signer: Optional[Signer] = None,
        *,
        lifecycle_config: Optional[LifecycleConfig] = None,
        log_config: Optional[LogQueryConfig] = None,
    ) -> None:
        self.network = network
        self._owns_transport = transport is None
        self.transport: Transport = transport or JsonRpcTransport(network.endpoint)
        self.signer = signer
        self.lifecycle_config = lifecycle_config or LifecycleConfig()
        self.logs = LogQueryEngine(self.transport, log_config)
        self._lifecycle: Optional[TransactionLifecycleManager] = None

    @classmethod
    async def connect(
        cls,
        network: Union[NetworkDescriptor, Network, str],
        private_key: Optional[str] = None,
        *,
        transport: Optional[Transport] = None,
        lifecycle_config: Optional[LifecycleConfig] = None,
        log_config: Optional[LogQueryConfig] = None,
    ) -> "Client":
        """
        Open a session and verify the endpoint serves the expected chain.

        Raises:
            ChainMismatch: If ``eth_chainId`` differs from the descriptor
            SignerError: If the private key is invalid
        """
        descriptor = network if isinstance(network, NetworkDescriptor) else get_network(network)
        client = cls(
            descriptor,
            transport,
            lifecycle_config=lifecycle_config,
            log_config=log_config,
        )
        try:
            actual = await client.chain_id()
            if actual != descriptor.chain_id:
                raise ChainMismatch(
                    expected=descriptor.chain_id,
                    actual=actual,
                    endpoint=redact_endpoint(descriptor.endpoint),
                )
            if private_key:
                client.signer = Signer(private_key, client.transport)
        except BaseException:
            await client.aclose()
            raise

        _logger.info(
            "Connected",
            extra={
                "network": descriptor.name,
                "chain_id": descriptor.chain_id,
                "endpoint": redact_endpoint(descriptor.endpoint),
            },
        )
        return client

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_transport and isinstance(self.transport, JsonRpcTransport):
            await self.transport.aclose()

    def __repr__(self) -> str:
        return f"Client(network={self.network.name!r}, address={self.address!r})"

    @property
    def address(self) -> Optional[str]:
        return self.signer.address if self.signer else None

    @property
    def lifecycle(self) -> TransactionLifecycleManager:
        """Lifecycle manager bound to this client's signer."""
        if self.signer is None:
            raise SignerError("This client is read-only; connect with a private key to send transactions")
        if self._lifecycle is None or self._lifecycle.signer is not self.signer:
            self._lifecycle = TransactionLifecycleManager(self, self.signer, self.lifecycle_config)
        return self._lifecycle

    # ------------------------------------------------------------------
    # Chain reads
    # ------------------------------------------------------------------

    async def chain_id(self) -> int:
        return to_int(await self.transport.call("eth_chainId"), "eth_chainId result")

    async def block_number(self) -> int:
        return to_int(await self.transport.call("eth_blockNumber"), "eth_blockNumber result")

    async def get_balance(self, address: str, block: BlockIdentifier = "latest") -> int:
        """Native balance in wei."""
        address = validate_address(address)
        raw = await self.transport.call("eth_getBalance", [address, to_block_param(block)])
        return to_int(raw, "eth_getBalance result")

    async def get_code(self, address: str, block: BlockIdentifier = "latest") -> bytes:
        address = validate_address(address)
        raw = await self.transport.call("eth_getCode", [address, to_block_param(block)])
        return hex_to_bytes(raw, "eth_getCode result")

    async def is_contract(self, address: str) -> bool:
        return await self.get_code(address) != hex_to_bytes(EMPTY_CODE)

    async def get_transaction_count(self, address: str, block: BlockIdentifier = "latest") -> int:
        address = validate_address(address)
        raw = await self.transport.call("eth_getTransactionCount", [address, to_block_param(block)])
        return to_int(raw, "eth_getTransactionCount result")

    async def get_block(
        self,
        block: BlockIdentifier = "latest",
        full_transactions: bool = False,
    ) -> Optional[Block]:
        raw = await self.transport.call(
            "eth_getBlockByNumber",
            [to_block_param(block), full_transactions],
        )
        return Block.from_rpc(raw) if raw else None

    async def get_transaction(self, tx_hash: str) -> Optional[TransactionInfo]:
        tx_hash = validate_hash(tx_hash, "tx_hash")
        raw = await self.transport.call("eth_getTransactionByHash", [tx_hash])
        return TransactionInfo.from_rpc(raw) if raw else None

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        """
        Receipt for ``tx_hash``, or None while it is not mined.

        Raises:
            ProtocolViolation: If the node returns a receipt for another hash
        """
        tx_hash = validate_hash(tx_hash, "tx_hash")
        raw = await self.transport.call("eth_getTransactionReceipt", [tx_hash])
        if not raw:
            return None
        receipt = TransactionReceipt.from_rpc(raw)
        if receipt.transaction_hash != tx_hash:
            raise ProtocolViolation(
                f"Receipt is for {receipt.transaction_hash}, requested {tx_hash}",
                method="eth_getTransactionReceipt",
            )
        return receipt

    async def get_fee_estimate(self, max_fee_multiplier: int = MAX_FEE_MULTIPLIER) -> FeeEstimate:
        """
        Current fee parameters.

        EIP-1559 chains get ``maxFeePerGas = baseFee * multiplier + tip``;
        chains without a base fee fall back to ``eth_gasPrice``.
        """
        block = await self.get_block("latest")
        if block is None or block.base_fee_per_gas is None:
            gas_price = to_int(await self.transport.call("eth_gasPrice"), "eth_gasPrice result")
            return FeeEstimate(gas_price=gas_price)

        priority = to_int(
            await self.transport.call("eth_maxPriorityFeePerGas"),
            "eth_maxPriorityFeePerGas result",
        )
        return FeeEstimate(
            max_fee_per_gas=block.base_fee_per_gas * max_fee_multiplier + priority,
            max_priority_fee_per_gas=priority,
        )

    async def call(self, call: CallRequest, block: BlockIdentifier = "latest") -> bytes:
        """Raw ``eth_call``."""
        raw = await self.transport.call("eth_call", [call.to_rpc(), to_block_param(block)])
        return hex_to_bytes(raw, "eth_call result")

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------

    def contract(self, address: str, abi: AbiLike) -> Contract:
        return Contract(
            self.transport,
            address,
            abi,
            chain_id=self.network.chain_id,
            logs=self.logs,
        )

    def erc20(self, address: str) -> ERC20:
        return ERC20(self, address)

    async def query_logs(self, log_filter: LogFilter, from_block: int, to_block: int) -> List[LogEntry]:
        return await self.logs.query_logs(log_filter, from_block, to_block)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def send_value(self, to: str, amount_wei: int, **overrides: Any) -> Submission:
        """
        Transfer native currency through the full lifecycle.

        Returns:
            The final ``Submission``; inspect ``ok``/``error`` or call
            ``raise_for_error()``
        """
        to = validate_address(to, "to")
        if isinstance(amount_wei, bool) or not isinstance(amount_wei, int) or amount_wei < 0:
            raise ValidationError("amount_wei must be a non-negative integer", field="amount_wei")
        return await self.lifecycle.execute(CallRequest(to=to, value=amount_wei or None), **overrides)
