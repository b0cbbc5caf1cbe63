"""
Contract facade.

Binds a parsed ABI to an address and turns function calls into
``eth_call`` / ``eth_estimateGas`` requests. Nothing here signs or
broadcasts; write transactions are handed to the lifecycle manager.

Example:
    >>> token = Contract(transport, "0x...", ERC20_ABI, chain_id=84532)
    >>> (balance,) = await token.read_call(token.abi.function("balanceOf"), [holder])
    >>> call = token.build_call(token.abi.function("transfer"), [to, 10**6])
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Tuple, Union

from ethlite.abi.codec import decode_return, encode
from ethlite.abi.parser import Fragment, parse_abi
from ethlite.abi.types import AbiFunction, ContractAbi
from ethlite.errors import ExecutionReverted, GasEstimationFailed, ValidationError
from ethlite.logs import DecodedEvent, EventStream, LogFilter, LogQueryEngine, build_topic_filter
from ethlite.transport.base import Transport
from ethlite.types import CallRequest, TransactionRequest, hex_to_bytes, to_int
from ethlite.utils.logging import get_logger
from ethlite.utils.validation import BlockIdentifier, to_block_param, validate_address

_logger = get_logger(__name__)

AbiLike = Union[ContractAbi, str, Sequence[Fragment]]


class Contract:
    """
    A deployed contract: address + ABI + the transport to reach it.

    Args:
        transport: JSON-RPC transport
        address: Contract address (validated and checksummed)
        abi: ``ContractAbi`` or anything ``parse_abi`` accepts
        chain_id: Chain id stamped on populated transactions
        logs: Log engine used by ``events``/``query_events``
    """

    def __init__(
        self,
        transport: Transport,
        address: str,
        abi: AbiLike,
        *,
        chain_id: int = 1,
        logs: Optional[LogQueryEngine] = None,
    ) -> None:
        self.transport = transport
        self.address = validate_address(address, "contract address")
        self.abi = abi if isinstance(abi, ContractAbi) else parse_abi(abi)
        self.chain_id = chain_id
        self.logs = logs or LogQueryEngine(transport)

    def __repr__(self) -> str:
        return f"Contract({self.address})"

    def _function(self, fn: Union[AbiFunction, str]) -> AbiFunction:
        return fn if isinstance(fn, AbiFunction) else self.abi.function(fn)

    def _function_for(self, call: CallRequest) -> Optional[AbiFunction]:
        selector = call.data[:4]
        for fn in self.abi.functions:
            if fn.selector == selector:
                return fn
        return None

    # ------------------------------------------------------------------
    # Call construction
    # ------------------------------------------------------------------

    def build_call(
        self,
        fn: Union[AbiFunction, str],
        args: Sequence[Any] = (),
        value: int = 0,
    ) -> CallRequest:
        """
        Encode a call. Pure: same inputs give a byte-identical request.

        Raises:
            AbiMismatch: If the arguments do not fit the function
            ValidationError: If value is negative or sent to a non-payable function
        """
        function = self._function(fn)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError("value must be a non-negative integer (wei)", field="value")
        if value and not function.is_payable:
            raise ValidationError(f"{function.name} is not payable", field="value")
        return CallRequest(to=self.address, data=encode(function, args), value=value or None)

    def populate_transaction(self, call: CallRequest, from_: Optional[str] = None) -> TransactionRequest:
        """
        Turn a call into an unsigned transaction.

        Only ``to``/``data``/``value`` are set; nonce, gas limit and fees
        are filled by the lifecycle manager.
        """
        if from_ is not None:
            validate_address(from_, "from")
        return TransactionRequest(
            to=call.to,
            data=call.data,
            value=call.value or 0,
            chain_id=self.chain_id,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read_call(
        self,
        fn: Union[AbiFunction, str],
        args: Sequence[Any] = (),
        block: BlockIdentifier = "latest",
    ) -> Tuple[Any, ...]:
        """
        Run a read-only call and decode its return values.

        Raises:
            ExecutionReverted: If the call reverts
        """
        function = self._function(fn)
        call = self.build_call(function, args)
        raw = await self.transport.call("eth_call", [call.to_rpc(), to_block_param(block)])
        return decode_return(function, hex_to_bytes(raw, "eth_call result"))

    async def call(self, name: str, *args: Any, block: BlockIdentifier = "latest") -> Any:
        """Read by function name; single return values are unwrapped."""
        values = await self.read_call(name, args, block)
        return values[0] if len(values) == 1 else values

    async def simulate(self, call: CallRequest, from_: Optional[str] = None) -> Tuple[Any, ...]:
        """
        Execute without committing state to predict the outcome.

        Returns:
            Decoded return values when the selector belongs to this ABI,
            otherwise a 1-tuple with the raw return bytes

        Raises:
            ExecutionReverted: If the call would revert
        """
        sender = validate_address(from_, "from") if from_ else None
        raw = await self.transport.call("eth_call", [call.with_sender(sender).to_rpc(), "latest"])
        data = hex_to_bytes(raw, "eth_call result")
        function = self._function_for(call)
        if function is None:
            return (data,)
        return decode_return(function, data)

    async def estimate_gas(self, call: CallRequest, from_: Optional[str] = None) -> int:
        """
        Ask the node for a gas estimate (no safety margin applied).

        Raises:
            GasEstimationFailed: If the call would revert
        """
        sender = validate_address(from_, "from") if from_ else None
        try:
            raw = await self.transport.call("eth_estimateGas", [call.with_sender(sender).to_rpc()])
        except ExecutionReverted as exc:
            _logger.debug("Gas estimation reverted", extra={"reason": exc.reason})
            raise GasEstimationFailed(exc) from exc
        return to_int(raw, "eth_estimateGas result")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def event_filter(self, event: str, *indexed_values: Any) -> LogFilter:
        """Filter on this address for ``event`` with optional indexed values (None = any)."""
        descriptor = self.abi.event(event)
        return LogFilter(
            addresses=(self.address,),
            topics=build_topic_filter(descriptor, *indexed_values),
        )

    def events(
        self,
        event: str,
        from_block: int,
        to_block: int,
        *indexed_values: Any,
    ) -> EventStream:
        """Lazily decoded, restartable stream of ``event`` logs."""
        descriptor = self.abi.event(event)
        return self.logs.events(
            [descriptor],
            self.event_filter(event, *indexed_values),
            from_block,
            to_block,
        )

    async def query_events(
        self,
        event: str,
        from_block: int,
        to_block: int,
        *indexed_values: Any,
    ) -> List[DecodedEvent]:
        """Collect ``events(...)`` into a list."""
        return [item async for item in self.events(event, from_block, to_block, *indexed_values)]
