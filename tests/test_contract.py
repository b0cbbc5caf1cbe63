"""
Tests for the contract facade.

Tests cover:
- Pure call construction
- Reads against a fake node
- Simulation and gas estimation (including reverts)
- Transaction population (no nonce, gas or fees)
- Event filters
"""

import eth_abi
import pytest

from ethlite import Contract
from ethlite.errors import (
    AbiMismatch,
    AbiTruncated,
    ExecutionReverted,
    GasEstimationFailed,
    InvalidAddress,
    ValidationError,
)
from ethlite.tokens import ERC20_ABI
from ethlite.types import CallRequest

from tests.fake_node import CHAIN_ID, HOLDER, RECIPIENT, SENDER, TOKEN, FakeChain, address_topic

VAULT_ABI = ERC20_ABI + [
    "function deposit() payable",
    "function info() view returns (uint256 total, address owner)",
]


@pytest.fixture
def token(chain: FakeChain) -> Contract:
    return Contract(chain, TOKEN, VAULT_ABI, chain_id=CHAIN_ID)


# =============================================================================
# Call Construction
# =============================================================================


class TestBuildCall:
    """Tests for build_call and populate_transaction."""

    def test_build_call_is_pure(self, token: Contract, chain: FakeChain) -> None:
        """Same inputs give the same request and no network traffic."""
        first = token.build_call("transfer", [RECIPIENT, 10**6])
        second = token.build_call(token.abi.function("transfer"), [RECIPIENT, 10**6])

        assert first == second
        assert first.to == TOKEN
        assert first.data[:4].hex() == "a9059cbb"
        assert first.value is None
        assert chain.requests == []

    def test_value_on_payable(self, token: Contract) -> None:
        """Payable functions accept value."""
        call = token.build_call("deposit", value=10**15)
        assert call.value == 10**15
        assert call.to_rpc()["value"] == hex(10**15)

    def test_value_on_nonpayable_rejected(self, token: Contract) -> None:
        """Sending value to a nonpayable function is a caller error."""
        with pytest.raises(ValidationError):
            token.build_call("transfer", [RECIPIENT, 1], value=1)

    def test_negative_value_rejected(self, token: Contract) -> None:
        """Negative value is rejected."""
        with pytest.raises(ValidationError):
            token.build_call("deposit", value=-1)

    def test_bad_arguments(self, token: Contract) -> None:
        """Argument errors surface as AbiMismatch before any I/O."""
        with pytest.raises(AbiMismatch):
            token.build_call("transfer", [RECIPIENT])

    def test_populate_leaves_lifecycle_fields_empty(self, token: Contract) -> None:
        """populate_transaction fills to/data/value/chain_id only."""
        call = token.build_call("deposit", value=5)
        tx = token.populate_transaction(call, SENDER)

        assert (tx.to, tx.data, tx.value, tx.chain_id) == (TOKEN, call.data, 5, CHAIN_ID)
        assert tx.nonce is None
        assert tx.gas_limit is None
        assert not tx.has_fees

    def test_invalid_contract_address(self, chain: FakeChain) -> None:
        """The contract address is validated on construction."""
        with pytest.raises(InvalidAddress):
            Contract(chain, "0x1234", ERC20_ABI)


# =============================================================================
# Reads
# =============================================================================


class TestReads:
    """Tests for read_call / call."""

    @pytest.mark.asyncio
    async def test_read_call(self, token: Contract, chain: FakeChain) -> None:
        """eth_call output is decoded with the function outputs."""
        balance_of = token.abi.function("balanceOf")
        chain.respond(TOKEN, balance_of, 1234)

        assert await token.read_call(balance_of, [HOLDER]) == (1234,)

        method, params = chain.requests[-1]
        assert method == "eth_call"
        assert params[1] == "latest"
        assert "from" not in params[0]

    @pytest.mark.asyncio
    async def test_call_unwraps_single_value(self, token: Contract, chain: FakeChain) -> None:
        """call() returns a bare value for single outputs and a tuple otherwise."""
        chain.respond(TOKEN, token.abi.function("symbol"), "USDC")
        chain.respond(TOKEN, token.abi.function("info"), 7, HOLDER)

        assert await token.call("symbol") == "USDC"
        assert await token.call("info") == (7, HOLDER)

    @pytest.mark.asyncio
    async def test_block_number_param(self, token: Contract, chain: FakeChain) -> None:
        """Historic reads pass the block as a hex quantity."""
        chain.respond(TOKEN, token.abi.function("totalSupply"), 1)

        await token.call("totalSupply", block=16)

        assert chain.requests[-1][1][1] == "0x10"

    @pytest.mark.asyncio
    async def test_empty_return_is_truncated(self, token: Contract) -> None:
        """An address without code returns 0x, which cannot be decoded."""
        with pytest.raises(AbiTruncated):
            await token.call("totalSupply")

    @pytest.mark.asyncio
    async def test_read_revert(self, token: Contract, chain: FakeChain) -> None:
        """Reverts propagate as ExecutionReverted."""
        chain.revert(TOKEN, token.abi.function("totalSupply"), "paused")

        with pytest.raises(ExecutionReverted) as exc_info:
            await token.call("totalSupply")

        assert exc_info.value.reason == "paused"


# =============================================================================
# Simulation and Estimation
# =============================================================================


class TestSimulateEstimate:
    """Tests for simulate and estimate_gas."""

    @pytest.mark.asyncio
    async def test_simulate_decodes(self, token: Contract, chain: FakeChain) -> None:
        """A known selector is decoded; the sender is passed as from."""
        transfer = token.abi.function("transfer")
        chain.respond(TOKEN, transfer, True)

        result = await token.simulate(token.build_call(transfer, [RECIPIENT, 1]), SENDER)

        assert result == (True,)
        assert chain.requests[-1][1][0]["from"] == SENDER

    @pytest.mark.asyncio
    async def test_simulate_unknown_selector(self, token: Contract, chain: FakeChain) -> None:
        """Calls this ABI does not know return raw bytes."""
        raw = await token.simulate(CallRequest(to=TOKEN, data=b"\x01\x02\x03\x04"))
        assert raw == (b"",)

    @pytest.mark.asyncio
    async def test_simulate_revert(self, token: Contract, chain: FakeChain) -> None:
        """A reverting simulation raises with the reason."""
        transfer = token.abi.function("transfer")
        chain.revert(TOKEN, transfer, "insufficient balance")

        with pytest.raises(ExecutionReverted, match="insufficient balance"):
            await token.simulate(token.build_call(transfer, [RECIPIENT, 1]), SENDER)

    @pytest.mark.asyncio
    async def test_estimate_gas(self, token: Contract, chain: FakeChain) -> None:
        """The raw node estimate is returned without margin."""
        chain.gas_estimate = 51_234
        call = token.build_call("transfer", [RECIPIENT, 1])

        assert await token.estimate_gas(call, SENDER) == 51_234

    @pytest.mark.asyncio
    async def test_estimate_gas_revert(self, token: Contract, chain: FakeChain) -> None:
        """A reverting estimate raises GasEstimationFailed wrapping the revert."""
        transfer = token.abi.function("transfer")
        chain.revert(TOKEN, transfer, "insufficient balance")

        with pytest.raises(GasEstimationFailed) as exc_info:
            await token.estimate_gas(token.build_call(transfer, [RECIPIENT, 1]), SENDER)

        assert exc_info.value.reason == "insufficient balance"
        assert isinstance(exc_info.value.cause, ExecutionReverted)
        assert exc_info.value.__cause__ is exc_info.value.cause


# =============================================================================
# Events
# =============================================================================


class TestEvents:
    """Tests for event filters and queries."""

    def test_event_filter(self, token: Contract) -> None:
        """Indexed values become topics; trailing wildcards are trimmed."""
        transfer = token.abi.event("Transfer")

        assert token.event_filter("Transfer").topics == (transfer.topic,)
        flt = token.event_filter("Transfer", None, HOLDER)
        assert flt.addresses == (TOKEN,)
        assert flt.topics == (transfer.topic, None, address_topic(HOLDER))

    def test_alternatives(self, token: Contract) -> None:
        """A list of values matches any of them."""
        flt = token.event_filter("Transfer", [HOLDER, RECIPIENT])
        assert flt.topics[1] == (address_topic(HOLDER), address_topic(RECIPIENT))

    def test_too_many_indexed_values(self, token: Contract) -> None:
        """More values than indexed parameters is an AbiMismatch."""
        with pytest.raises(AbiMismatch):
            token.event_filter("Transfer", HOLDER, RECIPIENT, 5)

    @pytest.mark.asyncio
    async def test_query_events(self, token: Contract, chain: FakeChain) -> None:
        """Matching logs are decoded in block order."""
        transfer = token.abi.event("Transfer")
        amount = eth_abi.encode(["uint256"], [25])
        chain.add_log(12, [transfer.topic, address_topic(HOLDER), address_topic(RECIPIENT)], amount)
        chain.add_log(11, [transfer.topic, address_topic(RECIPIENT), address_topic(HOLDER)], amount)
        chain.add_log(13, [token.abi.event("Approval").topic, address_topic(HOLDER), address_topic(RECIPIENT)], amount)

        events = await token.query_events("Transfer", 10, 20)

        assert [e.log.block_number for e in events] == [11, 12]
        assert events[1]["from"] == HOLDER
        assert events[1]["value"] == 25
        assert events[1].name == "Transfer"
