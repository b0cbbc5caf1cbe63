"""
ERC-20 binding.

Example:
    >>> token = client.erc20("0x...")
    >>> meta = await token.metadata()
    >>> print(format_units(await token.balance_of(holder), meta.decimals), meta.symbol)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional

from ethlite.abi.parser import parse_abi
from ethlite.contract import Contract
from ethlite.lifecycle import Submission
from ethlite.logs import DecodedEvent
from ethlite.utils.units import format_units, parse_units
from ethlite.utils.validation import validate_address

if TYPE_CHECKING:
    from ethlite.client import Client

ERC20_ABI = [
    "function name() view returns (string)",
    "function symbol() view returns (string)",
    "function decimals() view returns (uint8)",
    "function totalSupply() view returns (uint256)",
    "function balanceOf(address owner) view returns (uint256)",
    "function allowance(address owner, address spender) view returns (uint256)",
    "function approve(address spender, uint256 value) returns (bool)",
    "function transfer(address to, uint256 value) returns (bool)",
    "event Transfer(address indexed from, address indexed to, uint256 value)",
    "event Approval(address indexed owner, address indexed spender, uint256 value)",
]

_ERC20 = parse_abi(ERC20_ABI)


@dataclass(frozen=True)
class TokenMetadata:
    name: str
    symbol: str
    decimals: int

    def format(self, amount: int) -> str:
        return format_units(amount, self.decimals)

    def parse(self, amount: Any) -> int:
        return parse_units(amount, self.decimals)


class ERC20:
    """
    Reads go straight through the contract facade; ``transfer`` and
    ``approve`` run through the client's lifecycle manager and return the
    final ``Submission``.
    """

    def __init__(self, client: "Client", address: str) -> None:
        self.client = client
        self.contract: Contract = client.contract(address, _ERC20)

    @property
    def address(self) -> str:
        return self.contract.address

    def __repr__(self) -> str:
        return f"ERC20({self.address})"

    async def metadata(self) -> TokenMetadata:
        """name, symbol and decimals, fetched concurrently."""
        name, symbol, decimals = await asyncio.gather(
            self.contract.call("name"),
            self.contract.call("symbol"),
            self.contract.call("decimals"),
        )
        return TokenMetadata(name=name, symbol=symbol, decimals=decimals)

    async def total_supply(self) -> int:
        return await self.contract.call("totalSupply")

    async def balance_of(self, owner: str) -> int:
        return await self.contract.call("balanceOf", validate_address(owner, "owner"))

    async def allowance(self, owner: str, spender: str) -> int:
        return await self.contract.call(
            "allowance",
            validate_address(owner, "owner"),
            validate_address(spender, "spender"),
        )

    async def transfer(self, to: str, amount: int, **overrides: Any) -> Submission:
        call = self.contract.build_call("transfer", [validate_address(to, "to"), amount])
        return await self.client.lifecycle.execute(call, **overrides)

    async def approve(self, spender: str, amount: int, **overrides: Any) -> Submission:
        call = self.contract.build_call("approve", [validate_address(spender, "spender"), amount])
        return await self.client.lifecycle.execute(call, **overrides)

    async def transfers(
        self,
        from_block: int,
        to_block: int,
        sender: Optional[str] = None,
        recipient: Optional[str] = None,
    ) -> List[DecodedEvent]:
        """Transfer events in the range, optionally filtered by sender and/or recipient."""
        return await self.contract.query_events(
            "Transfer",
            from_block,
            to_block,
            validate_address(sender, "sender") if sender else None,
            validate_address(recipient, "recipient") if recipient else None,
        )
