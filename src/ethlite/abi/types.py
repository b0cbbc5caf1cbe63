"""
Typed ABI descriptors.

Fragments are parsed once (see ``ethlite.abi.parser``) into these frozen
descriptors; encoding and decoding only ever look at them, never at the
original strings.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from eth_utils import keccak

from ethlite.errors import AbiMismatch


class Mutability(str, Enum):
    """Function state mutability."""

    PURE = "pure"
    VIEW = "view"
    NONPAYABLE = "nonpayable"
    PAYABLE = "payable"


@dataclass(frozen=True)
class AbiParam:
    """
    One function/event parameter.

    Attributes:
        name: Parameter name (may be empty)
        type: Canonical type string, tuples written as ``(t1,t2)``
        indexed: Event parameters only; stored in a topic instead of data
    """

    name: str
    type: str
    indexed: bool = False


@dataclass(frozen=True)
class AbiFunction:
    """Contract function descriptor."""

    name: str
    inputs: Tuple[AbiParam, ...] = ()
    outputs: Tuple[AbiParam, ...] = ()
    mutability: Mutability = Mutability.NONPAYABLE

    @property
    def signature(self) -> str:
        """Canonical signature, e.g. ``transfer(address,uint256)``."""
        return f"{self.name}({','.join(p.type for p in self.inputs)})"

    @property
    def selector(self) -> bytes:
        """First 4 bytes of keccak256(signature)."""
        return keccak(text=self.signature)[:4]

    @property
    def input_types(self) -> Tuple[str, ...]:
        return tuple(p.type for p in self.inputs)

    @property
    def output_types(self) -> Tuple[str, ...]:
        return tuple(p.type for p in self.outputs)

    @property
    def is_read_only(self) -> bool:
        return self.mutability in (Mutability.VIEW, Mutability.PURE)

    @property
    def is_payable(self) -> bool:
        return self.mutability is Mutability.PAYABLE


@dataclass(frozen=True)
class AbiEvent:
    """Contract event descriptor."""

    name: str
    inputs: Tuple[AbiParam, ...] = ()
    anonymous: bool = False

    @property
    def signature(self) -> str:
        """Canonical signature, e.g. ``Transfer(address,address,uint256)``."""
        return f"{self.name}({','.join(p.type for p in self.inputs)})"

    @property
    def topic(self) -> str:
        """topic0: full keccak256 of the signature, 0x-prefixed."""
        return "0x" + keccak(text=self.signature).hex()

    @property
    def indexed_inputs(self) -> Tuple[AbiParam, ...]:
        return tuple(p for p in self.inputs if p.indexed)

    @property
    def data_inputs(self) -> Tuple[AbiParam, ...]:
        return tuple(p for p in self.inputs if not p.indexed)

    @property
    def required_topics(self) -> int:
        """Number of topics a matching log must carry."""
        return len(self.indexed_inputs) + (0 if self.anonymous else 1)


@dataclass(frozen=True)
class ContractAbi:
    """
    All function and event descriptors of one contract.

    Lookups accept either a bare name or a full canonical signature;
    a bare name matching several overloads is rejected as ambiguous.
    """

    functions: Tuple[AbiFunction, ...] = ()
    events: Tuple[AbiEvent, ...] = ()

    def function(self, key: str) -> AbiFunction:
        """Look up a function by name or canonical signature."""
        return _lookup(self.functions, key, "function")

    def event(self, key: str) -> AbiEvent:
        """Look up an event by name or canonical signature."""
        return _lookup(self.events, key, "event")

    def event_by_topic(self, topic: str) -> Optional[AbiEvent]:
        """Return the non-anonymous event whose topic0 equals ``topic``."""
        topic = topic.lower()
        for event in self.events:
            if not event.anonymous and event.topic == topic:
                return event
        return None


def _lookup(items: Tuple[Any, ...], key: str, kind: str) -> Any:
    if "(" in key:
        for item in items:
            if item.signature == key.replace(" ", ""):
                return item
        raise AbiMismatch(f"Unknown {kind} signature: {key}", name=key)

    matches = [item for item in items if item.name == key]
    if not matches:
        raise AbiMismatch(f"Unknown {kind}: {key}", name=key)
    if len(matches) > 1:
        options = ", ".join(m.signature for m in matches)
        raise AbiMismatch(f"Ambiguous {kind} {key}; use one of: {options}", name=key)
    return matches[0]
