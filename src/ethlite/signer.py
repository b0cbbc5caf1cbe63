"""
Signer and per-address nonce tracking.

The chain nonce is read once (``eth_getTransactionCount(address, "pending")``);
after that allocations are tracked locally and the chain is not asked
again while any allocation is still in flight. Allocation and signing
happen under one ``asyncio.Lock`` so concurrent submissions from the same
signer never share a nonce.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from enum import Enum
from typing import AsyncIterator, Dict, Optional, Tuple

from eth_account import Account
from eth_utils import ValidationError as EthValidationError
from eth_utils import to_hex

from ethlite.errors import SignerError
from ethlite.transport.base import Transport
from ethlite.types import SignedTransaction, TransactionRequest, to_int
from ethlite.utils.logging import get_logger

_logger = get_logger(__name__)


class NonceStatus(str, Enum):
    IN_FLIGHT = "in_flight"
    CONFIRMED = "confirmed"


class NonceTracker:
    """
    Local nonce allocator for one address.

    Only in-flight nonces and confirmed nonces above the lowest in-flight
    one are kept in the status map; the contiguous confirmed run below
    that is collapsed into ``_confirmed_through``.
    """

    def __init__(self, transport: Transport, address: str) -> None:
        self._transport = transport
        self._address = address
        self._lock = asyncio.Lock()
        self._next: Optional[int] = None
        self._floor = 0
        self._confirmed_through = -1
        self._status: Dict[int, NonceStatus] = {}

    async def _load(self) -> int:
        raw = await self._transport.call("eth_getTransactionCount", [self._address, "pending"])
        nonce = to_int(raw, "eth_getTransactionCount result")
        _logger.debug("Loaded chain nonce", extra={"address": self._address, "nonce": nonce})
        self._next = nonce
        self._floor = nonce
        self._confirmed_through = nonce - 1
        self._status.clear()
        return nonce

    @asynccontextmanager
    async def allocate(self) -> AsyncIterator[int]:
        """
        Reserve the next nonce for the duration of the ``async with`` block.

        The reservation is committed (marked in flight) when the block
        exits normally and rolled back when it raises.
        """
        async with self._lock:
            nonce = await self._load() if self._next is None else self._next
            yield nonce
            self._next = nonce + 1
            self._status[nonce] = NonceStatus.IN_FLIGHT

    async def peek(self) -> int:
        """Next nonce that ``allocate`` would hand out."""
        async with self._lock:
            if self._next is None:
                return await self._load()
            return self._next

    async def resync(self) -> int:
        """
        Re-read the chain nonce.

        Raises:
            SignerError: While any allocation is still in flight
        """
        async with self._lock:
            if self.in_flight:
                raise SignerError(
                    "Cannot resync nonce while transactions are in flight",
                    details={"in_flight": list(self.in_flight)},
                )
            return await self._load()

    async def release(self, nonce: int) -> None:
        """
        Give back an in-flight nonce whose transaction the node refused.

        The newest allocation is rewound so the next ``allocate`` reuses
        it. An older one is only forgotten; later nonces are then stuck
        behind the gap and ``resync`` becomes possible once they settle.

        Raises:
            SignerError: ``nonce`` is not in flight
        """
        async with self._lock:
            if self._status.get(nonce) is not NonceStatus.IN_FLIGHT:
                raise SignerError(f"Nonce {nonce} is not in flight", details={"nonce": nonce})
            del self._status[nonce]
            if self._next == nonce + 1:
                self._next = nonce
            _logger.debug("Released nonce", extra={"address": self._address, "nonce": nonce})

    def mark_confirmed(self, nonce: int) -> None:
        status = self.status(nonce)
        if status is None:
            raise SignerError(f"Nonce {nonce} was never allocated", details={"nonce": nonce})
        if status is NonceStatus.CONFIRMED:
            return
        self._status[nonce] = NonceStatus.CONFIRMED
        while self._status.get(self._confirmed_through + 1) is NonceStatus.CONFIRMED:
            self._confirmed_through += 1
            del self._status[self._confirmed_through]

    def status(self, nonce: int) -> Optional[NonceStatus]:
        if self._floor <= nonce <= self._confirmed_through:
            return NonceStatus.CONFIRMED
        return self._status.get(nonce)

    @property
    def in_flight(self) -> Tuple[int, ...]:
        return tuple(sorted(n for n, s in self._status.items() if s is NonceStatus.IN_FLIGHT))


class Signer:
    """
    Holds one private key in memory and signs transactions with it.

    The key is never logged, serialized or included in error messages.

    Args:
        private_key: Hex private key (with or without 0x)
        transport: Used only to read the starting nonce
    """

    def __init__(self, private_key: str, transport: Transport) -> None:
        try:
            account = Account.from_key(private_key)
        except (ValueError, TypeError, EthValidationError) as exc:
            # Raised without chaining so the key cannot leak via the traceback
            raise SignerError(f"Invalid private key ({type(exc).__name__})") from None
        self._account = account
        self.address: str = account.address
        self.nonces = NonceTracker(transport, self.address)

    def __repr__(self) -> str:
        return f"Signer({self.address})"

    async def next_nonce(self) -> int:
        """Allocate and return the next nonce for this signer."""
        async with self.nonces.allocate() as nonce:
            return nonce

    async def release(self, nonce: int) -> None:
        await self.nonces.release(nonce)

    def mark_confirmed(self, nonce: int) -> None:
        self.nonces.mark_confirmed(nonce)

    @property
    def in_flight(self) -> Tuple[int, ...]:
        return self.nonces.in_flight

    def _sign(self, request: TransactionRequest) -> SignedTransaction:
        try:
            signed = self._account.sign_transaction(request.to_signable())
        except (TypeError, ValueError, EthValidationError) as exc:
            raise SignerError(f"Cannot sign transaction: {exc}") from exc

        raw = bytes(signed.raw_transaction)
        recovered = Account.recover_transaction(raw)
        if recovered != self.address:
            raise SignerError(
                "Recovered sender does not match signer",
                details={"expected": self.address, "recovered": recovered},
            )
        return SignedTransaction(
            raw=raw,
            hash=to_hex(signed.hash).lower(),
            sender=self.address,
            nonce=request.nonce,  # type: ignore[arg-type]
            request=request,
        )

    async def sign(self, request: TransactionRequest) -> SignedTransaction:
        """
        Sign ``request``.

        A request without a nonce gets the next one allocated atomically
        with signing; if signing fails the nonce is not consumed. A request
        that already carries a nonce is signed as-is (no allocation).

        Raises:
            SignerError: Incomplete request or sender-recovery mismatch
        """
        if request.nonce is not None:
            return self._sign(request)

        async with self.nonces.allocate() as nonce:
            signed = self._sign(replace(request, nonce=nonce))
        _logger.info(
            "Signed transaction",
            extra={"tx_hash": signed.hash, "nonce": nonce, "sender": self.address},
        )
        return signed
