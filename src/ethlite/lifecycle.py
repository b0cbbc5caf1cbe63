"""
Transaction lifecycle manager.

Drives one write submission through::

    BUILT -> SIMULATED -> ESTIMATED -> SIGNED -> SUBMITTED -> CONFIRMED
                                                          \\-> REVERTED | DROPPED | REPLACED

Every step takes a ``Submission`` and returns a new one. Chain-level
outcomes (revert, estimation failure, timeout, replacement, provider
errors) are recorded on the result instead of raised, so callers inspect
``Submission.ok`` / ``Submission.error`` before going on. Calling a step
on a submission in the wrong state raises ``InvalidStateTransition``.

A nonce is reserved only in ``sign``; any failure before that leaves the
signer untouched. After signing the nonce stays in flight until a
receipt (or a replacement) is seen. A broadcast the node refuses outright
gives the nonce back; a transport failure during broadcast does not,
since the transaction may already be in the mempool.

Example:
    >>> manager = TransactionLifecycleManager(client, client.signer)
    >>> sub = await manager.execute(token.build_call("transfer", [to, amount]))
    >>> if not sub.ok:
    ...     print(sub.state, sub.error)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, FrozenSet, Optional, Tuple

from ethlite.config import LifecycleConfig
from ethlite.errors import (
    EthLiteError,
    ExecutionReverted,
    GasEstimationFailed,
    InvalidStateTransition,
    ProtocolViolation,
    RpcError,
    TransactionReplaced,
    TransactionReverted,
    TransactionTimedOut,
    TransportUnavailable,
    ValidationError,
)
from ethlite.signer import NonceStatus, Signer
from ethlite.transport.base import Transport
from ethlite.types import (
    CallRequest,
    FeeEstimate,
    SignedTransaction,
    TransactionInfo,
    TransactionReceipt,
    TransactionRequest,
    hex_to_bytes,
    to_int,
)
from ethlite.utils.logging import LogContext, get_logger
from ethlite.utils.retry import RetryConfig, calculate_delay, retry_async
from ethlite.utils.validation import validate_address

if TYPE_CHECKING:
    from ethlite.client import Client

_logger = get_logger(__name__)

# Node replies meaning the exact same signed transaction is already in its pool
_ALREADY_KNOWN = ("already known", "known transaction", "already imported")


class SubmissionState(str, Enum):
    BUILT = "built"
    SIMULATED = "simulated"
    ESTIMATED = "estimated"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REVERTED = "reverted"
    DROPPED = "dropped"
    REPLACED = "replaced"
    FAILED = "failed"


TERMINAL_STATES: FrozenSet[SubmissionState] = frozenset(
    {
        SubmissionState.CONFIRMED,
        SubmissionState.REVERTED,
        SubmissionState.DROPPED,
        SubmissionState.REPLACED,
        SubmissionState.FAILED,
    }
)


@dataclass(frozen=True)
class Submission:
    """
    Immutable snapshot of one submission attempt.

    Attributes:
        request: Transaction as populated so far
        sender: Signer address
        state: Current lifecycle state
        signed: Signed transaction, once ``sign`` ran
        receipt: Receipt, once mined
        error: Failure recorded by the step that stopped the lifecycle
        history: States passed through, oldest first
        submitted_block: Chain head when the transaction was broadcast
        return_data: Raw ``eth_call`` output from ``simulate``
    """

    request: TransactionRequest
    sender: str
    state: SubmissionState = SubmissionState.BUILT
    signed: Optional[SignedTransaction] = None
    receipt: Optional[TransactionReceipt] = None
    error: Optional[EthLiteError] = None
    history: Tuple[SubmissionState, ...] = (SubmissionState.BUILT,)
    submitted_block: Optional[int] = None
    return_data: Optional[bytes] = None

    @property
    def tx_hash(self) -> Optional[str]:
        return self.signed.hash if self.signed else None

    @property
    def nonce(self) -> Optional[int]:
        return self.signed.nonce if self.signed else self.request.nonce

    @property
    def ok(self) -> bool:
        """False once any step recorded a failure."""
        return self.error is None

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def raise_for_error(self) -> "Submission":
        """Raise the recorded error, if any; otherwise return self."""
        if self.error is not None:
            raise self.error
        return self

    def advance(self, state: SubmissionState, **changes: Any) -> "Submission":
        return replace(self, state=state, history=self.history + (state,), **changes)

    def fail(self, state: SubmissionState, error: EthLiteError, **changes: Any) -> "Submission":
        return self.advance(state, error=error, **changes)


class TransactionLifecycleManager:
    """
    Runs submissions for one signer against one client.

    Args:
        client: Client context (transport, network, chain reads)
        signer: Signer that owns the nonces
        config: Lifecycle settings (gas margin, confirmations, polling)
    """

    def __init__(
        self,
        client: "Client",
        signer: Signer,
        config: Optional[LifecycleConfig] = None,
    ) -> None:
        self.client = client
        self.signer = signer
        self.config = config or LifecycleConfig()
        self._receipt_retry = RetryConfig(retryable_errors=(TransportUnavailable,))

    @property
    def transport(self) -> Transport:
        return self.client.transport

    @staticmethod
    def _require(sub: Submission, step: str, *allowed: SubmissionState) -> None:
        if sub.state not in allowed:
            raise InvalidStateTransition(
                step=step,
                state=sub.state.value,
                allowed=[s.value for s in allowed],
            )

    @staticmethod
    def _signed(sub: Submission, step: str) -> SignedTransaction:
        if sub.signed is None:
            raise InvalidStateTransition(step=step, state=sub.state.value, allowed=["signed transaction"])
        return sub.signed

    def _call_for(self, sub: Submission) -> CallRequest:
        return sub.request.to_call(sub.sender)

    # ------------------------------------------------------------------
    # Build / simulate / estimate
    # ------------------------------------------------------------------

    def build(
        self,
        call: CallRequest,
        *,
        nonce: Optional[int] = None,
        gas_limit: Optional[int] = None,
        fees: Optional[FeeEstimate] = None,
    ) -> Submission:
        """
        Start a submission from a call.

        ``nonce``, ``gas_limit`` and ``fees`` are caller overrides; without
        them the manager allocates and estimates.
        """
        to = validate_address(call.to, "to")
        if nonce is not None and (isinstance(nonce, bool) or not isinstance(nonce, int) or nonce < 0):
            raise ValidationError("nonce must be a non-negative integer", field="nonce")
        if gas_limit is not None and gas_limit > self.config.max_gas_limit:
            raise ValidationError(
                f"Gas limit ({gas_limit}) exceeds maximum ({self.config.max_gas_limit})",
                field="gas_limit",
            )
        request = TransactionRequest(
            to=to,
            data=call.data,
            value=call.value or 0,
            chain_id=self.client.network.chain_id,
            nonce=nonce,
            gas_limit=gas_limit,
        )
        if fees is not None:
            request = request.with_fees(fees)
        return Submission(request=request, sender=self.signer.address)

    async def simulate(self, sub: Submission) -> Submission:
        """Dry-run the call; a revert stops the lifecycle before any gas or nonce is spent."""
        self._require(sub, "simulate", SubmissionState.BUILT)
        try:
            raw = await self.transport.call("eth_call", [self._call_for(sub).to_rpc(), "latest"])
        except ExecutionReverted as exc:
            _logger.info("Simulation reverted", extra={"reason": exc.reason})
            return sub.fail(SubmissionState.FAILED, exc)
        except (RpcError, TransportUnavailable) as exc:
            return sub.fail(SubmissionState.FAILED, exc)
        return sub.advance(SubmissionState.SIMULATED, return_data=hex_to_bytes(raw, "eth_call result"))

    async def estimate(self, sub: Submission) -> Submission:
        """
        Fill gas limit (estimate * margin, capped) and fee fields.

        Caller-supplied gas limit or fees are kept as they are.
        """
        self._require(sub, "estimate", SubmissionState.BUILT, SubmissionState.SIMULATED)
        request = sub.request
        try:
            if request.gas_limit is None:
                raw = await self.transport.call("eth_estimateGas", [self._call_for(sub).to_rpc()])
                estimated = to_int(raw, "eth_estimateGas result")
                if estimated > self.config.max_gas_limit:
                    return sub.fail(
                        SubmissionState.FAILED,
                        ValidationError(
                            f"Estimated gas ({estimated}) exceeds maximum ({self.config.max_gas_limit})",
                            field="gas_limit",
                        ),
                    )
                gas_limit = min(int(estimated * self.config.gas_margin), self.config.max_gas_limit)
                request = replace(request, gas_limit=gas_limit)
            if not request.has_fees:
                fees = await self.client.get_fee_estimate(self.config.max_fee_multiplier)
                request = request.with_fees(fees)
        except ExecutionReverted as exc:
            _logger.info("Gas estimation reverted", extra={"reason": exc.reason})
            return sub.fail(SubmissionState.FAILED, GasEstimationFailed(exc))
        except (RpcError, TransportUnavailable) as exc:
            return sub.fail(SubmissionState.FAILED, exc)

        _logger.debug(
            "Estimated transaction",
            extra={"gas_limit": request.gas_limit, "sender": sub.sender},
        )
        return sub.advance(SubmissionState.ESTIMATED, request=request)

    # ------------------------------------------------------------------
    # Sign / send
    # ------------------------------------------------------------------

    async def sign(self, sub: Submission) -> Submission:
        """Reserve a nonce (unless one was supplied) and sign."""
        self._require(sub, "sign", SubmissionState.ESTIMATED)
        signed = await self.signer.sign(sub.request)
        return sub.advance(SubmissionState.SIGNED, signed=signed, request=signed.request)

    async def send(self, sub: Submission) -> Submission:
        """Broadcast the signed transaction and record the chain head."""
        self._require(sub, "send", SubmissionState.SIGNED)
        signed = self._signed(sub, "send")

        with LogContext(tx_hash=signed.hash, nonce=signed.nonce):
            try:
                head = await self.client.block_number()
            except (RpcError, TransportUnavailable) as exc:
                await self._rollback(signed.nonce)
                return sub.fail(SubmissionState.FAILED, exc)
            try:
                returned = await self.transport.call("eth_sendRawTransaction", [signed.raw_hex])
            except (ProtocolViolation, TransportUnavailable) as exc:
                # The node may still have the transaction
                return sub.fail(SubmissionState.FAILED, exc)
            except RpcError as exc:
                if isinstance(exc, ExecutionReverted) or not any(
                    marker in exc.rpc_message.lower() for marker in _ALREADY_KNOWN
                ):
                    await self._rollback(signed.nonce)
                    return sub.fail(SubmissionState.FAILED, exc)
                returned = signed.hash

            if not isinstance(returned, str) or returned.lower() != signed.hash:
                return sub.fail(
                    SubmissionState.FAILED,
                    ProtocolViolation(
                        f"Node returned hash {returned!r} for transaction {signed.hash}",
                        method="eth_sendRawTransaction",
                    ),
                )
            _logger.info("Submitted transaction", extra={"block": head})
        return sub.advance(SubmissionState.SUBMITTED, submitted_block=head)

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    def _poll_delay(self, attempt: int) -> float:
        exponential = self.config.poll_backoff == "exponential"
        return calculate_delay(
            attempt,
            RetryConfig(
                base_delay_ms=int(self.config.poll_interval_seconds * 1000),
                max_delay_ms=int(self.config.max_poll_interval_seconds * 1000),
                jitter=False,
                exponential_base=2.0 if exponential else 1.0,
            ),
        )

    async def _receipt(self, tx_hash: str) -> Optional[TransactionReceipt]:
        return await retry_async(
            lambda: self.client.get_transaction_receipt(tx_hash),
            self._receipt_retry,
        )

    def _release(self, nonce: int) -> None:
        if self.signer.nonces.status(nonce) is not None:
            self.signer.mark_confirmed(nonce)

    async def _rollback(self, nonce: int) -> None:
        # The node refused the transaction, so the nonce was never used
        if self.signer.nonces.status(nonce) is NonceStatus.IN_FLIGHT:
            await self.signer.release(nonce)
            _logger.info("Rejected transaction; nonce released")

    async def _find_replacement(self, sub: Submission) -> Optional[str]:
        """Hash of a mined transaction from the sender reusing our nonce, if found."""
        scan = self.config.replacement_scan_blocks
        if scan == 0:
            return None
        latest = await self.client.block_number()
        first = max(latest - scan + 1, sub.submitted_block or 0, 0)
        sender = sub.sender.lower()
        for number in range(latest, first - 1, -1):
            block = await self.client.get_block(number, full_transactions=True)
            if block is None:
                continue
            for tx in block.transactions:
                if (
                    isinstance(tx, TransactionInfo)
                    and tx.from_.lower() == sender
                    and tx.nonce == sub.nonce
                    and tx.hash != sub.tx_hash
                ):
                    return tx.hash
        return None

    async def _check_replaced(self, sub: Submission) -> Optional[Submission]:
        signed = self._signed(sub, "wait for")
        nonce = signed.nonce
        mined = await self.client.get_transaction_count(sub.sender, "latest")
        if mined <= nonce:
            return None
        # The nonce is used; our receipt may have landed since the last poll
        if await self._receipt(signed.hash) is not None:
            return None
        replacement = await self._find_replacement(sub)
        self._release(nonce)
        _logger.warning("Transaction replaced", extra={"replacement_hash": replacement})
        return sub.fail(
            SubmissionState.REPLACED,
            TransactionReplaced(tx_hash=signed.hash, nonce=nonce, replacement_hash=replacement),
        )

    async def _sleep(self, delay: float, cancel: Optional[asyncio.Event]) -> None:
        if cancel is None:
            await asyncio.sleep(delay)
            return
        try:
            await asyncio.wait_for(cancel.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def wait_for_confirmation(
        self,
        sub: Submission,
        *,
        confirmations: Optional[int] = None,
        timeout: Optional[float] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Submission:
        """
        Poll until the transaction is confirmed, reverted, replaced or dropped.

        Confirmed means a successful receipt with
        ``latest - receipt.block_number + 1 >= confirmations``. A receipt
        that disappears again (reorg) resets the wait. Setting ``cancel``
        stops polling and returns ``sub`` unchanged.

        Args:
            sub: Submission in state SUBMITTED
            confirmations: Overrides ``config.confirmations``
            timeout: Seconds before reporting DROPPED; overrides ``config.timeout_seconds``
            cancel: Event that stops polling when set
        """
        self._require(sub, "wait for", SubmissionState.SUBMITTED)
        required = confirmations if confirmations is not None else self.config.confirmations
        if required < 1:
            raise ValidationError("confirmations must be >= 1", field="confirmations")
        budget = timeout if timeout is not None else self.config.timeout_seconds
        signed = self._signed(sub, "wait for")
        tx_hash, nonce = signed.hash, signed.nonce

        loop = asyncio.get_running_loop()
        deadline = loop.time() + budget
        seen_block: Optional[int] = None
        attempt = 0

        with LogContext(tx_hash=tx_hash, nonce=nonce):
            while True:
                if cancel is not None and cancel.is_set():
                    _logger.info("Confirmation polling cancelled")
                    return sub

                try:
                    receipt = await self._receipt(tx_hash)
                    if receipt is not None:
                        seen_block = receipt.block_number
                        latest = await self.client.block_number()
                        if latest - receipt.block_number + 1 >= required:
                            return self._finish(sub, receipt)
                    else:
                        if seen_block is not None:
                            _logger.warning("Receipt disappeared; block reorganized", extra={"block": seen_block})
                            seen_block = None
                        replaced = await self._check_replaced(sub)
                        if replaced is not None:
                            return replaced
                except (RpcError, TransportUnavailable) as exc:
                    return sub.fail(SubmissionState.FAILED, exc)

                remaining = deadline - loop.time()
                if remaining <= 0:
                    _logger.warning("No receipt before timeout", extra={"timeout_s": budget})
                    return sub.fail(
                        SubmissionState.DROPPED,
                        TransactionTimedOut(tx_hash=tx_hash, nonce=nonce, timeout_seconds=budget),
                    )
                await self._sleep(min(self._poll_delay(attempt), remaining), cancel)
                attempt += 1

    def _finish(self, sub: Submission, receipt: TransactionReceipt) -> Submission:
        signed = self._signed(sub, "finish")
        self._release(signed.nonce)
        if receipt.succeeded:
            _logger.info(
                "Transaction confirmed",
                extra={"block": receipt.block_number, "gas_used": receipt.gas_used},
            )
            return sub.advance(SubmissionState.CONFIRMED, receipt=receipt)
        _logger.info("Transaction reverted on-chain", extra={"block": receipt.block_number})
        return sub.fail(
            SubmissionState.REVERTED,
            TransactionReverted(tx_hash=signed.hash, receipt=receipt),
            receipt=receipt,
        )

    # ------------------------------------------------------------------
    # Whole lifecycle
    # ------------------------------------------------------------------

    async def execute(
        self,
        call: CallRequest,
        *,
        simulate: Optional[bool] = None,
        confirmations: Optional[int] = None,
        timeout: Optional[float] = None,
        cancel: Optional[asyncio.Event] = None,
        nonce: Optional[int] = None,
        gas_limit: Optional[int] = None,
        fees: Optional[FeeEstimate] = None,
    ) -> Submission:
        """
        Build, simulate (optional), estimate, sign, send and confirm.

        Stops at the first step that records an error and returns that
        submission.
        """
        sub = self.build(call, nonce=nonce, gas_limit=gas_limit, fees=fees)
        run_simulation = self.config.simulate if simulate is None else simulate
        if run_simulation:
            sub = await self.simulate(sub)
            if not sub.ok:
                return sub
        sub = await self.estimate(sub)
        if not sub.ok:
            return sub
        sub = await self.sign(sub)
        sub = await self.send(sub)
        if not sub.ok:
            return sub
        return await self.wait_for_confirmation(
            sub,
            confirmations=confirmations,
            timeout=timeout,
            cancel=cancel,
        )
