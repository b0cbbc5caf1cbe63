"""Transport interface consumed by every component that talks to a node."""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """
    Single-shot JSON-RPC request/response channel.

    Implementations never retry. They raise TransportUnavailable for
    connection-level failures, ExecutionReverted for revert payloads and
    RpcError for any other JSON-RPC error object.
    """

    async def call(self, method: str, params: Sequence[Any] = ()) -> Any:
        ...
