"""
JSON-RPC over HTTP(S).

One ``httpx.AsyncClient`` is held for the lifetime of the transport so
concurrent calls share a connection pool. Each request carries its own
id; a response whose id does not match is a protocol violation.
"""

from __future__ import annotations

import itertools
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlsplit

import httpx

from ethlite.abi.codec import decode_revert_data
from ethlite.constants import EXECUTION_REVERTED_CODE, JSONRPC_VERSION, PROVIDER_TIMEOUT_SECONDS
from ethlite.errors import (
    ExecutionReverted,
    ProtocolViolation,
    RpcError,
    TransportUnavailable,
)
from ethlite.utils.logging import get_logger

_logger = get_logger(__name__)

_HEX_DATA_RE = re.compile(r"^0x[0-9a-fA-F]*$")
_REASON_RE = re.compile(r"execution reverted:?\s*(.*)$", re.IGNORECASE | re.DOTALL)


def redact_endpoint(endpoint: str) -> str:
    """Strip path and query (where API keys live) from an endpoint URL."""
    parts = urlsplit(endpoint)
    if not parts.scheme or not parts.netloc:
        return endpoint
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return f"{parts.scheme}://{host}"


def _revert_payload(data: Any) -> Optional[str]:
    """Find the hex revert payload in ``error.data`` (a string, or nested in a dict)."""
    if isinstance(data, str):
        return data if _HEX_DATA_RE.match(data) else None
    if isinstance(data, Mapping):
        for key in ("data", "result", "originalError"):
            found = _revert_payload(data.get(key))
            if found:
                return found
    return None


def map_rpc_error(error: Any, method: Optional[str] = None) -> RpcError:
    """
    Translate a JSON-RPC error object into the matching exception.

    Errors with code 3, revert data or "revert" in the message become
    ExecutionReverted; everything else is RpcError.
    """
    if not isinstance(error, Mapping):
        return ProtocolViolation(f"Malformed JSON-RPC error object: {error!r}", method=method)

    code = error.get("code")
    message = str(error.get("message") or "")
    data = error.get("data")
    payload = _revert_payload(data)

    if code == EXECUTION_REVERTED_CODE or payload or "revert" in message.lower():
        reason, selector = decode_revert_data(payload)
        if reason is None and selector is None:
            match = _REASON_RE.search(message)
            if match and match.group(1).strip():
                reason = match.group(1).strip()
        return ExecutionReverted(
            reason,
            selector=selector,
            data=payload,
            rpc_code=code,
            method=method,
        )
    return RpcError(code, message, data=data, method=method)


class JsonRpcTransport:
    """
    httpx-backed JSON-RPC transport.

    Args:
        endpoint: HTTP(S) URL of the node
        timeout: Per-request timeout in seconds
        client: Optional pre-built ``httpx.AsyncClient`` (tests pass one
            with ``httpx.MockTransport``); it is not closed by ``aclose``
        headers: Extra HTTP headers (e.g. an API key header)

    Example:
        >>> async with JsonRpcTransport("https://sepolia.base.org") as rpc:
        ...     chain_id = int(await rpc.call("eth_chainId"), 16)
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = PROVIDER_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.endpoint = endpoint
        self._redacted = redact_endpoint(endpoint)
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers=headers,
        )
        self._ids = itertools.count(1)

    def __repr__(self) -> str:
        return f"JsonRpcTransport({self._redacted!r})"

    async def __aenter__(self) -> "JsonRpcTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _envelope(self, method: str, params: Sequence[Any]) -> Dict[str, Any]:
        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }

    async def _post(self, payload: Any, label: str) -> Any:
        try:
            response = await self._client.post(self.endpoint, json=payload)
        except httpx.TimeoutException as exc:
            raise TransportUnavailable(
                f"{label}: request timed out",
                endpoint=self._redacted,
            ) from exc
        except httpx.TransportError as exc:
            raise TransportUnavailable(
                f"{label}: {type(exc).__name__}: {exc}",
                endpoint=self._redacted,
            ) from exc

        if response.status_code == 429 or response.status_code >= 500:
            raise TransportUnavailable(
                f"{label}: HTTP {response.status_code}",
                endpoint=self._redacted,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise TransportUnavailable(
                f"{label}: HTTP {response.status_code} with non-JSON body",
                endpoint=self._redacted,
                status_code=response.status_code,
            ) from exc

        if response.status_code >= 400 and not (
            isinstance(body, (dict, list)) and body and _has_rpc_shape(body)
        ):
            raise TransportUnavailable(
                f"{label}: HTTP {response.status_code}",
                endpoint=self._redacted,
                status_code=response.status_code,
            )
        return body

    async def call(self, method: str, params: Sequence[Any] = ()) -> Any:
        """
        Issue one JSON-RPC request and return its ``result``.

        Raises:
            TransportUnavailable: Connection failure, timeout, HTTP 429/5xx, non-JSON body
            ExecutionReverted: The node reported a revert
            RpcError: Any other JSON-RPC error object
            ProtocolViolation: Response id mismatch or malformed envelope
        """
        request = self._envelope(method, params)
        _logger.debug("rpc request", extra={"rpc_method": method, "rpc_id": request["id"]})
        body = await self._post(request, method)

        if not isinstance(body, dict):
            raise ProtocolViolation(f"Expected a JSON object, got {type(body).__name__}", method=method)
        if body.get("id") != request["id"] and not (body.get("id") is None and "error" in body):
            _logger.warning(
                "Dropping response with unexpected id",
                extra={"rpc_method": method, "expected_id": request["id"], "got_id": body.get("id")},
            )
            raise ProtocolViolation(
                f"Response id {body.get('id')!r} does not match request id {request['id']}",
                method=method,
            )
        return _unwrap(body, method)

    async def call_batch(self, calls: Sequence[Tuple[str, Sequence[Any]]]) -> List[Any]:
        """
        Send several requests in one JSON array and return results in order.

        Responses are correlated by id. Unknown ids are logged and dropped;
        the first error object found (in request order) is raised.

        Raises:
            ProtocolViolation: If any request is left without a response
        """
        if not calls:
            return []
        requests = [self._envelope(method, params) for method, params in calls]
        by_id = {req["id"]: req for req in requests}
        _logger.debug("rpc batch", extra={"rpc_batch_size": len(requests)})
        body = await self._post(requests, "batch")

        if not isinstance(body, list):
            if isinstance(body, dict) and "error" in body:
                raise map_rpc_error(body["error"], "batch")
            raise ProtocolViolation(f"Expected a JSON array, got {type(body).__name__}", method="batch")

        responses: Dict[int, Mapping[str, Any]] = {}
        for item in body:
            item_id = item.get("id") if isinstance(item, Mapping) else None
            if item_id not in by_id:
                _logger.warning("Dropping batch response with unknown id", extra={"got_id": item_id})
                continue
            responses[item_id] = item

        missing = [req["method"] for req in requests if req["id"] not in responses]
        if missing:
            raise ProtocolViolation(f"No response for: {', '.join(missing)}", method="batch")
        return [_unwrap(responses[req["id"]], req["method"]) for req in requests]


def _has_rpc_shape(body: Any) -> bool:
    if isinstance(body, list):
        return all(isinstance(item, Mapping) and "jsonrpc" in item for item in body)
    return isinstance(body, Mapping) and ("result" in body or "error" in body)


def _unwrap(body: Mapping[str, Any], method: str) -> Any:
    if body.get("error") is not None:
        raise map_rpc_error(body["error"], method)
    if "result" not in body:
        raise ProtocolViolation("Response has neither result nor error", method=method)
    return body["result"]
