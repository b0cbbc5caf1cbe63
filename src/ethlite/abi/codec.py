"""
ABI codec.

Encodes typed arguments into call data and decodes return data, revert
payloads and event logs. The head/tail layout itself is delegated to
``eth_abi``; this module owns the descriptor checks (argument count,
minimum payload length, topic count) and maps eth_abi's exceptions onto
AbiMismatch / AbiTruncated.

Example:
    >>> fn = parse_function("function balanceOf(address) view returns (uint256)")
    >>> data = encode(fn, ["0x365a8b3f57A650DE13f145263E3a5B40c43d3bCd"])
    >>> data[:4].hex()
    '70a08231'
"""

from __future__ import annotations

import re
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import eth_abi
from eth_abi.exceptions import DecodingError, EncodingError, InsufficientDataBytes
from eth_utils import keccak, to_bytes, to_checksum_address

from ethlite.abi.parser import split_top_level
from ethlite.abi.types import AbiEvent, AbiFunction
from ethlite.constants import (
    ABI_SELECTOR_LENGTH,
    ABI_WORD_LENGTH,
    PANIC_REASONS,
    PANIC_SELECTOR,
    REVERT_SELECTOR,
)
from ethlite.errors import AbiMismatch, AbiTruncated

HexOrBytes = Union[str, bytes, bytearray]

_FIXED_ARRAY_RE = re.compile(r"^(.*)\[(\d+)\]$")
_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")


# ------------------------------------------------------------------
# Type helpers
# ------------------------------------------------------------------

def is_dynamic(type_str: str) -> bool:
    """Return True when the type is encoded in the tail (offset in the head)."""
    if type_str in ("string", "bytes") or type_str.endswith("[]"):
        return True
    match = _FIXED_ARRAY_RE.match(type_str)
    if match:
        return is_dynamic(match.group(1))
    if type_str.startswith("("):
        return any(is_dynamic(t) for t in split_top_level(type_str[1:-1]))
    return False


def head_size(type_str: str) -> int:
    """Bytes the type occupies in the head of an encoded argument block."""
    if is_dynamic(type_str):
        return ABI_WORD_LENGTH
    match = _FIXED_ARRAY_RE.match(type_str)
    if match:
        return int(match.group(2)) * head_size(match.group(1))
    if type_str.startswith("("):
        return sum(head_size(t) for t in split_top_level(type_str[1:-1]))
    return ABI_WORD_LENGTH


def _to_bytes(data: HexOrBytes, what: str) -> bytes:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    if isinstance(data, str) and _HEX_RE.match(data) and len(data) % 2 == 0:
        return to_bytes(hexstr=data)
    raise AbiMismatch(f"{what} must be bytes or an even-length 0x hex string")


def _normalize(type_str: str, value: Any) -> Any:
    """Accept hex strings for bytes types and recurse into arrays/tuples."""
    if type_str.endswith("]"):
        inner = type_str[: type_str.rindex("[")]
        if not isinstance(value, (list, tuple)):
            raise AbiMismatch(f"Expected a sequence for {type_str}, got {type(value).__name__}")
        return [_normalize(inner, item) for item in value]
    if type_str.startswith("("):
        component_types = split_top_level(type_str[1:-1])
        if isinstance(value, dict):
            raise AbiMismatch(f"Pass tuple values for {type_str} as a sequence, not a mapping")
        if not isinstance(value, (list, tuple)) or len(value) != len(component_types):
            raise AbiMismatch(
                f"Expected {len(component_types)} components for {type_str}",
                expected=len(component_types),
            )
        return tuple(_normalize(t, v) for t, v in zip(component_types, value))
    if type_str.startswith("bytes") and isinstance(value, str):
        return _to_bytes(value, f"{type_str} value")
    return value


# ------------------------------------------------------------------
# Selectors and topics
# ------------------------------------------------------------------

def function_selector(fn: AbiFunction) -> bytes:
    """First 4 bytes of keccak256 of the canonical signature."""
    return fn.selector


def event_topic(event: AbiEvent) -> str:
    """topic0 of the event as a 0x-prefixed hex string."""
    return event.topic


def encode_topic(type_str: str, value: Any) -> str:
    """
    Encode one indexed value as a 32-byte topic.

    Static values are ABI-encoded in a single word; ``string`` and
    ``bytes`` are stored as their keccak256 hash.
    """
    if type_str == "string":
        if not isinstance(value, str):
            raise AbiMismatch("string topic value must be str")
        return "0x" + keccak(text=value).hex()
    if type_str == "bytes":
        return "0x" + keccak(_to_bytes(value, "bytes topic value")).hex()
    if is_dynamic(type_str) or head_size(type_str) != ABI_WORD_LENGTH:
        raise AbiMismatch(f"Cannot build a topic filter for indexed {type_str}")
    return "0x" + encode_arguments([type_str], [value]).hex()


# ------------------------------------------------------------------
# Encoding
# ------------------------------------------------------------------

def encode_arguments(
    types: Sequence[str],
    args: Sequence[Any],
    *,
    name: Optional[str] = None,
) -> bytes:
    """
    Encode ``args`` as an ABI argument block (no selector).

    Raises:
        AbiMismatch: On count mismatch or a value that does not fit its type
    """
    if len(types) != len(args):
        raise AbiMismatch(
            f"Expected {len(types)} arguments, got {len(args)}",
            name=name,
            expected=len(types),
            actual=len(args),
        )
    normalized = [_normalize(t, v) for t, v in zip(types, args)]
    try:
        return eth_abi.encode(list(types), normalized)
    except EncodingError as exc:
        raise AbiMismatch(f"Cannot encode arguments: {exc}", name=name) from exc
    except (TypeError, ValueError) as exc:
        raise AbiMismatch(f"Cannot encode arguments: {exc}", name=name) from exc


def encode(fn: AbiFunction, args: Sequence[Any]) -> bytes:
    """Build call data: selector followed by the encoded arguments."""
    return fn.selector + encode_arguments(fn.input_types, args, name=fn.name)


# ------------------------------------------------------------------
# Decoding
# ------------------------------------------------------------------

def _checksummed(type_str: str, value: Any) -> Any:
    """Checksum every decoded address, including inside arrays and tuples."""
    if type_str.endswith("]"):
        inner = type_str[: type_str.rindex("[")]
        return tuple(_checksummed(inner, item) for item in value)
    if type_str.startswith("("):
        return tuple(_checksummed(t, v) for t, v in zip(split_top_level(type_str[1:-1]), value))
    if type_str == "address":
        return to_checksum_address(value)
    return value


def decode_arguments(
    types: Sequence[str],
    data: HexOrBytes,
    *,
    name: Optional[str] = None,
) -> Tuple[Any, ...]:
    """
    Decode an ABI argument block.

    Raises:
        AbiTruncated: If ``data`` is shorter than the declared types require
        AbiMismatch: If ``data`` is not a valid encoding of the types
    """
    raw = _to_bytes(data, "encoded data")
    required = sum(head_size(t) for t in types)
    if len(raw) < required:
        raise AbiTruncated(
            f"Need at least {required} bytes to decode {list(types)}, got {len(raw)}",
            name=name,
            required=required,
            actual=len(raw),
        )
    if not types:
        return ()
    try:
        decoded = eth_abi.decode(list(types), raw)
    except InsufficientDataBytes as exc:
        raise AbiTruncated(f"Encoded data truncated: {exc}", name=name, actual=len(raw)) from exc
    except (DecodingError, UnicodeDecodeError) as exc:
        raise AbiMismatch(f"Cannot decode data: {exc}", name=name) from exc
    return tuple(_checksummed(t, v) for t, v in zip(types, decoded))


def decode_return(fn: AbiFunction, data: HexOrBytes) -> Tuple[Any, ...]:
    """Decode ``eth_call`` return data according to the function's outputs."""
    return decode_arguments(fn.output_types, data, name=fn.name)


def decode_log(event: AbiEvent, log: Any) -> Dict[str, Any]:
    """
    Decode a log entry into ``{param_name: value}``.

    Indexed ``string``/``bytes``/array/tuple parameters cannot be recovered
    from their topic and are returned as the 32-byte hash.

    Args:
        event: Event descriptor
        log: Object with ``topics`` (sequence of 32-byte hex strings) and
            ``data`` (bytes or hex), e.g. ``ethlite.types.LogEntry``

    Raises:
        AbiTruncated: If the log has fewer topics than the event requires
        AbiMismatch: If topic0 belongs to a different event
    """
    topics = list(log.topics)
    if len(topics) < event.required_topics:
        raise AbiTruncated(
            f"{event.name} needs {event.required_topics} topics, log has {len(topics)}",
            name=event.name,
            required=event.required_topics,
            actual=len(topics),
        )
    if not event.anonymous:
        if topics[0].lower() != event.topic:
            raise AbiMismatch(f"Log topic0 {topics[0]} is not {event.signature}", name=event.name)
        topics = topics[1:]

    values: Dict[str, Any] = {}
    indexed_iter = iter(topics)
    data_values = iter(
        decode_arguments([p.type for p in event.data_inputs], log.data, name=event.name)
    )
    for position, param in enumerate(event.inputs):
        key = param.name or f"arg{position}"
        if param.indexed:
            topic = _to_bytes(next(indexed_iter), "topic")
            if is_dynamic(param.type) or head_size(param.type) != ABI_WORD_LENGTH:
                values[key] = topic
            else:
                values[key] = decode_arguments([param.type], topic, name=event.name)[0]
        else:
            values[key] = next(data_values)
    return values


def decode_revert_data(data: Optional[HexOrBytes]) -> Tuple[Optional[str], Optional[str]]:
    """
    Decode a revert payload.

    Returns:
        ``(reason, selector)``. ``Error(string)`` yields its message,
        ``Panic(uint256)`` a description of the panic code; custom errors
        yield ``(None, selector)``; empty or malformed data ``(None, None)``.
    """
    if data is None:
        return None, None
    try:
        raw = _to_bytes(data, "revert data")
    except AbiMismatch:
        return None, None
    if len(raw) < ABI_SELECTOR_LENGTH:
        return None, None

    selector = "0x" + raw[:ABI_SELECTOR_LENGTH].hex()
    body = raw[ABI_SELECTOR_LENGTH:]
    try:
        if selector == REVERT_SELECTOR:
            return decode_arguments(["string"], body)[0], selector
        if selector == PANIC_SELECTOR:
            code = decode_arguments(["uint256"], body)[0]
            return f"panic 0x{code:02x}: {PANIC_REASONS.get(code, 'unknown panic code')}", selector
    except (AbiMismatch, AbiTruncated):
        return None, selector
    return None, selector
