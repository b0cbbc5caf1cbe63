"""Helpers for JSON-RPC hex quantities and data."""

from __future__ import annotations

from typing import Any, Optional

from eth_utils import to_bytes

from ethlite.errors import ProtocolViolation


def to_int(value: Any, field: str = "quantity") -> int:
    """Parse a hex quantity (``0x1a``), decimal string or int."""
    if isinstance(value, bool):
        raise ProtocolViolation(f"{field} must be a quantity, got a boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.startswith(("0x", "0X")) else int(value, 10)
        except ValueError as exc:
            raise ProtocolViolation(f"{field} is not a quantity: {value!r}") from exc
    raise ProtocolViolation(f"{field} must be a quantity, got {type(value).__name__}")


def to_optional_int(value: Any, field: str = "quantity") -> Optional[int]:
    return None if value is None else to_int(value, field)


def hex_to_bytes(value: Any, field: str = "data") -> bytes:
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        try:
            return to_bytes(hexstr=value)
        except ValueError as exc:
            raise ProtocolViolation(f"{field} is not hex data: {value[:20]!r}") from exc
    raise ProtocolViolation(f"{field} must be hex data, got {type(value).__name__}")


def to_quantity(value: int) -> str:
    """Render an int as a JSON-RPC quantity."""
    return hex(value)
