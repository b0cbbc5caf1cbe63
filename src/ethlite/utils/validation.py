"""
Validation utilities for ethlite.

Provides input validation functions for:
- Ethereum addresses
- Block numbers, block tags and block ranges
- 32-byte hashes and topics
- Hex byte strings

All validation functions raise ValidationError (or subclasses) on failure
and never touch the network.
"""

from __future__ import annotations

import re
from typing import Optional, Union

from eth_utils import is_checksum_address, to_bytes
from web3 import Web3

from ethlite.constants import BLOCK_TAGS, BYTES32_HEX_LENGTH
from ethlite.errors import InvalidAddress, InvalidRange, ValidationError

BlockIdentifier = Union[int, str]

HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")
ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
HASH_RE = re.compile(r"^0x[0-9a-fA-F]{%d}$" % BYTES32_HEX_LENGTH)


def _checksum_ok(address: str) -> bool:
    digits = address[2:]
    if digits in (digits.lower(), digits.upper()):
        return True
    return is_checksum_address(address)


def is_valid_address(address: object) -> bool:
    """Return True for a well-formed address with a valid (or absent) checksum."""
    return isinstance(address, str) and bool(ADDRESS_RE.match(address)) and _checksum_ok(address)


def validate_address(address: object, field_name: str = "address") -> str:
    """
    Validate Ethereum address format.

    Accepts all-lowercase, all-uppercase or correctly checksummed input.

    Args:
        address: Address to validate
        field_name: Field name for error messages

    Returns:
        Checksummed address

    Raises:
        InvalidAddress: If address is malformed or fails its checksum
    """
    if not address:
        raise InvalidAddress(address, field=field_name, reason=f"{field_name} is required")

    if not isinstance(address, str):
        raise InvalidAddress(address, field=field_name, reason="must be a string")

    if not ADDRESS_RE.match(address):
        raise InvalidAddress(
            address,
            field=field_name,
            reason="must be 0x followed by 40 hex characters",
        )

    if not _checksum_ok(address):
        raise InvalidAddress(address, field=field_name, reason="checksum mismatch")

    return Web3.to_checksum_address(address)


def validate_hash(value: object, field_name: str = "hash") -> str:
    """
    Validate a 32-byte hash (transaction hash, topic, block hash).

    Returns:
        Lowercase 0x-prefixed hash
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 32:
            raise ValidationError(f"{field_name} must be 32 bytes", field=field_name)
        return "0x" + bytes(value).hex()

    if not isinstance(value, str) or not HASH_RE.match(value):
        raise ValidationError(
            f"{field_name} must be 0x followed by 64 hex characters",
            field=field_name,
        )
    return value.lower()


def validate_hex_data(value: Union[str, bytes, bytearray, None], field_name: str = "data") -> bytes:
    """
    Convert calldata given as bytes or a 0x hex string into bytes.

    Raises:
        ValidationError: If the hex string is malformed or has odd length
    """
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if not isinstance(value, str) or not HEX_RE.match(value) or len(value) % 2:
        raise ValidationError(f"{field_name} must be an even-length 0x hex string", field=field_name)
    return to_bytes(hexstr=value)


def validate_block(block: BlockIdentifier, field_name: str = "block") -> BlockIdentifier:
    """
    Validate a block number or tag.

    Returns:
        The block number (int) or the tag (str)
    """
    if isinstance(block, bool):
        raise ValidationError(f"{field_name} cannot be boolean", field=field_name)
    if isinstance(block, int):
        if block < 0:
            raise ValidationError(f"{field_name} must be >= 0", field=field_name)
        return block
    if isinstance(block, str):
        if block in BLOCK_TAGS:
            return block
        if HEX_RE.match(block) and len(block) > 2:
            return int(block, 16)
    raise ValidationError(
        f"{field_name} must be a non-negative int or one of {BLOCK_TAGS}",
        field=field_name,
    )


def to_block_param(block: BlockIdentifier, field_name: str = "block") -> str:
    """Render a block number or tag as a JSON-RPC block parameter."""
    value = validate_block(block, field_name)
    return hex(value) if isinstance(value, int) else value


def validate_block_range(
    from_block: int,
    to_block: int,
    chunk_size: Optional[int] = None,
) -> None:
    """
    Validate a numeric inclusive block range.

    Raises:
        InvalidRange: If either bound is not a non-negative int, the range
            is inverted, or chunk_size is not positive
    """
    for bound in (from_block, to_block):
        if isinstance(bound, bool) or not isinstance(bound, int):
            raise InvalidRange(from_block, to_block, reason="bounds must be integers")
        if bound < 0:
            raise InvalidRange(from_block, to_block, reason="bounds must be >= 0")
    if from_block > to_block:
        raise InvalidRange(from_block, to_block, reason="from_block must be <= to_block")
    if chunk_size is not None and chunk_size < 1:
        raise InvalidRange(from_block, to_block, reason="chunk size must be positive")
