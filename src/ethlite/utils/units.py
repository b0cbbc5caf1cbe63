"""
Unit conversion helpers.

``parse_units``/``format_units`` work with any token decimals;
``to_wei``/``from_wei`` accept the named Ether denominations.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, localcontext
from typing import Union

from web3 import Web3

from ethlite.errors import ValidationError

Number = Union[int, str, Decimal]


def parse_units(value: Number, decimals: int) -> int:
    """
    Convert a human amount into base units.

    Example:
        >>> parse_units("0.001", 18)
        1000000000000000

    Raises:
        ValidationError: If the value has more fractional digits than decimals
    """
    if decimals < 0:
        raise ValidationError("decimals must be >= 0", field="decimals")
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"Not a number: {value!r}", field="value") from exc

    with localcontext() as ctx:
        ctx.prec = 100
        scaled = amount.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValidationError(
                f"{value} has more than {decimals} decimal places",
                field="value",
            )
        return int(scaled)


def format_units(value: int, decimals: int) -> str:
    """
    Convert base units into a human-readable decimal string.

    Example:
        >>> format_units(1500000, 6)
        '1.5'
    """
    if decimals < 0:
        raise ValidationError("decimals must be >= 0", field="decimals")
    with localcontext() as ctx:
        ctx.prec = 100
        text = format(Decimal(value).scaleb(-decimals), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def to_wei(value: Number, unit: str = "ether") -> int:
    """Convert an amount in ``unit`` (ether, gwei, ...) to wei."""
    return int(Web3.to_wei(Decimal(str(value)), unit))


def from_wei(value: int, unit: str = "ether") -> Decimal:
    """Convert wei to ``unit`` (ether, gwei, ...)."""
    return Decimal(Web3.from_wei(value, unit))
