"""Conversions between ether decimal amounts and wei."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Union

from eth_utils import from_wei, to_wei

EtherAmount = Union[Decimal, str, int]


def parse_ether(amount: EtherAmount) -> Decimal:
    """Parse a user supplied ether amount ("0.05", Decimal, int)."""
    if isinstance(amount, float):
        raise TypeError("Pass ether amounts as str or Decimal, not float")
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid ether amount: {amount!r}") from exc
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid ether amount: {amount!r}")
    return value


def ether_to_wei(amount: EtherAmount) -> int:
    value = parse_ether(amount)
    wei = to_wei(value, "ether")
    if Decimal(wei) != value * Decimal(10) ** 18:
        raise ValueError(f"Ether amount {amount!r} has more than 18 decimal places")
    return int(wei)


def format_ether(wei: int) -> str:
    """Render wei as the shortest decimal ether string ("0.05", "1")."""
    value = Decimal(from_wei(int(wei), "ether"))
    if value == value.to_integral_value():
        return str(value.quantize(Decimal(1)))
    return format(value.normalize(), "f")
