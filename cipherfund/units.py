# cipherfund/units.py
"""
CipherFund: Amount Units

All monetary amounts travel as base-unit integers (wei) bounded by the
encrypted uint64 field the contracts store them in.

Usage:
    from cipherfund.units import parse_amount, MAX_UINT64

    wei = parse_amount("2.5")       # 2500000000000000000
    parse_amount("19")              # InvalidAmountError (> uint64)
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Union

from web3 import Web3

from .errors import InvalidAmountError


# =============================================================================
# Constants
# =============================================================================

MAX_UINT64 = 2**64 - 1      # 18446744073709551615 wei, ~18.44 ETH

Amount = Union[str, int, Decimal]


# =============================================================================
# Conversion
# =============================================================================

def parse_amount(amount: Amount, unit: str = "ether") -> int:
    """
    Convert a human amount into base units and range-check it.

    Strings and Decimals are interpreted in `unit` (ether by default).
    Plain ints are taken as base units already.

    Raises:
        InvalidAmountError: unparseable, <= 0, or above MAX_UINT64
    """
    if isinstance(amount, bool):
        raise InvalidAmountError(f"Invalid amount: {amount!r}")

    if isinstance(amount, int):
        wei = amount
    else:
        try:
            value = Decimal(str(amount).strip())
        except InvalidOperation:
            raise InvalidAmountError(f"Invalid amount: {amount!r}")
        if not value.is_finite():
            raise InvalidAmountError(f"Invalid amount: {amount!r}")
        if value <= 0:
            raise InvalidAmountError("Please enter a valid amount greater than 0")
        try:
            wei = Web3.to_wei(value, unit)
        except ValueError as e:
            raise InvalidAmountError(f"Invalid amount {amount!r}: {e}")

    return validate_uint64_amount(wei)


def validate_uint64_amount(wei: int) -> int:
    """Check 0 < wei <= MAX_UINT64 and return it."""
    if wei <= 0:
        raise InvalidAmountError("Please enter a valid amount greater than 0")
    if wei > MAX_UINT64:
        raise InvalidAmountError(
            f"Amount too large for uint64 (max {format_amount(MAX_UINT64)} ETH)"
        )
    return wei


def format_amount(wei: int, unit: str = "ether") -> str:
    """Render base units as a decimal string in `unit`."""
    value = Web3.from_wei(wei, unit)
    return format(value.normalize(), "f") if isinstance(value, Decimal) else str(value)
