# borrow_indexer/utils/amounts.py
"""
Utility functions for string amounts and fixed-point units
"""

from decimal import Decimal, getcontext
from typing import Union, Iterable

getcontext().prec = 78

WAD = Decimal(10) ** 18
RAY = Decimal(10) ** 27
RAD = Decimal(10) ** 45


def amount_to_int(amount: Union[str, int, None]) -> int:
    """Convert amount to int with robust type handling"""
    if amount is None:
        return 0
    if isinstance(amount, str):
        if amount.strip() == "":
            return 0
        return int(amount)
    return int(amount)


def amount_to_str(amount: Union[str, int, None]) -> str:
    if amount is None:
        return "0"
    return str(amount_to_int(amount))


def add_amounts(amounts: Iterable[Union[str, int]]) -> str:
    """Add multiple amounts and return as string"""
    return str(sum(amount_to_int(amt) for amt in amounts))


def from_fixed(amount: Union[str, int], unit: Decimal) -> str:
    """Scale a fixed-point integer (wad/ray/rad) into a plain decimal string."""
    value = Decimal(amount_to_int(amount)) / unit
    return format(value.normalize(), 'f')


def bytes32_to_str(value: Union[str, bytes]) -> str:
    """Collateral types are stored as right-padded bytes32, e.g. ETH-A."""
    if isinstance(value, str):
        value = bytes.fromhex(value[2:] if value.startswith("0x") else value)
    return value.rstrip(b"\x00").decode("utf-8", errors="replace")


def str_to_bytes32(value: str) -> bytes:
    encoded = value.encode("utf-8")
    if len(encoded) > 32:
        raise ValueError(f"{value!r} does not fit in bytes32")
    return encoded.ljust(32, b"\x00")
