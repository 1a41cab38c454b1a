"""
DAO Treasury Address Module

Holder and recipient addresses are Ethereum-style (20 bytes, 0x prefix).
Every address entering the ledger is canonicalised to its EIP-55 checksum
form so that two spellings of the same account share one vote record.
"""

from typing import Optional

from eth_utils import is_address, to_checksum_address

from ..constants import NULL_ADDRESS
from ..exceptions import InvalidAddressError


def is_null_address(address: Optional[str]) -> bool:
    """
    True for the null-equivalent recipients: None, "" and the zero address.
    """
    if not address:
        return True
    return isinstance(address, str) and address.lower() == NULL_ADDRESS


def is_valid_address(address) -> bool:
    """Check if *address* is a well-formed 20-byte hex address."""
    if not isinstance(address, str):
        return False
    return is_address(address)


def canonical_address(address: str) -> str:
    """
    Normalize address to EIP-55 checksum format.

    Raises:
        InvalidAddressError: if the address is not a 20-byte hex address
    """
    if not is_valid_address(address):
        raise InvalidAddressError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def short_address(address: str) -> str:
    """Abbreviated form for log lines and CLI tables."""
    if len(address) <= 12:
        return address
    return f"{address[:6]}…{address[-4:]}"
