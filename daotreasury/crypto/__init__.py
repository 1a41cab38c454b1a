"""
DAO Treasury Crypto Module

Address validation and canonicalisation for holders and recipients.
"""

from .address import (
    canonical_address,
    is_null_address,
    is_valid_address,
    short_address,
)

__all__ = [
    "canonical_address",
    "is_null_address",
    "is_valid_address",
    "short_address",
]
