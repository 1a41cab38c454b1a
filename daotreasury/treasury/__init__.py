"""
Treasury custody.

Provides:
  - Treasury                 : native-unit custody with deposit / pay
  - DepositEvent / PayoutEvent
  - InsufficientFundsError / TransferFailedError / InvalidFundsAmountError
  - parse_funds              : deposit and balance validation
"""

from .custody import (
    DepositEvent,
    InsufficientFundsError,
    InvalidFundsAmountError,
    PayoutEvent,
    TransferFailedError,
    Treasury,
    TreasuryError,
    parse_funds,
)

__all__ = [
    "DepositEvent",
    "InsufficientFundsError",
    "InvalidFundsAmountError",
    "PayoutEvent",
    "TransferFailedError",
    "Treasury",
    "TreasuryError",
    "parse_funds",
]
