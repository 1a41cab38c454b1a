"""
Governance weight token.

Provides:
  - GovernanceToken  : fungible holdings used as the ledger's WeightOracle
  - TransferEvent    : emitted on every transfer
"""

from .governance_token import (
    GovernanceToken,
    InsufficientBalanceError,
    TokenError,
    TransferEvent,
)

__all__ = [
    "GovernanceToken",
    "InsufficientBalanceError",
    "TokenError",
    "TransferEvent",
]
