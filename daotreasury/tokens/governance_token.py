"""
Governance Token

A fungible holdings ledger whose balances are the voting weight of the DAO.
It is the reference WeightOracle: the governance ledger only ever calls
``balance_of`` (and ``total_supply`` for participation figures).
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from typing import Any, Dict, List

from ..logger import get_logger
from ..constants import (
    AMOUNT_CONTEXT,
    TOKEN_DEFAULT_DECIMALS,
    TOKEN_DEFAULT_NAME,
    TOKEN_DEFAULT_SYMBOL,
    TOKEN_MAX_SUPPLY,
)
from ..crypto import canonical_address, is_valid_address

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class TokenError(Exception):
    """Base exception for governance token operations."""


class InsufficientBalanceError(TokenError):
    """Raised when sender balance is too low."""


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TransferEvent:
    """Emitted on every successful transfer."""
    token_symbol: str
    sender: str
    recipient: str
    amount: Decimal
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Transfer",
            "token": self.token_symbol,
            "from": self.sender,
            "to": self.recipient,
            "amount": str(self.amount),
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  TOKEN
# ══════════════════════════════════════════════════════════════════════

class GovernanceToken:
    """
    Fungible voting-weight token.

    Mirrors ERC-20 read semantics:
        - balance_of(address) → Decimal
        - total_supply → Decimal
        - transfer(sender, recipient, amount)

    The whole initial supply is credited to the deployer.
    """

    def __init__(
        self,
        name: str = TOKEN_DEFAULT_NAME,
        symbol: str = TOKEN_DEFAULT_SYMBOL,
        total_supply: Decimal = Decimal("0"),
        deployer: str = "",
        decimals: int = TOKEN_DEFAULT_DECIMALS,
    ):
        if not name:
            raise TokenError("Token name cannot be empty")
        if not symbol:
            raise TokenError("Token symbol cannot be empty")
        if decimals < 0 or decimals > 18:
            raise TokenError(f"Decimals must be 0-18, got {decimals}")
        total_supply = Decimal(total_supply)
        if total_supply < 0:
            raise TokenError("Total supply cannot be negative")
        if total_supply > TOKEN_MAX_SUPPLY:
            raise TokenError(f"Total supply {total_supply} exceeds max {TOKEN_MAX_SUPPLY}")
        if total_supply > 0 and not deployer:
            raise TokenError("A deployer is required to hold the initial supply")

        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self._total_supply = total_supply
        self.deployer = canonical_address(deployer) if deployer else ""

        self._balances: Dict[str, Decimal] = {}
        self._events: List[TransferEvent] = []

        if total_supply > 0:
            self._balances[self.deployer] = total_supply

        logger.info(f"Token deployed: {symbol} ({name}), supply={total_supply}")

    # ── Read-only views ───────────────────────────────────────────────

    @property
    def total_supply(self) -> Decimal:
        return self._total_supply

    def balance_of(self, address: str) -> Decimal:
        if not is_valid_address(address):
            return Decimal("0")
        return self._balances.get(canonical_address(address), Decimal("0"))

    @property
    def events(self) -> List[TransferEvent]:
        return list(self._events)

    def holders(self) -> Dict[str, Decimal]:
        return {a: b for a, b in self._balances.items() if b > 0}

    # ── Transfers ─────────────────────────────────────────────────────

    def transfer(self, sender: str, recipient: str, amount: Decimal) -> TransferEvent:
        """Move *amount* of weight from *sender* to *recipient*."""
        amount = Decimal(amount)
        if amount <= 0:
            raise TokenError("Transfer amount must be positive")
        sender = canonical_address(sender)
        recipient = canonical_address(recipient)
        if sender == recipient:
            raise TokenError("Cannot transfer to self")

        bal = self._balances.get(sender, Decimal("0"))
        if bal < amount:
            raise InsufficientBalanceError(
                f"{sender} balance {bal} < transfer amount {amount}"
            )

        with localcontext(AMOUNT_CONTEXT):
            self._balances[sender] = bal - amount
            self._balances[recipient] = self._balances.get(recipient, Decimal("0")) + amount

        event = TransferEvent(
            token_symbol=self.symbol,
            sender=sender,
            recipient=recipient,
            amount=amount,
        )
        self._events.append(event)
        logger.debug(f"Transfer: {sender} → {recipient} {amount} {self.symbol}")
        return event

    def distribute(self, allocations: Dict[str, Decimal]) -> List[TransferEvent]:
        """Transfer from the deployer to each holder in *allocations*."""
        return [
            self.transfer(self.deployer, holder, amount)
            for holder, amount in allocations.items()
        ]

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "totalSupply": str(self._total_supply),
            "deployer": self.deployer,
            "holders": len(self.holders()),
        }

    def __repr__(self) -> str:
        return f"<GovernanceToken {self.symbol} supply={self._total_supply}>"
