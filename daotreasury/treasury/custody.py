"""
Treasury Custody

Holds the native funds the DAO can spend. Deposits are accepted at any time
from anyone; the only debit path is ``pay``, which the governance ledger
calls while finalizing a proposal.
"""

import inspect
import time
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..logger import get_logger
from ..constants import AMOUNT_CONTEXT
from ..exceptions import GovernanceError

logger = get_logger(__name__)

# (recipient, amount); returning False rejects the transfer.
TransferFn = Callable[[str, Decimal], Union[Optional[bool], Awaitable[Optional[bool]]]]


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class TreasuryError(GovernanceError):
    """Base treasury error."""
    kind = "TreasuryError"


class InsufficientFundsError(TreasuryError):
    """Custodied funds do not cover the requested amount."""
    kind = "InsufficientFunds"


class TransferFailedError(TreasuryError):
    """The recipient side rejected the payout."""
    kind = "TransferFailed"


class InvalidFundsAmountError(TreasuryError):
    """Deposit or balance that is not a finite, non-negative number."""
    kind = "InvalidAmount"


def parse_funds(amount, what: str = "Deposit") -> Decimal:
    """Coerce *amount* to a finite Decimal >= 0 or raise InvalidFundsAmountError."""
    if isinstance(amount, bool):
        raise InvalidFundsAmountError(f"{what} amount must be a number, got {amount!r}")
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidFundsAmountError(f"{what} amount must be a number, got {amount!r}") from None
    if not value.is_finite():
        raise InvalidFundsAmountError(f"{what} amount must be finite, got {amount!r}")
    if value < 0:
        raise InvalidFundsAmountError(f"{what} amount cannot be negative")
    return value


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DepositEvent:
    """Funds received into custody."""
    sender: str
    amount: Decimal
    balance_after: Decimal
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Deposit",
            "from": self.sender,
            "amount": str(self.amount),
            "balanceAfter": str(self.balance_after),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class PayoutEvent:
    """Funds released from custody for a finalized proposal."""
    recipient: str
    amount: Decimal
    balance_after: Decimal
    proposal_id: Optional[int] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": "Payout",
            "to": self.recipient,
            "amount": str(self.amount),
            "balanceAfter": str(self.balance_after),
            "proposalId": self.proposal_id,
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  TREASURY
# ══════════════════════════════════════════════════════════════════════

class Treasury:
    """
    Native-unit custody account.

    Args:
        initial_balance: Funds already held at construction
        transfer_fn:     Optional hook performing the outbound transfer.
                         Returning ``False`` or raising rejects the payout;
                         it may be a coroutine function.
    """

    def __init__(
        self,
        initial_balance: Decimal = Decimal("0"),
        transfer_fn: Optional[TransferFn] = None,
    ):
        self._balance = parse_funds(initial_balance, "Initial balance")
        self._transfer_fn = transfer_fn
        self._paid: Dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
        self._events: List[Any] = []

    # ── Views ─────────────────────────────────────────────────────────

    @property
    def balance(self) -> Decimal:
        return self._balance

    def can_cover(self, amount: Decimal) -> bool:
        return self._balance >= amount

    def paid_to(self, recipient: str) -> Decimal:
        """Total released to *recipient* so far."""
        return self._paid.get(recipient, Decimal("0"))

    @property
    def total_paid(self) -> Decimal:
        with localcontext(AMOUNT_CONTEXT):
            return sum(self._paid.values(), Decimal("0"))

    @property
    def events(self) -> List[Any]:
        return list(self._events)

    # ── Deposits ──────────────────────────────────────────────────────

    def deposit(self, sender: str, amount: Decimal) -> DepositEvent:
        """Accept funds from anyone."""
        amount = parse_funds(amount)
        with localcontext(AMOUNT_CONTEXT):
            self._balance += amount
        event = DepositEvent(sender=sender, amount=amount, balance_after=self._balance)
        self._events.append(event)
        logger.info(f"Deposit: {sender} → treasury amount={amount} (balance={self._balance})")
        return event

    # ── Payouts ───────────────────────────────────────────────────────

    async def pay(
        self,
        recipient: str,
        amount: Decimal,
        proposal_id: Optional[int] = None,
    ) -> PayoutEvent:
        """
        Debit exactly *amount* to *recipient*.

        The balance is reserved before the transfer hook runs and restored if
        the hook rejects, raises or is interrupted, so a failed payout leaves
        custody untouched.
        """
        if amount <= 0:
            raise TreasuryError("Payout amount must be positive")
        if self._balance < amount:
            raise InsufficientFundsError(
                f"Treasury balance {self._balance} < payout amount {amount}"
            )

        with localcontext(AMOUNT_CONTEXT):
            self._balance -= amount
        delivered = False
        try:
            result = None
            if self._transfer_fn is not None:
                result = self._transfer_fn(recipient, amount)
                if inspect.isawaitable(result):
                    result = await result
            if result is False:
                raise TransferFailedError(f"Recipient {recipient} rejected {amount}")
            delivered = True
        except TransferFailedError:
            raise
        except Exception as e:
            raise TransferFailedError(f"Transfer to {recipient} failed: {e}") from e
        finally:
            if not delivered:
                with localcontext(AMOUNT_CONTEXT):
                    self._balance += amount

        with localcontext(AMOUNT_CONTEXT):
            self._paid[recipient] += amount
        event = PayoutEvent(
            recipient=recipient,
            amount=amount,
            balance_after=self._balance,
            proposal_id=proposal_id,
        )
        self._events.append(event)
        logger.info(f"Payout: treasury → {recipient} amount={amount} (balance={self._balance})")
        return event

    def to_dict(self) -> Dict[str, Any]:
        return {
            "balance": str(self._balance),
            "totalPaid": str(self.total_paid),
            "recipients": len(self._paid),
        }

    def __repr__(self) -> str:
        return f"<Treasury balance={self._balance}>"
