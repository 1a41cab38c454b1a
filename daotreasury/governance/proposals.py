"""
Treasury Spending Proposals

Defines the Proposal record tracked by the governance ledger, its
lifecycle (OPEN → FINALIZED | CANCELLED) and the input validation applied
when a proposal is created.
"""

import copy
import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, localcontext
from enum import IntEnum
from typing import Any, Dict, List, Optional

from ..logger import get_logger
from ..constants import AMOUNT_CONTEXT
from ..exceptions import GovernanceError
from ..crypto import canonical_address, is_null_address, is_valid_address
from .voting import VoteChoice

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class InvalidProposalError(GovernanceError):
    """Raised when proposal data is invalid."""
    kind = "InvalidProposal"


class InvalidAmountError(InvalidProposalError):
    kind = "InvalidAmount"


class InvalidRecipientError(InvalidProposalError):
    kind = "InvalidRecipient"


class InvalidMetadataError(InvalidProposalError):
    kind = "InvalidMetadata"


class InvalidDeadlineError(InvalidProposalError):
    kind = "InvalidDeadline"


class ProposalLifecycleError(GovernanceError):
    """Raised on illegal state transitions."""
    kind = "ProposalLifecycle"


class AlreadyFinalizedError(ProposalLifecycleError):
    kind = "AlreadyFinalized"


class AlreadyCancelledError(ProposalLifecycleError):
    kind = "AlreadyCancelled"


# ══════════════════════════════════════════════════════════════════════
#  VALIDATION
# ══════════════════════════════════════════════════════════════════════

def parse_amount(amount) -> Decimal:
    """Coerce *amount* to a positive Decimal or raise InvalidAmountError."""
    if isinstance(amount, bool):
        raise InvalidAmountError(f"Invalid amount: {amount!r}")
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(f"Invalid amount: {amount!r}") from None
    if not value.is_finite() or value <= 0:
        raise InvalidAmountError(f"Amount must be positive, got {amount}")
    return value


def parse_recipient(recipient: Optional[str]) -> str:
    if is_null_address(recipient):
        raise InvalidRecipientError("Recipient cannot be the null address")
    if not is_valid_address(recipient):
        raise InvalidRecipientError(f"Invalid recipient address: {recipient!r}")
    return canonical_address(recipient)


def validate_metadata(name: str, description: str) -> None:
    if not isinstance(name, str) or not name.strip():
        raise InvalidMetadataError("Proposal name cannot be empty")
    if not isinstance(description, str) or not description.strip():
        raise InvalidMetadataError("Proposal description cannot be empty")


def parse_deadline(deadline: Optional[float], now: float) -> Optional[float]:
    """``None`` and ``0`` mean no deadline; anything else must lie in the future."""
    if deadline is None or deadline == 0:
        return None
    if isinstance(deadline, bool) or not isinstance(deadline, (int, float)):
        raise InvalidDeadlineError(f"Invalid deadline: {deadline!r}")
    if deadline <= now:
        raise InvalidDeadlineError(
            "Deadline must be in the future or zero for no deadline"
        )
    return float(deadline)


# ══════════════════════════════════════════════════════════════════════
#  ENUMS
# ══════════════════════════════════════════════════════════════════════

class ProposalStatus(IntEnum):
    """Lifecycle stage. FINALIZED and CANCELLED are terminal."""
    OPEN = 0
    FINALIZED = 1
    CANCELLED = 2


# ══════════════════════════════════════════════════════════════════════
#  PROPOSAL
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Proposal:
    """
    Treasury spending proposal.

    Fields:
        id:               Unique monotonic identifier, assigned by the ledger
        name:             Short title
        description:      Rationale
        amount:           Native units to release on finalize (immutable)
        recipient:        Checksum address receiving the funds (immutable)
        creator:          Address of the proposer
        deadline:         Unix time after which voting closes (None = open-ended)
        positive_weight:  Weight voted FOR
        negative_weight:  Weight voted AGAINST
        abstain_weight:   Weight that abstained
        net_votes:        positive_weight - negative_weight
        finalized:        Funds released (terminal)
        cancelled:        Rejected by AGAINST quorum (terminal)
    """
    id: int
    name: str
    description: str
    amount: Decimal
    recipient: str
    creator: str = ""
    deadline: Optional[float] = None
    created_at: float = field(default_factory=time.time)
    positive_weight: Decimal = field(default_factory=lambda: Decimal("0"))
    negative_weight: Decimal = field(default_factory=lambda: Decimal("0"))
    abstain_weight: Decimal = field(default_factory=lambda: Decimal("0"))
    net_votes: Decimal = field(default_factory=lambda: Decimal("0"))
    finalized: bool = False
    cancelled: bool = False
    finalized_at: Optional[float] = None
    cancelled_at: Optional[float] = None
    _history: List[Dict[str, Any]] = field(default_factory=list, repr=False)

    def __post_init__(self):
        if not isinstance(self.id, int) or self.id <= 0:
            raise InvalidProposalError(f"Proposal id must be a positive integer, got {self.id!r}")
        self.amount = parse_amount(self.amount)
        self.recipient = parse_recipient(self.recipient)
        validate_metadata(self.name, self.description)
        if self.finalized and self.cancelled:
            raise ProposalLifecycleError(
                f"Proposal #{self.id} cannot be both finalized and cancelled"
            )
        if not self._history:
            self._record_transition(ProposalStatus.OPEN, "created")

    # ── Properties ────────────────────────────────────────────────────

    @property
    def status(self) -> ProposalStatus:
        if self.finalized:
            return ProposalStatus.FINALIZED
        if self.cancelled:
            return ProposalStatus.CANCELLED
        return ProposalStatus.OPEN

    @property
    def is_terminal(self) -> bool:
        return self.finalized or self.cancelled

    @property
    def participation(self) -> Decimal:
        """All weight cast on this proposal, abstentions included."""
        with localcontext(AMOUNT_CONTEXT):
            return self.positive_weight + self.negative_weight + self.abstain_weight

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._history)

    def voting_closed(self, now: float) -> bool:
        return self.deadline is not None and now > self.deadline

    # ── Accounting ────────────────────────────────────────────────────

    def apply_vote(self, choice: VoteChoice, weight: Decimal) -> None:
        """Add *weight* to the counter selected by *choice*."""
        if weight <= 0:
            raise InvalidProposalError("Vote weight must be positive")
        with localcontext(AMOUNT_CONTEXT):
            if choice == VoteChoice.FOR:
                self.positive_weight += weight
                self.net_votes += weight
            elif choice == VoteChoice.AGAINST:
                self.negative_weight += weight
                self.net_votes -= weight
            else:
                self.abstain_weight += weight

    # ── State transitions ─────────────────────────────────────────────

    def require_open(self) -> None:
        if self.finalized:
            raise AlreadyFinalizedError(f"Proposal #{self.id} already finalized")
        if self.cancelled:
            raise AlreadyCancelledError(f"Proposal #{self.id} was cancelled")

    def _record_transition(self, new_status: ProposalStatus, reason: str):
        self._history.append({
            "from": self.status.name if self._history else "INIT",
            "to": new_status.name,
            "reason": reason,
            "timestamp": time.time(),
        })

    def mark_finalized(self, at: Optional[float] = None) -> None:
        """OPEN → FINALIZED."""
        self.require_open()
        self._record_transition(ProposalStatus.FINALIZED, "Quorum reached, funds released")
        self.finalized = True
        self.finalized_at = at if at is not None else time.time()
        logger.info(f"Proposal #{self.id} ({self.name}): OPEN → FINALIZED")

    def mark_cancelled(self, at: Optional[float] = None) -> None:
        """OPEN → CANCELLED."""
        self.require_open()
        self._record_transition(ProposalStatus.CANCELLED, "Against votes reached quorum")
        self.cancelled = True
        self.cancelled_at = at if at is not None else time.time()
        logger.info(f"Proposal #{self.id} ({self.name}): OPEN → CANCELLED")

    def snapshot(self) -> "Proposal":
        """Detached copy safe to hand to callers."""
        return copy.deepcopy(self)

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "amount": str(self.amount),
            "recipient": self.recipient,
            "creator": self.creator,
            "deadline": self.deadline,
            "createdAt": self.created_at,
            "positiveVotes": str(self.positive_weight),
            "negativeVotes": str(self.negative_weight),
            "abstainVotes": str(self.abstain_weight),
            "votes": str(self.net_votes),
            "status": self.status.name,
            "finalized": self.finalized,
            "cancelled": self.cancelled,
            "finalizedAt": self.finalized_at,
            "cancelledAt": self.cancelled_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        return cls(
            id=data["id"],
            name=data["name"],
            description=data["description"],
            amount=Decimal(data["amount"]),
            recipient=data["recipient"],
            creator=data.get("creator", ""),
            deadline=data.get("deadline"),
            created_at=data.get("createdAt", time.time()),
            positive_weight=Decimal(data.get("positiveVotes", "0")),
            negative_weight=Decimal(data.get("negativeVotes", "0")),
            abstain_weight=Decimal(data.get("abstainVotes", "0")),
            net_votes=Decimal(data.get("votes", "0")),
            finalized=data.get("finalized", False),
            cancelled=data.get("cancelled", False),
            finalized_at=data.get("finalizedAt"),
            cancelled_at=data.get("cancelledAt"),
        )

    def __repr__(self) -> str:
        return (
            f"<Proposal #{self.id} '{self.name}' amount={self.amount} "
            f"net={self.net_votes} status={self.status.name}>"
        )
