"""
Treasury Governance

Provides:
  - Proposal / ProposalStatus                       (proposals.py)
  - VoteChoice / VoteRecord / Ballot / VoteRegistry  (voting.py)
  - Proposed / Voted / Finalized / Cancelled events  (events.py)
  - GovernanceLedger / WeightOracle / VoteTally      (ledger.py)
  - replay / LedgerSnapshot                          (replay.py)
"""

from ..exceptions import GovernanceError
from ..treasury import InsufficientFundsError, TransferFailedError
from .proposals import (
    AlreadyCancelledError,
    AlreadyFinalizedError,
    InvalidAmountError,
    InvalidDeadlineError,
    InvalidMetadataError,
    InvalidProposalError,
    InvalidRecipientError,
    Proposal,
    ProposalLifecycleError,
    ProposalStatus,
)
from .voting import (
    AlreadyVotedError,
    Ballot,
    InvalidChoiceError,
    VoteChoice,
    VoteRecord,
    VoteRegistry,
    VotingClosedError,
    VotingError,
)
from .events import (
    CancelledEvent,
    EventLog,
    FinalizedEvent,
    GovernanceEvent,
    ProposedEvent,
    VotedEvent,
    event_from_dict,
)
from .ledger import (
    GovernanceLedger,
    ProposalNotFoundError,
    QuorumNotReachedError,
    UnauthorizedError,
    VoteTally,
    WeightOracle,
)
from .replay import LedgerSnapshot, ReplayError, replay

__all__ = [
    # Errors
    "AlreadyCancelledError",
    "AlreadyFinalizedError",
    "AlreadyVotedError",
    "GovernanceError",
    "InsufficientFundsError",
    "InvalidAmountError",
    "InvalidChoiceError",
    "InvalidDeadlineError",
    "InvalidMetadataError",
    "InvalidProposalError",
    "InvalidRecipientError",
    "ProposalLifecycleError",
    "ProposalNotFoundError",
    "QuorumNotReachedError",
    "ReplayError",
    "TransferFailedError",
    "UnauthorizedError",
    "VotingClosedError",
    "VotingError",
    # Proposals
    "Proposal",
    "ProposalStatus",
    # Voting
    "Ballot",
    "VoteChoice",
    "VoteRecord",
    "VoteRegistry",
    # Events
    "CancelledEvent",
    "EventLog",
    "FinalizedEvent",
    "GovernanceEvent",
    "ProposedEvent",
    "VotedEvent",
    "event_from_dict",
    # Ledger
    "GovernanceLedger",
    "VoteTally",
    "WeightOracle",
    # Replay
    "LedgerSnapshot",
    "replay",
]
