"""
Weight-Weighted Voting

Implements:
  - Vote choices: For / Against / Abstain (int8 encoding 1 / -1 / 2)
  - Ballot: the immutable record of one accepted vote
  - VoteRegistry: point-lookup store of (voter, proposal) → VoteRecord

The registry is not enumerable; "who voted how" is rebuilt
from the Voted events instead.
"""

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import IntEnum
from typing import Any, Dict, Tuple

from ..exceptions import GovernanceError
from ..constants import (
    GOVERNANCE_NOT_VOTED,
    GOVERNANCE_VOTE_ABSTAIN,
    GOVERNANCE_VOTE_AGAINST,
    GOVERNANCE_VOTE_FOR,
)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class VotingError(GovernanceError):
    """Base voting error."""
    kind = "VotingError"


class AlreadyVotedError(VotingError):
    """Voter already cast a vote on this proposal."""
    kind = "AlreadyVoted"


class InvalidChoiceError(VotingError):
    """Vote choice is not FOR, AGAINST or ABSTAIN."""
    kind = "InvalidChoice"


class VotingClosedError(VotingError):
    """Proposal deadline has passed."""
    kind = "VotingClosed"


# ══════════════════════════════════════════════════════════════════════
#  VOTE DATA
# ══════════════════════════════════════════════════════════════════════

class VoteChoice(IntEnum):
    """Direction of a vote as submitted by a voter."""
    FOR = GOVERNANCE_VOTE_FOR
    AGAINST = GOVERNANCE_VOTE_AGAINST
    ABSTAIN = GOVERNANCE_VOTE_ABSTAIN

    @classmethod
    def parse(cls, value) -> "VoteChoice":
        if isinstance(value, cls):
            return value
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidChoiceError(f"Invalid choice: {value!r}")
        try:
            return cls(value)
        except ValueError:
            raise InvalidChoiceError(f"Invalid choice: {value!r}") from None

    @classmethod
    def from_bool(cls, in_favor: bool) -> "VoteChoice":
        return cls.FOR if in_favor else cls.AGAINST


class VoteRecord(IntEnum):
    """Registry value for a (voter, proposal) pair."""
    NOT_VOTED = GOVERNANCE_NOT_VOTED
    VOTED_FOR = GOVERNANCE_VOTE_FOR
    VOTED_AGAINST = GOVERNANCE_VOTE_AGAINST
    ABSTAINED = GOVERNANCE_VOTE_ABSTAIN

    @classmethod
    def from_choice(cls, choice: VoteChoice) -> "VoteRecord":
        return cls(int(choice))


@dataclass(frozen=True)
class Ballot:
    """An individual accepted vote."""
    proposal_id: int
    voter: str
    choice: VoteChoice
    weight: Decimal         # balance observed at the moment of voting
    timestamp: float = field(default_factory=time.time)

    @property
    def in_favor(self) -> bool:
        return self.choice == VoteChoice.FOR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "voter": self.voter,
            "choice": self.choice.name,
            "weight": str(self.weight),
            "timestamp": self.timestamp,
        }


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY
# ══════════════════════════════════════════════════════════════════════

class VoteRegistry:
    """
    Write-once map of (voter, proposal_id) → VoteRecord.

    Absent keys read as NOT_VOTED. A key, once written, is never
    overwritten or removed.
    """

    def __init__(self):
        self._records: Dict[Tuple[str, int], VoteRecord] = {}

    def record(self, voter: str, proposal_id: int, choice: VoteChoice) -> VoteRecord:
        key = (voter, proposal_id)
        if key in self._records:
            raise AlreadyVotedError(f"{voter} already voted on proposal #{proposal_id}")
        value = VoteRecord.from_choice(choice)
        self._records[key] = value
        return value

    def get(self, voter: str, proposal_id: int) -> VoteRecord:
        return self._records.get((voter, proposal_id), VoteRecord.NOT_VOTED)

    def has_voted(self, voter: str, proposal_id: int) -> bool:
        return self.get(voter, proposal_id) != VoteRecord.NOT_VOTED

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"<VoteRegistry records={len(self._records)}>"
