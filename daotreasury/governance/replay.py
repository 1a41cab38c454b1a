"""
Event Replay

Rebuilds proposal state and the vote registry from an exported event
history, without access to the ledger that produced it.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from ..exceptions import GovernanceError
from ..logger import get_logger
from .events import (
    CancelledEvent,
    FinalizedEvent,
    GovernanceEvent,
    ProposedEvent,
    VotedEvent,
)
from .proposals import Proposal
from .voting import VoteRecord, VoteRegistry

logger = get_logger(__name__)


class ReplayError(GovernanceError):
    """Event history is inconsistent."""
    kind = "ReplayError"


@dataclass
class LedgerSnapshot:
    """Ledger state reconstructed from events."""
    proposals: Dict[int, Proposal] = field(default_factory=dict)
    votes: VoteRegistry = field(default_factory=VoteRegistry)
    events_applied: int = 0

    @property
    def proposal_count(self) -> int:
        return len(self.proposals)

    def get(self, proposal_id: int) -> Proposal:
        return self.proposals[proposal_id]

    def vote_of(self, voter: str, proposal_id: int) -> VoteRecord:
        return self.votes.get(voter, proposal_id)

    def ordered(self) -> List[Proposal]:
        return [self.proposals[pid] for pid in sorted(self.proposals)]


def _apply(snapshot: LedgerSnapshot, event: GovernanceEvent) -> None:
    if isinstance(event, ProposedEvent):
        expected = snapshot.proposal_count + 1
        if event.proposal_id != expected:
            raise ReplayError(
                f"Proposal ids must be contiguous: expected #{expected}, got #{event.proposal_id}"
            )
        snapshot.proposals[event.proposal_id] = Proposal(
            id=event.proposal_id,
            name=event.name,
            description=event.description,
            amount=event.amount,
            recipient=event.recipient,
            creator=event.creator,
            deadline=event.deadline,
            created_at=event.timestamp,
        )
        return

    proposal = snapshot.proposals.get(event.proposal_id)
    if proposal is None:
        raise ReplayError(f"{event.event_name} refers to unknown proposal #{event.proposal_id}")

    if isinstance(event, VotedEvent):
        snapshot.votes.record(event.voter, event.proposal_id, event.choice)
        proposal.apply_vote(event.choice, event.weight)
    elif isinstance(event, FinalizedEvent):
        proposal.mark_finalized(at=event.timestamp)
    elif isinstance(event, CancelledEvent):
        proposal.mark_cancelled(at=event.timestamp)
    else:
        raise ReplayError(f"Unsupported event: {event!r}")


def replay(events: Iterable[GovernanceEvent]) -> LedgerSnapshot:
    """
    Apply *events* in order to an empty snapshot.

    Raises:
        ReplayError: if the history could not have been produced by a ledger
                     (gaps in ids, double votes, conflicting terminal events)
    """
    snapshot = LedgerSnapshot()
    for index, event in enumerate(events):
        try:
            _apply(snapshot, event)
        except ReplayError:
            raise
        except GovernanceError as e:
            raise ReplayError(f"Event #{index} ({event.event_name}): {e}") from e
        snapshot.events_applied += 1
    logger.debug(
        f"Replayed {snapshot.events_applied} events into "
        f"{snapshot.proposal_count} proposals"
    )
    return snapshot
