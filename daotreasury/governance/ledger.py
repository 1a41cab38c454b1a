"""
Governance Ledger

Owns every proposal, the vote registry, the treasury custody and the
quorum, and exposes the propose / vote / finalize / cancel operations.

Every operation runs as one isolated transaction: the ledger-wide lock is
held from the weight lookup to the final commit, preconditions are checked
before anything is written, and a failing operation leaves no trace. The
final state is therefore equivalent to some serial ordering of all calls.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple, Union

from ..logger import get_logger
from ..constants import (
    AMOUNT_CONTEXT,
    GOVERNANCE_ALLOW_VOTES_ON_TERMINAL,
    GOVERNANCE_PARTICIPATION_PRECISION,
)
from ..exceptions import ConfigurationError, GovernanceError
from ..crypto import canonical_address, is_valid_address
from ..treasury import (
    DepositEvent,
    InsufficientFundsError,
    PayoutEvent,
    Treasury,
    TreasuryError,
)
from .events import (
    CancelledEvent,
    EventLog,
    FinalizedEvent,
    GovernanceEvent,
    ProposedEvent,
    VotedEvent,
)
from .proposals import (
    Proposal,
    ProposalStatus,
    parse_amount,
    parse_deadline,
    parse_recipient,
    validate_metadata,
)
from .voting import (
    AlreadyVotedError,
    Ballot,
    VoteChoice,
    VoteRecord,
    VoteRegistry,
    VotingClosedError,
)

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EXCEPTIONS
# ══════════════════════════════════════════════════════════════════════

class UnauthorizedError(GovernanceError):
    """Caller holds no voting weight."""
    kind = "Unauthorized"


class ProposalNotFoundError(GovernanceError):
    """Unknown proposal id."""
    kind = "NotFound"


class QuorumNotReachedError(GovernanceError):
    """Net FOR weight (finalize) or AGAINST weight (cancel) below quorum."""
    kind = "QuorumNotReached"


# ══════════════════════════════════════════════════════════════════════
#  WEIGHT ORACLE
# ══════════════════════════════════════════════════════════════════════

class WeightOracle(Protocol):
    """
    External holdings ledger. ``balance_of`` may return the amount directly
    or an awaitable resolving to it. It is never mutated by the ledger.
    """

    def balance_of(self, address: str) -> Union[Decimal, Awaitable[Decimal]]:
        ...


@dataclass(frozen=True)
class VoteTally:
    """Per-choice weight totals for one proposal."""
    proposal_id: int
    votes_for: Decimal
    votes_against: Decimal
    votes_abstain: Decimal
    net_votes: Decimal

    @property
    def total(self) -> Decimal:
        with localcontext(AMOUNT_CONTEXT):
            return self.votes_for + self.votes_against + self.votes_abstain

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proposalId": self.proposal_id,
            "votesFor": str(self.votes_for),
            "votesAgainst": str(self.votes_against),
            "votesAbstain": str(self.votes_abstain),
            "netVotes": str(self.net_votes),
            "totalVotes": str(self.total),
        }


# ══════════════════════════════════════════════════════════════════════
#  LEDGER
# ══════════════════════════════════════════════════════════════════════

class GovernanceLedger:
    """
    Treasury-governed voting ledger.

    Responsibilities:
        - Create proposals funded by the custodied treasury
        - Record one weight-proportional vote per (voter, proposal)
        - Release funds once net FOR weight reaches quorum
        - Cancel once AGAINST weight reaches quorum
        - Emit an event for every committed transition
    """

    def __init__(
        self,
        oracle: WeightOracle,
        quorum: Decimal,
        owner: str = "",
        treasury: Optional[Treasury] = None,
        *,
        allow_votes_on_terminal: bool = GOVERNANCE_ALLOW_VOTES_ON_TERMINAL,
        event_log: Optional[EventLog] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            oracle:   WeightOracle queried on every call
            quorum:   Threshold for finalize (net votes) and cancel (against votes)
            owner:    Deployer identity, recorded only
            treasury: Funds custody (a fresh empty one by default)
            allow_votes_on_terminal: Accept votes on finalized / cancelled
                      proposals, as older deployments did
            event_log: Destination for emitted events
            clock:    Time source for deadlines and timestamps
        """
        if oracle is None or not callable(getattr(oracle, "balance_of", None)):
            raise ConfigurationError("Weight oracle must provide balance_of(address)")
        try:
            quorum = Decimal(quorum)
        except (InvalidOperation, TypeError, ValueError):
            raise ConfigurationError(f"Invalid quorum: {quorum!r}") from None
        if not quorum.is_finite() or quorum < 0:
            raise ConfigurationError(f"Quorum must be a non-negative amount, got {quorum}")

        self._oracle = oracle
        self._quorum = quorum
        self._owner = canonical_address(owner) if owner else ""
        self._treasury = treasury if treasury is not None else Treasury()
        self._allow_votes_on_terminal = allow_votes_on_terminal
        self._events = event_log if event_log is not None else EventLog()
        self._clock = clock

        self._proposals: Dict[int, Proposal] = {}
        self._proposal_count = 0
        self._votes = VoteRegistry()
        self._lock = asyncio.Lock()

        logger.info(
            f"Governance ledger ready: quorum={quorum} "
            f"treasury={self._treasury.balance} owner={self._owner or '-'}"
        )

    # ── Configuration views ───────────────────────────────────────────

    @property
    def quorum(self) -> Decimal:
        return self._quorum

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def oracle(self) -> WeightOracle:
        return self._oracle

    @property
    def treasury(self) -> Treasury:
        return self._treasury

    @property
    def treasury_balance(self) -> Decimal:
        return self._treasury.balance

    @property
    def proposal_count(self) -> int:
        return self._proposal_count

    @property
    def event_log(self) -> EventLog:
        return self._events

    @property
    def events(self) -> List[GovernanceEvent]:
        return self._events.events()

    def subscribe(self, listener: Callable[[GovernanceEvent], None]) -> Callable[[], None]:
        return self._events.subscribe(listener)

    # ── Funds custody ─────────────────────────────────────────────────

    def deposit(self, sender: str, amount: Decimal) -> DepositEvent:
        """Accept funds into the treasury. Open to anyone, at any time."""
        try:
            return self._treasury.deposit(sender, amount)
        except TreasuryError as e:
            raise self._reject(e)

    # ── Internal helpers ──────────────────────────────────────────────

    def _reject(self, error: GovernanceError) -> GovernanceError:
        logger.warning(f"Rejected [{error.kind}]: {error}")
        return error

    async def _weight_of(self, address: str) -> Decimal:
        weight = self._oracle.balance_of(address)
        if inspect.isawaitable(weight):
            weight = await weight
        return Decimal(weight or 0)

    async def _require_holder(self, caller: str) -> Tuple[str, Decimal]:
        """Resolve *caller* to its checksum address and current weight."""
        if not is_valid_address(caller):
            raise self._reject(UnauthorizedError(f"Invalid caller address: {caller!r}"))
        caller = canonical_address(caller)
        weight = await self._weight_of(caller)
        if weight <= 0:
            raise self._reject(UnauthorizedError(f"{caller} must be token holder"))
        return caller, weight

    def _get(self, proposal_id: int) -> Proposal:
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise self._reject(ProposalNotFoundError(f"Proposal #{proposal_id} not found"))
        return proposal

    def _require_open(self, proposal: Proposal) -> None:
        try:
            proposal.require_open()
        except GovernanceError as e:
            raise self._reject(e)

    # ── Propose ───────────────────────────────────────────────────────

    async def propose(
        self,
        name: str,
        description: str,
        amount: Decimal,
        recipient: str,
        caller: str,
        deadline: Optional[float] = None,
    ) -> int:
        """
        Create a spending proposal and return its id.

        A rejected call consumes no id.
        """
        async with self._lock:
            creator, _ = await self._require_holder(caller)
            try:
                amount = parse_amount(amount)
                recipient = parse_recipient(recipient)
                validate_metadata(name, description)
                deadline = parse_deadline(deadline, self._clock())
            except GovernanceError as e:
                raise self._reject(e)
            if not self._treasury.can_cover(amount):
                raise self._reject(InsufficientFundsError(
                    f"Treasury balance {self._treasury.balance} < proposal amount {amount}"
                ))

            proposal_id = self._proposal_count + 1
            now = self._clock()
            proposal = Proposal(
                id=proposal_id,
                name=name,
                description=description,
                amount=amount,
                recipient=recipient,
                creator=creator,
                deadline=deadline,
                created_at=now,
            )
            self._proposals[proposal_id] = proposal
            self._proposal_count = proposal_id

            logger.info(
                f"Proposal #{proposal_id} created by {creator}: '{name}' "
                f"amount={amount} → {recipient}"
            )
            self._events.emit(ProposedEvent(
                proposal_id=proposal_id,
                name=name,
                description=description,
                amount=amount,
                recipient=recipient,
                creator=creator,
                deadline=deadline,
                timestamp=now,
            ))
            return proposal_id

    # ── Vote ──────────────────────────────────────────────────────────

    async def cast_vote(self, proposal_id: int, choice: int, caller: str) -> Ballot:
        """
        Record *caller*'s vote with the weight they hold right now.

        FOR adds to positive weight and net votes, AGAINST adds to negative
        weight and subtracts from net votes, ABSTAIN only counts toward
        participation.
        """
        async with self._lock:
            voter, weight = await self._require_holder(caller)
            try:
                choice = VoteChoice.parse(choice)
            except GovernanceError as e:
                raise self._reject(e)
            proposal = self._get(proposal_id)
            if self._votes.has_voted(voter, proposal_id):
                raise self._reject(AlreadyVotedError(
                    f"{voter} already voted on proposal #{proposal_id}"
                ))
            if not self._allow_votes_on_terminal:
                self._require_open(proposal)
            now = self._clock()
            if proposal.voting_closed(now):
                raise self._reject(VotingClosedError(
                    f"Voting deadline has passed for proposal #{proposal_id}"
                ))

            proposal.apply_vote(choice, weight)
            self._votes.record(voter, proposal_id, choice)

            ballot = Ballot(
                proposal_id=proposal_id,
                voter=voter,
                choice=choice,
                weight=weight,
                timestamp=now,
            )
            logger.info(
                f"Vote: {voter} → {choice.name} on Proposal #{proposal_id} "
                f"(weight={weight}, net={proposal.net_votes})"
            )
            self._events.emit(VotedEvent(
                proposal_id=proposal_id,
                voter=voter,
                choice=choice,
                weight=weight,
                timestamp=now,
            ))
            return ballot

    async def vote(self, proposal_id: int, in_favor: bool, caller: str) -> Ballot:
        """Directional vote: FOR when *in_favor*, AGAINST otherwise."""
        return await self.cast_vote(proposal_id, VoteChoice.from_bool(bool(in_favor)), caller)

    async def vote_legacy(self, proposal_id: int, caller: str) -> Ballot:
        """Always-affirmative entry point kept for older callers."""
        return await self.cast_vote(proposal_id, VoteChoice.FOR, caller)

    # ── Finalize ──────────────────────────────────────────────────────

    async def finalize(self, proposal_id: int, caller: str) -> PayoutEvent:
        """
        Release the proposal amount to its recipient.

        Requires net votes ≥ quorum and enough custodied funds. The terminal
        flag is committed only after the treasury confirms the transfer, so a
        rejected transfer leaves the proposal open for a later retry.
        """
        async with self._lock:
            await self._require_holder(caller)
            proposal = self._get(proposal_id)
            self._require_open(proposal)
            if proposal.net_votes < self._quorum:
                raise self._reject(QuorumNotReachedError(
                    f"Must reach quorum to finalize proposal #{proposal_id} "
                    f"(net={proposal.net_votes}, quorum={self._quorum})"
                ))
            if not self._treasury.can_cover(proposal.amount):
                raise self._reject(InsufficientFundsError(
                    f"Treasury balance {self._treasury.balance} < proposal amount {proposal.amount}"
                ))

            try:
                payout = await self._treasury.pay(
                    proposal.recipient, proposal.amount, proposal_id=proposal_id
                )
            except GovernanceError as e:
                raise self._reject(e)

            now = self._clock()
            proposal.mark_finalized(at=now)
            self._events.emit(FinalizedEvent(proposal_id=proposal_id, timestamp=now))
            return payout

    # ── Cancel ────────────────────────────────────────────────────────

    async def cancel(self, proposal_id: int, caller: str) -> None:
        """Cancel a proposal whose AGAINST weight reached quorum. No funds move."""
        async with self._lock:
            await self._require_holder(caller)
            proposal = self._get(proposal_id)
            self._require_open(proposal)
            if proposal.negative_weight < self._quorum:
                raise self._reject(QuorumNotReachedError(
                    f"Against votes must reach quorum to cancel proposal #{proposal_id} "
                    f"(against={proposal.negative_weight}, quorum={self._quorum})"
                ))

            now = self._clock()
            proposal.mark_cancelled(at=now)
            self._events.emit(CancelledEvent(proposal_id=proposal_id, timestamp=now))

    # ── Vote queries ──────────────────────────────────────────────────

    def vote_of(self, address: str, proposal_id: int) -> VoteRecord:
        if not is_valid_address(address):
            return VoteRecord.NOT_VOTED
        return self._votes.get(canonical_address(address), proposal_id)

    def has_voted(self, address: str, proposal_id: int) -> bool:
        return self.vote_of(address, proposal_id) != VoteRecord.NOT_VOTED

    def has_voted_in_favor(self, address: str, proposal_id: int) -> bool:
        return self.vote_of(address, proposal_id) == VoteRecord.VOTED_FOR

    def has_voted_against(self, address: str, proposal_id: int) -> bool:
        return self.vote_of(address, proposal_id) == VoteRecord.VOTED_AGAINST

    # ── Proposal queries ──────────────────────────────────────────────

    def get_proposal(self, proposal_id: int) -> Proposal:
        """Detached copy of proposal *proposal_id*."""
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(f"Proposal #{proposal_id} not found")
        return proposal.snapshot()

    def proposals(self) -> List[Proposal]:
        return [self._proposals[pid].snapshot() for pid in sorted(self._proposals)]

    def proposal_status(self, proposal_id: int) -> ProposalStatus:
        return self.get_proposal(proposal_id).status

    def tally(self, proposal_id: int) -> VoteTally:
        p = self.get_proposal(proposal_id)
        return VoteTally(
            proposal_id=p.id,
            votes_for=p.positive_weight,
            votes_against=p.negative_weight,
            votes_abstain=p.abstain_weight,
            net_votes=p.net_votes,
        )

    def participation_rate(self, proposal_id: int) -> Decimal:
        """Weight cast on the proposal as a percentage of total supply."""
        p = self.get_proposal(proposal_id)
        supply = getattr(self._oracle, "total_supply", None)
        if callable(supply):
            supply = supply()
        if supply is None:
            raise ConfigurationError("Weight oracle does not expose total_supply")
        supply = Decimal(supply)
        if supply <= 0:
            return Decimal("0")
        with localcontext(AMOUNT_CONTEXT):
            rate = p.participation * 100 / supply
        return rate.quantize(GOVERNANCE_PARTICIPATION_PRECISION)

    def ready_to_finalize(self, proposal_id: int) -> bool:
        p = self.get_proposal(proposal_id)
        return (
            not p.is_terminal
            and p.net_votes >= self._quorum
            and self._treasury.can_cover(p.amount)
        )

    def ready_to_cancel(self, proposal_id: int) -> bool:
        p = self.get_proposal(proposal_id)
        return not p.is_terminal and p.negative_weight >= self._quorum

    # ── Serialization ─────────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quorum": str(self._quorum),
            "owner": self._owner,
            "treasury": self._treasury.to_dict(),
            "proposalCount": self._proposal_count,
            "allowVotesOnTerminal": self._allow_votes_on_terminal,
            "proposals": {pid: p.to_dict() for pid, p in self._proposals.items()},
            "events": len(self._events),
        }

    def __repr__(self) -> str:
        return (
            f"<GovernanceLedger proposals={self._proposal_count} "
            f"quorum={self._quorum} treasury={self._treasury.balance}>"
        )
