"""
Event log export/import and state reconstruction by replay.
"""

import json
import os
import sys
from decimal import Decimal

import pytest

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from daotreasury.crypto import canonical_address
from daotreasury.governance import (
    CancelledEvent,
    EventLog,
    FinalizedEvent,
    GovernanceLedger,
    ProposalStatus,
    ProposedEvent,
    ReplayError,
    VoteChoice,
    VoteRecord,
    VotedEvent,
    event_from_dict,
    replay,
)
from daotreasury.tokens import GovernanceToken
from daotreasury.treasury import Treasury

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
RECIPIENT = "0x" + "e5" * 20
DEPLOYER = "0x" + "f6" * 20


def make_token() -> GovernanceToken:
    token = GovernanceToken(total_supply=Decimal("1000"), deployer=DEPLOYER)
    token.distribute({ALICE: Decimal("60"), BOB: Decimal("50"), CAROL: Decimal("70")})
    return token


async def run_history() -> GovernanceLedger:
    """Two proposals: #1 finalized, #2 cancelled, #3 left open."""
    ledger = GovernanceLedger(make_token(), Decimal("100"), treasury=Treasury(Decimal("50")))
    p1 = await ledger.propose("Docs", "Handbook rewrite", Decimal("10"), RECIPIENT, ALICE)
    p2 = await ledger.propose("Booth", "Meetup booth", Decimal("15"), RECIPIENT, CAROL)
    p3 = await ledger.propose("Audit", "External audit", Decimal("20"), RECIPIENT, BOB)
    await ledger.vote(p1, True, ALICE)
    await ledger.vote(p1, True, BOB)
    await ledger.finalize(p1, CAROL)
    await ledger.vote(p2, False, CAROL)
    await ledger.vote(p2, False, BOB)
    await ledger.cancel(p2, ALICE)
    await ledger.cast_vote(p3, VoteChoice.ABSTAIN, ALICE)
    return ledger


def proposed(pid, **kwargs) -> ProposedEvent:
    return ProposedEvent(
        proposal_id=pid,
        name=kwargs.get("name", "Grant"),
        description=kwargs.get("description", "Pay a contributor"),
        amount=kwargs.get("amount", Decimal("5")),
        recipient=canonical_address(RECIPIENT),
        creator=canonical_address(ALICE),
    )


class TestEventLog:

    def test_kind_filter(self):
        log = EventLog([proposed(1), FinalizedEvent(proposal_id=1)])
        assert [e.proposal_id for e in log.events("Finalize")] == [1]
        assert len(log) == 2

    def test_since(self):
        log = EventLog([proposed(1), proposed(2), proposed(3)])
        assert [e.proposal_id for e in log.since(1)] == [2, 3]

    def test_json_round_trip(self):
        log = EventLog([
            proposed(1),
            VotedEvent(proposal_id=1, voter=canonical_address(BOB), choice=VoteChoice.AGAINST,
                       weight=Decimal("50")),
            CancelledEvent(proposal_id=1),
        ])
        restored = EventLog.from_json(log.to_json())
        assert list(restored) == list(log)

    def test_voted_record_shape(self):
        event = VotedEvent(proposal_id=2, voter=ALICE, choice=VoteChoice.FOR, weight=Decimal("1"))
        data = event.to_dict()
        assert data["event"] == "Vote"
        assert data["id"] == 2
        assert data["inFavor"] is True
        assert data["choice"] == 1

    def test_vote_record_without_choice_uses_direction(self):
        event = event_from_dict({"event": "Vote", "id": 1, "voter": ALICE, "inFavor": False, "weight": "3"})
        assert event.choice == VoteChoice.AGAINST
        assert event.weight == Decimal("3")

    def test_vote_record_without_weight(self):
        with pytest.raises(ValueError, match="without weight"):
            event_from_dict({"event": "Vote", "id": 1, "voter": ALICE, "inFavor": True})

    @pytest.mark.parametrize("weight", ["0", "-4", "NaN", "Infinity", "heavy"])
    def test_vote_record_with_bad_weight(self, weight):
        with pytest.raises(ValueError):
            event_from_dict({"event": "Vote", "id": 1, "voter": ALICE, "choice": 1, "weight": weight})

    def test_unknown_record(self):
        with pytest.raises(ValueError):
            event_from_dict({"event": "Mint", "id": 1})


class TestReplay:

    @pytest.mark.asyncio
    async def test_replay_matches_ledger(self):
        ledger = await run_history()
        snapshot = replay(EventLog.from_json(ledger.event_log.to_json()))

        assert snapshot.events_applied == len(ledger.events)
        assert snapshot.proposal_count == ledger.proposal_count
        for live in ledger.proposals():
            rebuilt = snapshot.get(live.id)
            assert rebuilt.status == live.status
            assert rebuilt.positive_weight == live.positive_weight
            assert rebuilt.negative_weight == live.negative_weight
            assert rebuilt.abstain_weight == live.abstain_weight
            assert rebuilt.net_votes == live.net_votes

    @pytest.mark.asyncio
    async def test_replay_rebuilds_vote_records(self):
        ledger = await run_history()
        snapshot = replay(ledger.events)
        for voter in (ALICE, BOB, CAROL):
            addr = canonical_address(voter)
            for pid in (1, 2, 3):
                assert snapshot.vote_of(addr, pid) == ledger.vote_of(voter, pid)
        assert snapshot.vote_of(canonical_address(ALICE), 3) == VoteRecord.ABSTAINED

    @pytest.mark.asyncio
    async def test_ordered(self):
        snapshot = replay((await run_history()).events)
        assert [p.status for p in snapshot.ordered()] == [
            ProposalStatus.FINALIZED,
            ProposalStatus.CANCELLED,
            ProposalStatus.OPEN,
        ]

    def test_empty_history(self):
        snapshot = replay([])
        assert snapshot.proposal_count == 0
        assert snapshot.events_applied == 0

    def test_gap_in_ids(self):
        with pytest.raises(ReplayError, match="contiguous"):
            replay([proposed(1), proposed(3)])

    def test_event_for_unknown_proposal(self):
        with pytest.raises(ReplayError):
            replay([FinalizedEvent(proposal_id=1)])

    def test_double_vote(self):
        vote = VotedEvent(proposal_id=1, voter=ALICE, choice=VoteChoice.FOR, weight=Decimal("1"))
        with pytest.raises(ReplayError) as exc:
            replay([proposed(1), vote, vote])
        assert exc.value.kind == "ReplayError"

    def test_finalize_then_cancel(self):
        with pytest.raises(ReplayError):
            replay([proposed(1), FinalizedEvent(proposal_id=1), CancelledEvent(proposal_id=1)])

    def test_exported_json_is_a_list_of_records(self):
        log = EventLog([proposed(1)])
        [record] = json.loads(log.to_json())
        assert record["event"] == "Propose"
        assert record["amount"] == "5"
