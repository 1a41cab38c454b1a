"""
Governance Event Stream

Four event kinds are emitted, synchronously and in transition order, each
time the ledger commits a state change:

    Propose  {id, name, description, amount, recipient, creator}
    Vote     {id, voter, in_favor}   (+ choice, weight)
    Finalize {id}
    Cancel   {id}

The EventLog is append-only. Listeners subscribed to it see every event
right after the commit that produced it; the full history can be exported
and replayed (see replay.py) to reconstruct ledger state independently.
"""

import json
import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, ClassVar, Dict, Iterable, List, Optional, Type, Union

from ..logger import get_logger
from .voting import VoteChoice

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  EVENTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProposedEvent:
    """Emitted when a proposal is created."""
    event_name: ClassVar[str] = "Propose"
    proposal_id: int
    name: str
    description: str
    amount: Decimal
    recipient: str
    creator: str
    deadline: Optional[float] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event_name,
            "id": self.proposal_id,
            "name": self.name,
            "description": self.description,
            "amount": str(self.amount),
            "recipient": self.recipient,
            "creator": self.creator,
            "deadline": self.deadline,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProposedEvent":
        return cls(
            proposal_id=data["id"],
            name=data["name"],
            description=data["description"],
            amount=Decimal(data["amount"]),
            recipient=data["recipient"],
            creator=data["creator"],
            deadline=data.get("deadline"),
            timestamp=data.get("timestamp", 0.0),
        )


@dataclass(frozen=True)
class VotedEvent:
    """Emitted for every accepted vote; weight is the balance read at vote time."""
    event_name: ClassVar[str] = "Vote"
    proposal_id: int
    voter: str
    choice: VoteChoice
    weight: Decimal
    timestamp: float = field(default_factory=time.time)

    @property
    def in_favor(self) -> bool:
        return self.choice == VoteChoice.FOR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event_name,
            "id": self.proposal_id,
            "voter": self.voter,
            "inFavor": self.in_favor,
            "choice": int(self.choice),
            "weight": str(self.weight),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VotedEvent":
        if "choice" in data:
            choice = VoteChoice.parse(data["choice"])
        else:
            choice = VoteChoice.from_bool(data["inFavor"])
        if "weight" not in data:
            raise ValueError(f"Vote record without weight: {data!r}")
        try:
            weight = Decimal(str(data["weight"]))
        except InvalidOperation:
            raise ValueError(f"Invalid vote weight: {data['weight']!r}") from None
        if not weight.is_finite() or weight <= 0:
            raise ValueError(f"Vote weight must be positive, got {data['weight']!r}")
        return cls(
            proposal_id=data["id"],
            voter=data["voter"],
            choice=choice,
            weight=weight,
            timestamp=data.get("timestamp", 0.0),
        )


@dataclass(frozen=True)
class FinalizedEvent:
    """Emitted once funds for a proposal have left custody."""
    event_name: ClassVar[str] = "Finalize"
    proposal_id: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.event_name, "id": self.proposal_id, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FinalizedEvent":
        return cls(proposal_id=data["id"], timestamp=data.get("timestamp", 0.0))


@dataclass(frozen=True)
class CancelledEvent:
    """Emitted when AGAINST weight cancels a proposal."""
    event_name: ClassVar[str] = "Cancel"
    proposal_id: int
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.event_name, "id": self.proposal_id, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CancelledEvent":
        return cls(proposal_id=data["id"], timestamp=data.get("timestamp", 0.0))


GovernanceEvent = Union[ProposedEvent, VotedEvent, FinalizedEvent, CancelledEvent]
Listener = Callable[[GovernanceEvent], None]

EVENT_TYPES: Dict[str, Type] = {
    "Propose": ProposedEvent,
    "Vote": VotedEvent,
    "Finalize": FinalizedEvent,
    "Cancel": CancelledEvent,
}


def event_from_dict(data: Dict[str, Any]) -> GovernanceEvent:
    try:
        event_type = EVENT_TYPES[data["event"]]
    except KeyError:
        raise ValueError(f"Unknown event record: {data!r}") from None
    return event_type.from_dict(data)


# ══════════════════════════════════════════════════════════════════════
#  EVENT LOG
# ══════════════════════════════════════════════════════════════════════

class EventLog:
    """Append-only governance event history with synchronous listeners."""

    def __init__(self, events: Optional[Iterable[GovernanceEvent]] = None):
        self._events: List[GovernanceEvent] = list(events or [])
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: GovernanceEvent) -> None:
        """
        Append *event* and notify listeners.

        The state change behind the event is already committed, so a failing
        listener is logged and does not stop delivery to the others.
        """
        self._events.append(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Event listener {listener!r} failed on {event.event_name}")

    def events(self, kind: Optional[str] = None) -> List[GovernanceEvent]:
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.event_name == kind]

    def since(self, index: int) -> List[GovernanceEvent]:
        return self._events[index:]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(list(self._events))

    # ── Export / import ───────────────────────────────────────────────

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps([e.to_dict() for e in self._events], indent=indent)

    @classmethod
    def from_json(cls, text: str) -> "EventLog":
        return cls(event_from_dict(d) for d in json.loads(text))
