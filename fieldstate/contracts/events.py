"""
Event and Derived-Fact Contracts

DATA FLOW:
==========
Event (persisted, user-authored)
  -> Boundary       "at t, state changed from lastState to activeState"
  -> IntervalDelta  "+1 opens a block, -1 closes one, 0 is a point fact"
  -> StateErrorSummary (validation output)

Boundaries and IntervalDeltas are never persisted. They are pure
functions of Events, recomputed whenever the index is rebuilt.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .base import Timestamp, format_instant
from .errors import StateChangeError
from .state import State, state_to_json


# =============================================================================
# ABSENCE ENCODING
# =============================================================================

class _Missing:
    """
    Marker for a key that is absent from an event document.

    Absent and explicit null mean different things for state, lastState
    and dur, so None cannot stand in for "not given".
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "MISSING"

    def __bool__(self):
        return False

    def __reduce__(self):
        return (_Missing, ())


MISSING: Any = _Missing()


# =============================================================================
# EVENTS
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    One user-logged record against a field.

    `state`, `last_state` and `duration` hold the raw JSON values exactly
    as stored; interpretation belongs to the normalizer.
    """
    id: str
    field: Optional[str]
    occur_time: Optional[Timestamp]
    state: Any = MISSING
    last_state: Any = MISSING
    duration: Any = MISSING
    rev: Optional[str] = None

    @staticmethod
    def from_document(doc: Dict[str, Any]) -> Event:
        """
        Build an Event from a stored document, accepting both the wrapped
        {_id, _rev, data: {...}, meta: {...}} and the flat layout.
        """
        data = doc['data'] if isinstance(doc.get('data'), dict) else doc
        doc_id = doc.get('_id') or doc.get('id')
        if not doc_id:
            raise ValueError("Event document has no _id")
        return Event(
            id=str(doc_id),
            field=data.get('field'),
            occur_time=Timestamp.from_json(data.get('occurTime')),
            state=data.get('state', MISSING),
            last_state=data.get('lastState', MISSING),
            duration=data.get('dur', MISSING),
            rev=doc.get('_rev'),
        )

    def to_document(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.field is not None:
            data['field'] = self.field
        if self.occur_time is not None:
            data['occurTime'] = self.occur_time.to_json()
        for key, value in (
            ('state', self.state),
            ('lastState', self.last_state),
            ('dur', self.duration),
        ):
            if value is not MISSING:
                data[key] = value
        doc: Dict[str, Any] = {'_id': self.id, 'data': data}
        if self.rev is not None:
            doc['_rev'] = self.rev
        return doc

    def apply_patch(self, patch: Dict[str, Any], rev: Optional[str] = None) -> Event:
        """Return a copy with document-level keys (lastState, state, dur) replaced."""
        mapping = {'state': 'state', 'lastState': 'last_state', 'dur': 'duration'}
        changes: Dict[str, Any] = {}
        for key, value in patch.items():
            if key not in mapping:
                raise ValueError(f"Unsupported patch key: {key}")
            changes[mapping[key]] = value
        return replace(self, rev=rev, **changes)


# =============================================================================
# DERIVED FACTS
# =============================================================================

class BoundaryRole(Enum):
    """Where a boundary came from. Determines ordering and repairability."""
    SWITCH = "switch"
    OCCURRENCE = "occurrence"
    BLOCK_START = "block_start"
    BLOCK_END = "block_end"
    HOLE_START = "hole_start"
    HOLE_END = "hole_end"
    INITIAL = "initial"

    @property
    def rank(self) -> int:
        """Tie-break at equal timestamps: closes, then opens, then points."""
        return _ROLE_RANK[self]


_ROLE_RANK = {
    BoundaryRole.INITIAL: -1,
    BoundaryRole.BLOCK_END: 0,
    BoundaryRole.HOLE_END: 0,
    BoundaryRole.BLOCK_START: 1,
    BoundaryRole.HOLE_START: 1,
    BoundaryRole.SWITCH: 2,
    BoundaryRole.OCCURRENCE: 2,
}

# Roles whose lastState is read straight from the event's lastState.
REPAIRABLE_ROLES = frozenset({
    BoundaryRole.SWITCH,
    BoundaryRole.OCCURRENCE,
    BoundaryRole.BLOCK_START,
})


@dataclass(frozen=True)
class Boundary:
    """At `timestamp`, `field` changed from `last_state` to `active_state`."""
    field: str
    timestamp: datetime
    last_state: State
    active_state: State
    event_id: str
    role: BoundaryRole = BoundaryRole.SWITCH

    @property
    def id(self) -> str:
        return self.event_id

    @property
    def key(self) -> Tuple[str, datetime]:
        return (self.field, self.timestamp)

    @property
    def value(self) -> Tuple[State, State]:
        return (self.last_state, self.active_state)

    @property
    def sort_key(self) -> Tuple[datetime, int, str]:
        return (self.timestamp, self.role.rank, self.event_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.event_id,
            'field': self.field,
            'timestamp': format_instant(self.timestamp),
            'lastState': state_to_json(self.last_state),
            'activeState': state_to_json(self.active_state),
            'role': self.role.value,
        }


_DELTA_RANK = {-1: 0, 1: 1, 0: 2}


@dataclass(frozen=True)
class IntervalDelta:
    """+1 opens a duration block, -1 closes one, 0 is a non-block point fact."""
    field: str
    timestamp: datetime
    delta: int
    event_id: str

    def __post_init__(self):
        if self.delta not in _DELTA_RANK:
            raise ValueError(f"IntervalDelta must be -1, 0 or 1, got {self.delta}")

    @property
    def id(self) -> str:
        return self.event_id

    @property
    def key(self) -> Tuple[str, datetime]:
        return (self.field, self.timestamp)

    @property
    def value(self) -> int:
        return self.delta

    @property
    def sort_key(self) -> Tuple[datetime, int, str]:
        return (self.timestamp, _DELTA_RANK[self.delta], self.event_id)


# =============================================================================
# VALIDATION OUTPUT
# =============================================================================

@dataclass(frozen=True)
class Repair:
    """One lastState rewrite applied while healing a LastStateError."""
    event_id: str
    field: str
    occur_time: datetime
    old_last_state: Any
    new_last_state: Any
    rev_before: Optional[str]
    rev_after: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.event_id,
            'field': self.field,
            'occurTime': format_instant(self.occur_time),
            'oldLastState': None if self.old_last_state is MISSING else self.old_last_state,
            'newLastState': self.new_last_state,
            'revBefore': self.rev_before,
            'revAfter': self.rev_after,
        }


@dataclass
class StateErrorSummary:
    """
    Result of a consistency check.

    `ok` is False as soon as any error has been recorded, including errors
    that were subsequently repaired (those also appear in `repairs`).
    """
    ok: bool = True
    errors: List[StateChangeError] = field(default_factory=list)
    repairs: List[Repair] = field(default_factory=list)

    def record(self, error: StateChangeError) -> bool:
        """Add an error unless an identical one is already recorded."""
        self.ok = False
        if error in self.errors:
            return False
        self.errors.append(error)
        return True

    def record_repair(self, repair: Repair) -> None:
        self.repairs.append(repair)

    def sort(self) -> None:
        self.errors.sort(key=lambda e: e.occur_time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ok': self.ok,
            'errors': [
                {
                    'type': type(e).__name__,
                    'field': e.field,
                    'occurTime': format_instant(e.occur_time),
                    'ids': list(e.ids),
                    'message': e.message,
                }
                for e in self.errors
            ],
            'repairs': [r.to_dict() for r in self.repairs],
        }
