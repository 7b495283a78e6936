"""
Integration Test Fixtures

Explicit event documents on a fixed day. Document ids embed their
occur time ("<field>:<iso>") unless a test needs otherwise.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fieldstate.contracts.base import format_instant
from fieldstate.contracts.events import MISSING
from fieldstate.storage import InMemoryEventStore


# =============================================================================
# FIXED TIMESTAMPS (deterministic)
# =============================================================================

FIELD = "bar"
DAY = datetime(2023, 8, 22, 0, 0, 0, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0) -> datetime:
    return DAY + timedelta(hours=hour, minutes=minute)


def doc_id(field: str, when: datetime) -> str:
    return f"{field}:{format_instant(when)}"


# =============================================================================
# EVENT DOCUMENTS
# =============================================================================

def event_doc(
    when: datetime,
    field: str = FIELD,
    state: Any = MISSING,
    last_state: Any = MISSING,
    dur: Any = MISSING,
    _id: Optional[str] = None
) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "field": field,
        "occurTime": {"utc": format_instant(when), "o": 0},
    }
    if state is not MISSING:
        data["state"] = state
    if last_state is not MISSING:
        data["lastState"] = last_state
    if dur is not MISSING:
        data["dur"] = dur
    return {"_id": _id or doc_id(field, when), "data": data, "meta": {}}


def switch(when: datetime, state: Any, last_state: Any, field: str = FIELD, _id: Optional[str] = None):
    return event_doc(when, field=field, state=state, last_state=last_state, _id=_id)


def block(
    end: datetime,
    dur: str,
    last_state: Any,
    state: Any = True,
    field: str = FIELD,
    _id: Optional[str] = None
):
    """A block finishing at `end`."""
    return event_doc(end, field=field, state=state, last_state=last_state, dur=dur, _id=_id)


def occurrence(when: datetime, field: str = FIELD, **kwargs):
    return event_doc(when, field=field, **kwargs)


def make_store(*docs: Dict[str, Any]) -> InMemoryEventStore:
    store = InMemoryEventStore()
    store.add_events(docs)
    return store


# =============================================================================
# SCENARIOS
# =============================================================================

def consistent_switches():
    """on at 10:00, off at 11:00, on at 12:00."""
    return [
        switch(at(10), True, None),
        switch(at(11), False, True),
        switch(at(12), True, False),
    ]


def intersecting_blocks():
    """Off at 09:00, then blocks 10:00-11:00 and 10:30-11:30."""
    return [
        switch(at(9), False, None),
        block(at(11), "PT1H", False),
        block(at(11, 30), "PT1H", False),
    ]
