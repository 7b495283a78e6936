"""
Event Normalizer

RESPONSIBILITY: Resolve an event's implicit state, prior state and duration
ALLOWED INPUTS: Event (raw JSON values)
OUTPUTS: NormalizedEvent

RESOLUTION RULES (fixed priority, no configuration):
====================================================
- duration:  explicit value if present; else null when state is absent
             (an occurrence); else "no duration" (a switch)
- state:     explicit value if present; else Active
- lastState: explicit value if present; else Active when state is
             Inactive, otherwise Inactive

WHAT THIS MODULE MUST NOT DO:
=============================
- Read storage or any other event
- Decide whether the timeline is consistent
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..contracts.events import Event, MISSING
from ..contracts.errors import DurationError
from ..contracts.state import ACTIVE, INACTIVE, State, normalize_state
from .duration import parse_duration_seconds


class TransitionKind(Enum):
    """What an event contributes to its field's timeline."""
    OCCURRENCE = "occurrence"   # duration resolved to null
    SWITCH = "switch"           # explicit state, no duration
    BLOCK = "block"             # explicit duration string


@dataclass(frozen=True)
class NormalizedEvent:
    event_id: str
    field: str
    occur_time: datetime
    kind: TransitionKind
    state: State
    last_state: State
    duration_seconds: Optional[float] = None

    @property
    def has_block(self) -> bool:
        return self.kind is TransitionKind.BLOCK and bool(self.duration_seconds)


def default_last_state(state: State) -> State:
    return ACTIVE if state == INACTIVE else INACTIVE


def normalize_event(event: Event) -> Optional[NormalizedEvent]:
    """
    Resolve implicit values for one event.

    Returns None for events that sit outside any timeline (no field or
    no occur time). Raises DurationError when `dur` is present but is
    neither null nor a valid signed ISO-8601 duration.
    """
    if not event.field or event.occur_time is None:
        return None

    duration: Any = event.duration
    if duration is MISSING:
        duration = None if event.state is MISSING else MISSING

    state = ACTIVE if event.state is MISSING else normalize_state(event.state)
    if event.last_state is MISSING:
        last_state = default_last_state(state)
    else:
        last_state = normalize_state(event.last_state)

    if duration is None:
        kind = TransitionKind.OCCURRENCE
        seconds = None
    elif duration is MISSING:
        kind = TransitionKind.SWITCH
        seconds = None
    elif isinstance(duration, str):
        kind = TransitionKind.BLOCK
        seconds = parse_duration_seconds(duration)
    else:
        raise DurationError(f"Event {event.id}: unsupported duration {duration!r}")

    return NormalizedEvent(
        event_id=event.id,
        field=event.field,
        occur_time=event.occur_time.value,
        kind=kind,
        state=state,
        last_state=last_state,
        duration_seconds=seconds,
    )
