"""
Interval Derivation

RESPONSIBILITY: Map one event to the timeline facts it contributes
ALLOWED INPUTS: Event or NormalizedEvent
OUTPUTS: Boundary rows (state_change view), IntervalDelta rows
         (duration_blocks view)

GUARANTEES:
===========
- Pure: the same event always yields the same facts, in the same order
- Events without a field or occur time contribute nothing
- A zero duration contributes no Boundary and one point delta

BOUNDARIES PER EVENT (at occur time T):
=======================================
occurrence   Untracked -> Inactive at T, only when lastState is Untracked
             and the state is not
switch       lastState -> state at T
block  (s>0) lastState -> state at T-s, state -> stateAfterBlock at T
             stateAfterBlock is Inactive when lastState is Untracked,
             otherwise lastState
hole   (s<0) state -> Inactive at T-|s|, Inactive -> state at T
"""

from __future__ import annotations
from datetime import timedelta
from typing import List, Optional, Union

from ..contracts.events import Boundary, BoundaryRole, Event, IntervalDelta
from ..contracts.state import INACTIVE, UNTRACKED
from .normalizer import NormalizedEvent, TransitionKind, normalize_event

BOUNDARY_VIEW = "state_change"
DELTA_VIEW = "duration_blocks"

EventLike = Union[Event, NormalizedEvent]


class IntervalDeriver:
    """Deterministic per-event derivation of Boundary and IntervalDelta facts."""

    def _normalized(self, event: EventLike) -> Optional[NormalizedEvent]:
        if isinstance(event, NormalizedEvent):
            return event
        return normalize_event(event)

    def boundaries(self, event: EventLike) -> List[Boundary]:
        norm = self._normalized(event)
        if norm is None:
            return []

        field, at, event_id = norm.field, norm.occur_time, norm.event_id

        if norm.kind is TransitionKind.OCCURRENCE:
            if norm.last_state == UNTRACKED and norm.state != UNTRACKED:
                return [Boundary(field, at, UNTRACKED, INACTIVE, event_id,
                                 BoundaryRole.OCCURRENCE)]
            return []

        if norm.kind is TransitionKind.SWITCH:
            return [Boundary(field, at, norm.last_state, norm.state, event_id,
                             BoundaryRole.SWITCH)]

        seconds = norm.duration_seconds or 0.0
        if seconds == 0:
            return []

        begin = at - timedelta(seconds=abs(seconds))
        if seconds > 0:
            after = INACTIVE if norm.last_state == UNTRACKED else norm.last_state
            return [
                Boundary(field, begin, norm.last_state, norm.state, event_id,
                         BoundaryRole.BLOCK_START),
                Boundary(field, at, norm.state, after, event_id,
                         BoundaryRole.BLOCK_END),
            ]
        return [
            Boundary(field, begin, norm.state, INACTIVE, event_id,
                     BoundaryRole.HOLE_START),
            Boundary(field, at, INACTIVE, norm.state, event_id,
                     BoundaryRole.HOLE_END),
        ]

    def interval_deltas(self, event: EventLike) -> List[IntervalDelta]:
        norm = self._normalized(event)
        if norm is None:
            return []

        field, at, event_id = norm.field, norm.occur_time, norm.event_id
        if not norm.has_block:
            return [IntervalDelta(field, at, 0, event_id)]

        begin = at - timedelta(seconds=abs(norm.duration_seconds))
        return [
            IntervalDelta(field, begin, 1, event_id),
            IntervalDelta(field, at, -1, event_id),
        ]
