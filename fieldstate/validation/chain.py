"""
Chain Validator

Checks state continuity along one field's ordered Boundary rows:

    rows[i-1].active_state == rows[i].last_state

rows[0] is the synthetic initial row: the last boundary before the
window, or Untracked -> Untracked at the bottom of the key space.
"""

from __future__ import annotations
from datetime import datetime
from typing import Iterator, Optional, Sequence

from ..contracts.base import MIN_TIME, key_before
from ..contracts.events import Boundary, BoundaryRole, StateErrorSummary
from ..contracts.errors import LastStateError, RepeatedStateError, StateChangeError
from ..contracts.state import UNTRACKED
from ..temporal.derivation import BOUNDARY_VIEW

INITIAL_BOUNDARY_ID = "initial_null_state"


def initial_boundary(index, field: str, start: Optional[datetime] = None) -> Boundary:
    """The boundary in effect just before `start`."""
    if start is not None:
        before = key_before(start)
        if before is not None:
            rows = index.range_scan(BOUNDARY_VIEW, field, end=before, descending=True, limit=1)
            if rows:
                return rows[0]
    return Boundary(
        field=field,
        timestamp=MIN_TIME,
        last_state=UNTRACKED,
        active_state=UNTRACKED,
        event_id=INITIAL_BOUNDARY_ID,
        role=BoundaryRole.INITIAL,
    )


class ChainValidator:
    """
    Pairwise continuity check over Boundary rows.

    With `flag_repeated_states`, a boundary whose last and active states
    are equal is also reported, as a RepeatedStateError.
    """

    def __init__(self, flag_repeated_states: bool = False):
        self._flag_repeated_states = flag_repeated_states

    def check_pair(self, prev: Boundary, curr: Boundary) -> Optional[StateChangeError]:
        ids = [prev.id, curr.id]
        if prev.active_state != curr.last_state:
            return LastStateError(curr.field, curr.timestamp, ids)
        if self._flag_repeated_states and curr.last_state == curr.active_state:
            return RepeatedStateError(curr.field, curr.timestamp, ids)
        return None

    def iter_breaks(self, rows: Sequence[Boundary]) -> Iterator[StateChangeError]:
        for i in range(1, len(rows)):
            error = self.check_pair(rows[i - 1], rows[i])
            if error is not None:
                yield error

    def first_break(self, rows: Sequence[Boundary]) -> Optional[StateChangeError]:
        return next(self.iter_breaks(rows), None)

    def validate(self, rows: Sequence[Boundary], fail_on_error: bool = True) -> StateErrorSummary:
        """Raise the first break, or collect every break when fail_on_error is False."""
        summary = StateErrorSummary()
        for error in self.iter_breaks(rows):
            if fail_on_error:
                raise error
            summary.record(error)
        return summary
