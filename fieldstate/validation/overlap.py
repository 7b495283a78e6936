"""
Block Overlap Validator

Duration blocks must nest properly: every +1 is closed by a -1 before
the next +1, no -1 arrives without an open block, and no point fact (0)
lands inside an open block. Point rows are checked against the open
block but never change it.
"""

from __future__ import annotations
from datetime import datetime
from typing import Iterator, List, Optional, Sequence

from ..contracts.base import MIN_TIME, key_before
from ..contracts.events import IntervalDelta, StateErrorSummary
from ..contracts.errors import OverlappingBlockError
from ..temporal.derivation import DELTA_VIEW

INITIAL_DELTA_ID = "initial_state"

BLOCK_STARTS_WITHIN_BLOCK = "Block starts within a block"
STATE_CHANGES_WITHIN_BLOCK = "State changes within a block"
BLOCK_ENDS_WITHIN_BLOCK = "Block ends within a block"

_PAGE_GROWTH = 8


def initial_delta(index, field: str, start: Optional[datetime] = None) -> IntervalDelta:
    """
    The most recent block open/close strictly before `start`, or a
    synthetic close when there is none.
    """
    if start is not None:
        before = key_before(start)
        if before is not None:
            # Point events contribute zero rows; widen the page until a
            # non-zero row turns up or the field is exhausted.
            limit = 1
            while True:
                rows = index.range_scan(DELTA_VIEW, field, end=before, descending=True, limit=limit)
                for row in rows:
                    if row.delta != 0:
                        return row
                if len(rows) < limit:
                    break
                limit *= _PAGE_GROWTH
    return IntervalDelta(field=field, timestamp=MIN_TIME, delta=-1, event_id=INITIAL_DELTA_ID)


class BlockOverlapValidator:
    """Open/close tracking over IntervalDelta rows prefixed by an initial row."""

    def iter_overlaps(self, rows: Sequence[IntervalDelta]) -> Iterator[OverlappingBlockError]:
        if not rows:
            return
        last_block_change = rows[0]
        for curr in rows[1:]:
            problem = None
            if last_block_change.delta == 1 and curr.delta != -1:
                problem = (BLOCK_STARTS_WITHIN_BLOCK if curr.delta == 1
                           else STATE_CHANGES_WITHIN_BLOCK)
            elif last_block_change.delta == -1 and curr.delta == -1:
                problem = BLOCK_ENDS_WITHIN_BLOCK

            if problem is not None:
                yield OverlappingBlockError(
                    field=curr.field,
                    occur_time=curr.timestamp,
                    ids=[last_block_change.id, curr.id],
                    problem=problem,
                )

            if curr.delta != 0:
                last_block_change = curr

    def find_overlaps(self, rows: Sequence[IntervalDelta]) -> List[OverlappingBlockError]:
        return list(self.iter_overlaps(rows))

    def validate(self, rows: Sequence[IntervalDelta], fail_on_error: bool = True) -> StateErrorSummary:
        summary = StateErrorSummary()
        for error in self.iter_overlaps(rows):
            if fail_on_error:
                raise error
            summary.record(error)
        return summary
