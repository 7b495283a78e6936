"""
Consistency Orchestrator

RESPONSIBILITY: Check one field's timeline over [start, end), find the
root cause of every chain break, report or repair it
ALLOWED INPUTS: An EventIndex, a field name, a time window
OUTPUTS: StateErrorSummary (or the first unresolved StateChangeError)

STATE MACHINE:
==============
Scanning(window_start)
  -> Validating      chain check from the anchor row onwards
  -> RootCausing     on a LastStateError, look for overlapping blocks
                     between the two rows
  -> Repairing       no overlap, fix requested, boundary repairable:
                     patch curr.lastState, then Scanning(prev.timestamp)
  -> Done

GUARANTEES:
===========
- An overlap found while root-causing is reported instead of the chain
  break it explains, and is never repaired
- Each (event, timestamp) boundary is patched at most once per check
- Repaired errors stay in the summary, which is therefore not ok
- A stale revision during repair restarts the current window up to
  `max_conflict_restarts` times, then ConflictError propagates
- A LastStateError unrelated to an overlap but lying inside that
  overlap's root-cause window is not reported
"""

from __future__ import annotations
from datetime import datetime
from typing import List, Optional, Set, Tuple

from ..contracts.base import extract_time_from_id, format_instant
from ..contracts.events import Boundary, REPAIRABLE_ROLES, Repair, StateErrorSummary
from ..contracts.errors import (
    ConflictError, EventNotFoundError, LastStateError, OverlappingBlockError,
    StateChangeError,
)
from ..contracts.state import state_to_json
from ..observability import AuditEventType, AuditTrail
from ..temporal.derivation import BOUNDARY_VIEW, DELTA_VIEW
from ..logger import get_logger
from .chain import ChainValidator, initial_boundary
from .overlap import BlockOverlapValidator, initial_delta

logger = get_logger(__name__)

_DONE = object()


class ConsistencyOrchestrator:
    """
    Drives a consistency check of a single field.

    Holds no state between `check` calls; independent instances may
    check different fields concurrently.
    """

    def __init__(
        self,
        index,
        field: str,
        audit: Optional[AuditTrail] = None,
        flag_repeated_states: bool = False,
        sweep_overlaps: bool = True,
        max_conflict_restarts: int = 1
    ):
        self._index = index
        self._field = field
        self._audit = audit
        self._chain = ChainValidator(flag_repeated_states=flag_repeated_states)
        self._overlap = BlockOverlapValidator()
        self._sweep_overlaps = sweep_overlaps
        self._max_conflict_restarts = max_conflict_restarts

    @property
    def field(self) -> str:
        return self._field

    def check(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        fail_on_error: bool = True,
        fix: bool = False
    ) -> StateErrorSummary:
        """
        Check [start, end).

        With fail_on_error the first unresolved error is raised. Otherwise
        every discoverable error is collected into the returned summary.
        """
        self._audit_event(
            AuditEventType.CHECK_STARTED, "check",
            start=_fmt(start), end=_fmt(end), fix=fix, fail_on_error=fail_on_error,
        )
        summary = StateErrorSummary()
        attempted: Set[Tuple[str, datetime]] = set()
        conflicts = 0
        window_start = start

        while True:
            try:
                next_start = self._scan(window_start, end, fail_on_error, fix, summary, attempted)
            except ConflictError as exc:
                self._audit_event(AuditEventType.CONFLICT, "repair_conflict",
                                  entity_id=exc.doc_id, attempt=conflicts + 1)
                if conflicts >= self._max_conflict_restarts:
                    raise
                conflicts += 1
                logger.warning("%s: %s; restarting window at %s",
                               self._field, exc, _fmt(window_start))
                continue
            if next_start is _DONE:
                break
            window_start = next_start

        if self._sweep_overlaps:
            rows = [initial_delta(self._index, self._field, start)]
            rows.extend(self._index.range_scan(DELTA_VIEW, self._field, start, end,
                                               inclusive_end=False))
            for error in self._overlap.iter_overlaps(rows):
                self._report(error, summary, fail_on_error)

        summary.sort()
        self._audit_event(AuditEventType.CHECK_FINISHED, "check",
                          ok=summary.ok, errors=len(summary.errors),
                          repairs=len(summary.repairs))
        return summary

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def _scan(
        self,
        window_start: Optional[datetime],
        end: Optional[datetime],
        fail_on_error: bool,
        fix: bool,
        summary: StateErrorSummary,
        attempted: Set[Tuple[str, datetime]]
    ):
        """One pass from window_start. Returns where to restart, or _DONE."""
        rows: List[Boundary] = self._index.range_scan(
            BOUNDARY_VIEW, self._field, window_start, end, inclusive_end=False
        )
        logger.debug("%s: scanning %d rows from %s", self._field, len(rows), _fmt(window_start))
        if not rows:
            return _DONE

        anchor = initial_boundary(self._index, self._field, window_start)
        anchor_in_window = False
        i = 0
        while i < len(rows):
            curr = rows[i]
            error = self._chain.check_pair(anchor, curr)
            if error is None:
                anchor, anchor_in_window = curr, True
                i += 1
                continue

            if not isinstance(error, LastStateError):
                self._report(error, summary, fail_on_error)
                anchor, anchor_in_window = curr, True
                i += 1
                continue

            window_end = self._root_cause_end(anchor, curr)
            overlaps = self._find_overlaps(anchor.timestamp, window_end)
            if overlaps:
                for overlap in overlaps:
                    self._report(overlap, summary, fail_on_error)
                j = i
                while j < len(rows) and rows[j].timestamp < window_end:
                    j += 1
                if j >= len(rows):
                    return _DONE
                anchor, anchor_in_window = rows[j], True
                i = j + 1
                continue

            key = (curr.event_id, curr.timestamp)
            if fix and curr.role in REPAIRABLE_ROLES and key not in attempted:
                attempted.add(key)
                summary.record(error)
                try:
                    self._repair(anchor, curr, summary)
                except ConflictError:
                    attempted.discard(key)
                    raise
                return anchor.timestamp if anchor_in_window else window_start

            if fix:
                logger.warning("%s: cannot repair %s boundary of %s",
                               self._field, curr.role.value, curr.event_id)
            self._report(error, summary, fail_on_error)
            anchor, anchor_in_window = curr, True
            i += 1

        return _DONE

    def _report(self, error: StateChangeError, summary: StateErrorSummary, fail_on_error: bool):
        if summary.record(error):
            logger.warning("%s", error)
            self._audit_event(AuditEventType.ERROR_REPORTED, type(error).__name__,
                              entity_id=error.ids[-1], message=error.message)
        if fail_on_error:
            raise error

    # -------------------------------------------------------------------------
    # Root-causing
    # -------------------------------------------------------------------------

    def _root_cause_end(self, prev: Boundary, curr: Boundary) -> datetime:
        """Latest instant either event touches: row time, id time or occur time."""
        candidates = [curr.timestamp]
        for row in (prev, curr):
            embedded = extract_time_from_id(row.id)
            if embedded is not None:
                candidates.append(embedded)
            try:
                event = self._index.get_event(row.id)
            except EventNotFoundError:
                continue
            if event.occur_time is not None:
                candidates.append(event.occur_time.value)
        return max(candidates)

    def _find_overlaps(self, start: datetime, end: datetime) -> List[OverlappingBlockError]:
        rows = [initial_delta(self._index, self._field, start)]
        rows.extend(self._index.range_scan(DELTA_VIEW, self._field, start, end))
        return self._overlap.find_overlaps(rows)

    # -------------------------------------------------------------------------
    # Repair
    # -------------------------------------------------------------------------

    def _repair(self, prev: Boundary, curr: Boundary, summary: StateErrorSummary):
        event = self._index.get_event(curr.event_id)
        new_last_state = state_to_json(prev.active_state)
        patched = self._index.patch_event(event.id, event.rev, {'lastState': new_last_state})
        repair = Repair(
            event_id=event.id,
            field=self._field,
            occur_time=curr.timestamp,
            old_last_state=event.last_state,
            new_last_state=new_last_state,
            rev_before=event.rev,
            rev_after=patched.rev,
        )
        summary.record_repair(repair)
        logger.info("%s: repaired lastState of %s (%s -> %s)",
                    self._field, event.id, event.rev, patched.rev)
        self._audit_event(AuditEventType.REPAIR_APPLIED, "patch_last_state",
                          entity_id=event.id, rev_before=event.rev, rev_after=patched.rev)

    def _audit_event(self, event_type: AuditEventType, action: str,
                     entity_id: Optional[str] = None, **metadata):
        if self._audit is not None:
            self._audit.record(event_type, action, field=self._field,
                               entity_id=entity_id, **metadata)


def _fmt(value: Optional[datetime]) -> str:
    return format_instant(value) if value is not None else "-"
