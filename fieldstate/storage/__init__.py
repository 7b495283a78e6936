"""
Event Storage Layer

RESPONSIBILITY: Persist events, maintain the ordered derived-fact index
ALLOWED INPUTS: Event documents
OUTPUTS: Ordered Boundary / IntervalDelta rows, events with revisions

WHAT THIS LAYER MUST NOT DO:
============================
- Judge whether a timeline is consistent
- Repair anything on its own initiative
- Resolve revision conflicts (stale writes are rejected, never merged)

BOUNDARY ENFORCEMENT:
=====================
- Derived rows are recomputed from events on every add/patch, never
  edited in place
- Every write produces a new revision "<n>-<hash>"
- A patch carrying a stale revision raises ConflictError
- The file backend only ever appends; the latest revision of a
  document wins on load
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple, Union
import bisect
import hashlib
import json
import os

# ONLY import from contracts and the pure temporal layer
from ..contracts.base import to_utc
from ..contracts.events import Boundary, Event, IntervalDelta
from ..contracts.errors import ConflictError, EventNotFoundError, FieldStateError
from ..temporal.derivation import BOUNDARY_VIEW, DELTA_VIEW, IntervalDeriver
from ..logger import get_logger

logger = get_logger(__name__)

Row = Union[Boundary, IntervalDelta]

# Sorts after every real rank at the same timestamp.
_RANK_CEILING = 99


# =============================================================================
# INDEX INTERFACE (Dependency Inversion)
# =============================================================================

class EventIndex:
    """
    Ordered event index over the derived views.

    Rows are ordered by (timestamp, rank, event id) within one field.
    `start` and `end` are always the lower and upper key bounds; a
    descending scan walks the same range from the top.
    """

    def range_scan(
        self,
        view: str,
        field: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        inclusive_end: bool = True
    ) -> List[Row]:
        raise NotImplementedError

    def get_event(self, event_id: str) -> Event:
        """Return the current revision of an event or raise EventNotFoundError."""
        raise NotImplementedError

    def patch_event(self, event_id: str, revision: Optional[str], patch: Dict[str, Any]) -> Event:
        """Single-document optimistic update. Raises ConflictError on a stale revision."""
        raise NotImplementedError

    def fields(self) -> List[str]:
        raise NotImplementedError


# =============================================================================
# IN-MEMORY STORE (Reference Implementation)
# =============================================================================

def _revision(sequence: int, event: Event) -> str:
    content = json.dumps(event.to_document().get('data', {}), sort_keys=True)
    digest = hashlib.sha256(f"{sequence}|{event.id}|{content}".encode()).hexdigest()[:16]
    return f"{sequence}-{digest}"


def _revision_sequence(rev: Optional[str]) -> int:
    if not rev:
        return 0
    head = rev.split('-', 1)[0]
    return int(head) if head.isdigit() else 0


class InMemoryEventStore(EventIndex):
    """
    Events in a dict, derived rows in bisect-maintained sorted lists.

    Each view keeps, per field, a list of rows and a parallel list of
    their sort keys.
    """

    def __init__(self, deriver: Optional[IntervalDeriver] = None):
        self._deriver = deriver or IntervalDeriver()
        self._events: Dict[str, Event] = {}
        self._rows: Dict[str, Dict[str, List[Row]]] = {BOUNDARY_VIEW: {}, DELTA_VIEW: {}}
        self._keys: Dict[str, Dict[str, List[Tuple]]] = {BOUNDARY_VIEW: {}, DELTA_VIEW: {}}
        self._rows_by_event: Dict[str, Dict[str, List[Row]]] = {}

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def add_event(self, event: Union[Event, Dict[str, Any]]) -> Event:
        """Insert a new event. Raises ConflictError if the id is taken."""
        if isinstance(event, dict):
            event = Event.from_document(event)
        existing = self._events.get(event.id)
        if existing is not None:
            raise ConflictError(event.id, event.rev, existing.rev)
        stored = Event(
            id=event.id,
            field=event.field,
            occur_time=event.occur_time,
            state=event.state,
            last_state=event.last_state,
            duration=event.duration,
            rev=event.rev or _revision(1, event),
        )
        self._index(stored, self._derive(stored))
        self._events[stored.id] = stored
        return stored

    def add_events(self, events) -> List[Event]:
        return [self.add_event(event) for event in events]

    def patch_event(self, event_id: str, revision: Optional[str], patch: Dict[str, Any]) -> Event:
        current = self.get_event(event_id)
        if current.rev != revision:
            raise ConflictError(event_id, revision, current.rev)
        patched = current.apply_patch(patch)
        patched = replace(patched, rev=_revision(_revision_sequence(current.rev) + 1, patched))
        derived = self._derive(patched)
        self._unindex(current.id)
        self._index(patched, derived)
        self._events[event_id] = patched
        logger.debug("Patched %s %s -> %s", event_id, current.rev, patched.rev)
        return patched

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_event(self, event_id: str) -> Event:
        try:
            return self._events[event_id]
        except KeyError:
            raise EventNotFoundError(event_id) from None

    def has_event(self, event_id: str) -> bool:
        return event_id in self._events

    def all_events(self) -> List[Event]:
        return list(self._events.values())

    def fields(self) -> List[str]:
        names = set()
        for per_field in self._rows.values():
            names.update(name for name, rows in per_field.items() if rows)
        return sorted(names)

    def range_scan(
        self,
        view: str,
        field: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        inclusive_end: bool = True
    ) -> List[Row]:
        if view not in self._rows:
            raise ValueError(f"Unknown view: {view}")
        rows = self._rows[view].get(field, [])
        keys = self._keys[view].get(field, [])

        lo = 0 if start is None else bisect.bisect_left(keys, (to_utc(start),))
        if end is None:
            hi = len(keys)
        elif inclusive_end:
            hi = bisect.bisect_left(keys, (to_utc(end), _RANK_CEILING))
        else:
            hi = bisect.bisect_left(keys, (to_utc(end),))

        if lo >= hi:
            return []
        if descending:
            if limit is not None:
                lo = max(lo, hi - limit)
            return rows[lo:hi][::-1]
        if limit is not None:
            hi = min(hi, lo + limit)
        return rows[lo:hi]

    # -------------------------------------------------------------------------
    # Index maintenance
    # -------------------------------------------------------------------------

    def _derive(self, event: Event) -> Dict[str, List[Row]]:
        """Derive every view's rows up front so a bad event leaves the index untouched."""
        return {
            BOUNDARY_VIEW: self._deriver.boundaries(event),
            DELTA_VIEW: self._deriver.interval_deltas(event),
        }

    def _index(self, event: Event, derived: Dict[str, List[Row]]):
        for view, rows in derived.items():
            for row in rows:
                field_rows = self._rows[view].setdefault(row.field, [])
                field_keys = self._keys[view].setdefault(row.field, [])
                pos = bisect.bisect_right(field_keys, row.sort_key)
                field_keys.insert(pos, row.sort_key)
                field_rows.insert(pos, row)
        self._rows_by_event[event.id] = derived

    def _unindex(self, event_id: str):
        derived = self._rows_by_event.pop(event_id, {})
        for view, rows in derived.items():
            for row in rows:
                field_rows = self._rows[view][row.field]
                field_keys = self._keys[view][row.field]
                pos = bisect.bisect_left(field_keys, row.sort_key)
                while field_rows[pos] != row:
                    pos += 1
                del field_rows[pos]
                del field_keys[pos]


# =============================================================================
# FILE-BASED STORE
# =============================================================================

class FileEventStore(InMemoryEventStore):
    """
    Append-only JSON-lines store.

    Every add and every patch appends the full document revision. On
    load, later lines for the same _id replace earlier ones.
    """

    FILE_NAME = "events.jsonl"

    def __init__(self, path: str, deriver: Optional[IntervalDeriver] = None):
        super().__init__(deriver)
        if os.path.isdir(path) or not os.path.splitext(path)[1]:
            os.makedirs(path, exist_ok=True)
            path = os.path.join(path, self.FILE_NAME)
        else:
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
        self._path = path
        self._load()

    @property
    def path(self) -> str:
        return self._path

    def _load(self):
        if not os.path.exists(self._path):
            return
        latest: Dict[str, Event] = {}
        with open(self._path, 'r') as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    doc = json.loads(line)
                except json.JSONDecodeError as exc:
                    raise ValueError(f"{self._path}:{line_no}: invalid JSON") from exc
                event = Event.from_document(doc)
                latest.pop(event.id, None)
                latest[event.id] = event
        loaded = 0
        for event in latest.values():
            try:
                super().add_event(event)
            except FieldStateError as exc:
                logger.warning("Skipping %s in %s: %s", event.id, self._path, exc)
                continue
            loaded += 1
        logger.debug("Loaded %d events from %s", loaded, self._path)

    def _append(self, event: Event):
        with open(self._path, 'a') as f:
            f.write(json.dumps(event.to_document(), sort_keys=True) + '\n')

    def add_event(self, event: Union[Event, Dict[str, Any]]) -> Event:
        stored = super().add_event(event)
        self._append(stored)
        return stored

    def patch_event(self, event_id: str, revision: Optional[str], patch: Dict[str, Any]) -> Event:
        patched = super().patch_event(event_id, revision, patch)
        self._append(patched)
        return patched


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class StoreConfig:
    """Configuration for event storage."""
    backend_type: str = "memory"  # "memory" or "file"
    path: Optional[str] = None


def create_store(config: Optional[StoreConfig] = None) -> InMemoryEventStore:
    config = config or StoreConfig()
    if config.backend_type == "file":
        if not config.path:
            raise ValueError("File store requires a path")
        return FileEventStore(config.path)
    return InMemoryEventStore()


__all__ = [
    'Row',
    'EventIndex',
    'InMemoryEventStore',
    'FileEventStore',
    'StoreConfig',
    'create_store',
]
