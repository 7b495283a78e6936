"""
Contracts Layer

Immutable types shared by every other layer. Nothing in here performs
I/O or depends on another fieldstate layer.
"""

from .base import (
    ErrorCode, Error, Timestamp, TimeRange,
    MIN_TIME, KEY_EPSILON,
    to_utc, parse_instant, format_instant, key_before, extract_time_from_id,
)
from .state import (
    State, Untracked, Active, Inactive, Named, Composite,
    UNTRACKED, ACTIVE, INACTIVE,
    normalize_state, state_to_json, simplify_state,
)
from .events import (
    MISSING, Event, BoundaryRole, REPAIRABLE_ROLES, Boundary, IntervalDelta,
    Repair, StateErrorSummary,
)
from .errors import (
    FieldStateError, DurationError, BadStateError, StateChangeError,
    LastStateError, OverlappingBlockError, RepeatedStateError,
    ConflictError, EventNotFoundError,
)

__all__ = [
    # Base
    'ErrorCode', 'Error', 'Timestamp', 'TimeRange',
    'MIN_TIME', 'KEY_EPSILON',
    'to_utc', 'parse_instant', 'format_instant', 'key_before', 'extract_time_from_id',
    # State
    'State', 'Untracked', 'Active', 'Inactive', 'Named', 'Composite',
    'UNTRACKED', 'ACTIVE', 'INACTIVE',
    'normalize_state', 'state_to_json', 'simplify_state',
    # Events
    'MISSING', 'Event', 'BoundaryRole', 'REPAIRABLE_ROLES', 'Boundary',
    'IntervalDelta', 'Repair', 'StateErrorSummary',
    # Errors
    'FieldStateError', 'DurationError', 'BadStateError', 'StateChangeError',
    'LastStateError', 'OverlappingBlockError', 'RepeatedStateError',
    'ConflictError', 'EventNotFoundError',
]
