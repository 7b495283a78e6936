"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- All types are frozen dataclasses for immutability guarantee
- All instants are UTC; offsets are kept only as display hints
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple, Union
from enum import Enum, auto
import re


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    No silent fallbacks - every error state is enumerated.
    """
    # Event interpretation errors
    INVALID_DURATION = auto()
    INVALID_STATE = auto()

    # Timeline consistency errors
    LAST_STATE_MISMATCH = auto()
    OVERLAPPING_BLOCK = auto()
    REPEATED_STATE = auto()

    # Storage errors
    VERSION_CONFLICT = auto()
    EVENT_NOT_FOUND = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data, not exceptions - they can be stored and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'code': self.code.name,
            'message': self.message,
            'timestamp': format_instant(self.timestamp),
            'context': dict(self.context),
        }


# =============================================================================
# TEMPORAL TYPES (Immutable, explicit semantics)
# =============================================================================

# Bottom of the key space; also the "zero date" of the synthetic initial row.
MIN_TIME = datetime.min.replace(tzinfo=timezone.utc)

# Smallest representable step between two keys.
KEY_EPSILON = timedelta(microseconds=1)

_ID_TIME_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}T[0-9:.]+Z")


def to_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_instant(iso_string: str) -> datetime:
    """Parse an ISO-8601 instant into an aware UTC datetime."""
    try:
        dt = datetime.fromisoformat(iso_string.strip().replace('Z', '+00:00'))
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Invalid ISO timestamp: {iso_string!r}") from exc
    return to_utc(dt)


def format_instant(value: datetime) -> str:
    """Render as a millisecond-precision ISO string ending in Z."""
    return to_utc(value).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def key_before(value: datetime) -> Optional[datetime]:
    """Largest key strictly before value, or None at the bottom of the key space."""
    if value <= MIN_TIME:
        return None
    return value - KEY_EPSILON


def extract_time_from_id(doc_id: str) -> Optional[datetime]:
    """Pull the first embedded ISO instant out of a document id."""
    match = _ID_TIME_PATTERN.search(doc_id or "")
    if not match:
        return None
    try:
        return parse_instant(match.group(0))
    except ValueError:
        return None


@dataclass(frozen=True)
class Timestamp:
    """
    Immutable timestamp with explicit semantics.

    `value` is always UTC. `utc_offset` is an optional hint (in hours)
    recording the local offset the event was logged in; it never
    participates in ordering.
    """
    value: datetime
    utc_offset: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, 'value', to_utc(self.value))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    @staticmethod
    def from_iso(iso_string: str, utc_offset: Optional[float] = None) -> Timestamp:
        dt = datetime.fromisoformat(iso_string.strip().replace('Z', '+00:00'))
        if utc_offset is None and dt.tzinfo is not None:
            offset = dt.utcoffset()
            if offset:
                utc_offset = offset.total_seconds() / 3600
        return Timestamp(value=to_utc(dt), utc_offset=utc_offset)

    @staticmethod
    def from_json(raw: Union[str, Dict[str, Any], None]) -> Optional[Timestamp]:
        """
        Accept either a plain ISO string or an occur-time object of the
        form {"utc": "...", "o": -4, "tz": "America/New_York"}.
        """
        if raw is None:
            return None
        if isinstance(raw, str):
            return Timestamp.from_iso(raw)
        if isinstance(raw, dict) and raw.get('utc'):
            return Timestamp.from_iso(raw['utc'], utc_offset=raw.get('o'))
        raise ValueError(f"Unrecognized timestamp: {raw!r}")

    def to_iso(self) -> str:
        return format_instant(self.value)

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'utc': self.to_iso()}
        if self.utc_offset is not None:
            data['o'] = self.utc_offset
        return data

    def local(self) -> datetime:
        """The instant rendered in its recorded offset (UTC when unknown)."""
        if self.utc_offset is None:
            return self.value
        return self.value.astimezone(timezone(timedelta(hours=self.utc_offset)))


@dataclass(frozen=True)
class TimeRange:
    """
    Immutable half-open time range [start, end) for queries.
    A missing bound means unbounded on that side.
    """
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self):
        if self.start is not None:
            object.__setattr__(self, 'start', to_utc(self.start))
        if self.end is not None:
            object.__setattr__(self, 'end', to_utc(self.end))
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("TimeRange start must be before or equal to end")

    @property
    def lower(self) -> datetime:
        return self.start if self.start is not None else MIN_TIME

    def contains(self, value: datetime) -> bool:
        value = to_utc(value)
        return self.lower <= value and (self.end is None or value < self.end)
