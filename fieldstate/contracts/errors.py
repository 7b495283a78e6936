"""
Error Taxonomy
==============

Exceptions raised across the layers. Every exception maps onto an
ErrorCode and can be converted into an immutable `Error` record so that
accumulated errors stay queryable after the fact.

HIERARCHY:
- FieldStateError
  - DurationError          (malformed duration, event cannot be interpreted)
  - BadStateError          (malformed state value)
  - StateChangeError       (timeline inconsistency at a specific instant)
    - LastStateError
    - OverlappingBlockError
    - RepeatedStateError
  - ConflictError          (stale revision on write)
  - EventNotFoundError
"""

from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from .base import Error, ErrorCode, format_instant


class FieldStateError(Exception):
    """Root of every error raised by this package."""
    code: ErrorCode = ErrorCode.INVALID_STATE

    def to_error(self) -> Error:
        return Error(
            code=self.code,
            message=str(self),
            timestamp=datetime.now(timezone.utc),
        )


class DurationError(FieldStateError, ValueError):
    """Duration string is not a valid signed ISO-8601 duration."""
    code = ErrorCode.INVALID_DURATION


class BadStateError(FieldStateError, ValueError):
    """State value violates the state union's rules."""
    code = ErrorCode.INVALID_STATE


class StateChangeError(FieldStateError):
    """
    A consistency failure located at one instant of one field's timeline.

    `ids` always names the two documents involved: the row that set the
    expectation and the row that broke it.
    """
    code = ErrorCode.LAST_STATE_MISMATCH
    problem = "State change error"

    def __init__(
        self,
        field: str,
        occur_time: datetime,
        ids: Sequence[str],
        message: Optional[str] = None
    ):
        self.field = field
        self.occur_time = occur_time
        self.ids: Tuple[str, ...] = tuple(ids)
        if message is None:
            message = (
                f"{field} {format_instant(occur_time)}: {self.problem}. "
                f"ids: [{', '.join(self.ids)}]"
            )
        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)

    def _identity(self):
        return (type(self), self.field, self.occur_time, self.ids)

    def __eq__(self, other):
        if not isinstance(other, StateChangeError):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self):
        return hash(self._identity())

    def __repr__(self):
        return (
            f"{type(self).__name__}(field={self.field!r}, "
            f"occur_time={format_instant(self.occur_time)!r}, ids={list(self.ids)!r})"
        )

    def to_error(self) -> Error:
        return Error(
            code=self.code,
            message=self.message,
            timestamp=self.occur_time,
            context=(
                ("field", self.field),
                ("ids", ",".join(self.ids)),
                ("type", type(self).__name__),
            )
        )


class LastStateError(StateChangeError):
    """A boundary's lastState disagrees with the previously active state."""
    code = ErrorCode.LAST_STATE_MISMATCH
    problem = "lastState does not match the previously active state"


class OverlappingBlockError(StateChangeError):
    """Duration blocks intersect, or a change lands inside a block."""
    code = ErrorCode.OVERLAPPING_BLOCK
    problem = "Overlapping blocks"

    def __init__(
        self,
        field: str,
        occur_time: datetime,
        ids: Sequence[str],
        problem: Optional[str] = None,
        message: Optional[str] = None
    ):
        if problem is not None:
            self.problem = problem
        super().__init__(field, occur_time, ids, message)


class RepeatedStateError(StateChangeError):
    """A boundary transitions into the state that was already active."""
    code = ErrorCode.REPEATED_STATE
    problem = "State is repeated"


class ConflictError(FieldStateError):
    """Optimistic-concurrency failure: the stored revision moved on."""
    code = ErrorCode.VERSION_CONFLICT

    def __init__(self, doc_id: str, expected_rev: Optional[str], actual_rev: Optional[str]):
        self.doc_id = doc_id
        self.expected_rev = expected_rev
        self.actual_rev = actual_rev
        super().__init__(
            f"Document {doc_id} update conflict: expected revision "
            f"{expected_rev}, found {actual_rev}"
        )


class EventNotFoundError(FieldStateError, KeyError):
    code = ErrorCode.EVENT_NOT_FOUND

    def __init__(self, doc_id: str):
        self.doc_id = doc_id
        super().__init__(f"No event with id {doc_id}")

    def __str__(self):
        return f"No event with id {self.doc_id}"
