"""
Chain Validator Tests
=====================

INVARIANTS TESTED:
1. Each boundary's lastState equals the previous boundary's activeState
2. The initial row is the last boundary before the window, else Untracked
3. Repeated states are only reported when asked for
"""

from datetime import datetime, timedelta, timezone

import pytest

from fieldstate.contracts.base import MIN_TIME
from fieldstate.contracts.errors import LastStateError, RepeatedStateError
from fieldstate.contracts.events import Boundary, BoundaryRole
from fieldstate.contracts.state import ACTIVE, INACTIVE, UNTRACKED, Named
from fieldstate.storage import InMemoryEventStore
from fieldstate.validation import ChainValidator, initial_boundary, INITIAL_BOUNDARY_ID

T0 = datetime(2023, 8, 22, 10, 0, 0, tzinfo=timezone.utc)


def row(hours: int, last, active, event_id: str) -> Boundary:
    return Boundary("bar", T0 + timedelta(hours=hours), last, active, event_id)


def initial() -> Boundary:
    return Boundary("bar", MIN_TIME, UNTRACKED, UNTRACKED, INITIAL_BOUNDARY_ID,
                    BoundaryRole.INITIAL)


class TestChainValidator:

    def test_consistent_chain(self):
        rows = [
            initial(),
            row(0, UNTRACKED, ACTIVE, "a"),
            row(1, ACTIVE, INACTIVE, "b"),
            row(2, INACTIVE, Named("x"), "c"),
        ]
        assert ChainValidator().validate(rows).ok

    def test_break_reports_both_ids(self):
        rows = [
            initial(),
            row(0, UNTRACKED, ACTIVE, "a"),
            row(1, Named("x"), INACTIVE, "b"),
        ]
        with pytest.raises(LastStateError) as exc_info:
            ChainValidator().validate(rows)
        assert exc_info.value.ids == ("a", "b")
        assert exc_info.value.occur_time == T0 + timedelta(hours=1)

    def test_accumulate_every_break(self):
        rows = [
            initial(),
            row(0, INACTIVE, ACTIVE, "a"),
            row(1, ACTIVE, INACTIVE, "b"),
            row(2, ACTIVE, INACTIVE, "c"),
        ]
        summary = ChainValidator().validate(rows, fail_on_error=False)
        assert [e.ids for e in summary.errors] == [(INITIAL_BOUNDARY_ID, "a"), ("b", "c")]

    def test_first_break(self):
        rows = [initial(), row(0, ACTIVE, INACTIVE, "a"), row(1, ACTIVE, INACTIVE, "b")]
        assert ChainValidator().first_break(rows).ids == (INITIAL_BOUNDARY_ID, "a")
        assert ChainValidator().first_break(rows[:1]) is None

    def test_repeated_state(self):
        rows = [initial(), row(0, UNTRACKED, ACTIVE, "a"), row(1, ACTIVE, ACTIVE, "b")]
        assert ChainValidator().validate(rows).ok
        error = ChainValidator(flag_repeated_states=True).first_break(rows)
        assert isinstance(error, RepeatedStateError)
        assert error.ids == ("a", "b")

    def test_mismatch_wins_over_repetition(self):
        rows = [initial(), row(0, UNTRACKED, ACTIVE, "a"), row(1, INACTIVE, INACTIVE, "b")]
        error = ChainValidator(flag_repeated_states=True).first_break(rows)
        assert isinstance(error, LastStateError)


class TestInitialBoundary:

    def _store(self):
        store = InMemoryEventStore()
        store.add_events([
            {"_id": "a", "data": {"field": "bar", "occurTime": "2023-08-22T10:00:00Z",
                                  "state": True, "lastState": None}},
            {"_id": "b", "data": {"field": "bar", "occurTime": "2023-08-22T11:00:00Z",
                                  "state": False, "lastState": True}},
        ])
        return store

    def test_no_start_is_untracked(self):
        row0 = initial_boundary(self._store(), "bar")
        assert row0.event_id == INITIAL_BOUNDARY_ID
        assert row0.active_state == UNTRACKED
        assert row0.timestamp == MIN_TIME

    def test_nothing_before_start_is_untracked(self):
        assert initial_boundary(self._store(), "bar", T0).event_id == INITIAL_BOUNDARY_ID

    def test_last_boundary_strictly_before_start(self):
        row0 = initial_boundary(self._store(), "bar", T0 + timedelta(hours=1))
        assert row0.event_id == "a"
        assert row0.active_state == ACTIVE

    def test_other_fields_do_not_leak(self):
        assert initial_boundary(self._store(), "baz", T0 + timedelta(hours=5)).event_id == (
            INITIAL_BOUNDARY_ID
        )
