"""
Consistency Check Tests

Chain breaks, overlap root-causing, windows and reporting modes.
"""

import pytest

from fieldstate.contracts.errors import (
    LastStateError, OverlappingBlockError, RepeatedStateError,
)
from fieldstate.validation import (
    ConsistencyOrchestrator, INITIAL_BOUNDARY_ID,
    BLOCK_STARTS_WITHIN_BLOCK, BLOCK_ENDS_WITHIN_BLOCK, STATE_CHANGES_WITHIN_BLOCK,
)

from .fixtures import (
    FIELD, at, doc_id, switch, block, occurrence, make_store,
    consistent_switches, intersecting_blocks,
)


def _check(store, **kwargs):
    options = {k: kwargs.pop(k) for k in list(kwargs)
               if k in ("flag_repeated_states", "sweep_overlaps")}
    return ConsistencyOrchestrator(store, FIELD, **options).check(**kwargs)


class TestConsistentTimelines:

    def test_empty_field_is_ok(self):
        summary = _check(make_store())
        assert summary.ok
        assert summary.errors == []

    def test_field_without_events_in_range_is_ok(self):
        store = make_store(*consistent_switches())
        summary = _check(store, start=at(13), end=at(14))
        assert summary.ok
        assert summary.errors == []

    def test_matching_last_states_pass(self):
        assert _check(make_store(*consistent_switches())).ok

    def test_sequential_blocks_pass(self):
        store = make_store(
            switch(at(9), False, None),
            block(at(11), "PT1H", False),
            block(at(12), "PT1H", False),
        )
        assert _check(store).ok

    def test_occurrences_between_blocks_pass(self):
        store = make_store(
            switch(at(9), False, None),
            block(at(11), "PT1H", False),
            occurrence(at(11, 30)),
        )
        assert _check(store).ok

    def test_other_fields_are_ignored(self):
        store = make_store(
            *consistent_switches(),
            switch(at(10, 30), "x", "garbage", field="other"),
        )
        assert _check(store).ok


class TestLastStateErrors:

    def test_wrong_last_state_names_both_events(self):
        docs = consistent_switches()
        docs[1] = switch(at(11), False, "wrong")
        with pytest.raises(LastStateError) as exc_info:
            _check(make_store(*docs))
        error = exc_info.value
        assert error.field == FIELD
        assert error.occur_time == at(11)
        assert error.ids == (doc_id(FIELD, at(10)), doc_id(FIELD, at(11)))

    def test_first_event_is_checked_against_untracked(self):
        docs = consistent_switches()
        docs[0] = switch(at(10), True, False)
        with pytest.raises(LastStateError) as exc_info:
            _check(make_store(*docs))
        assert exc_info.value.ids == (INITIAL_BOUNDARY_ID, doc_id(FIELD, at(10)))

    def test_accumulate_collects_independent_errors(self):
        store = make_store(
            switch(at(10), True, None),
            switch(at(11), False, "wrong"),
            switch(at(12), True, False),
            switch(at(13), False, "wrong again"),
        )
        summary = _check(store, fail_on_error=False)
        assert not summary.ok
        assert [type(e) for e in summary.errors] == [LastStateError, LastStateError]
        assert [e.occur_time for e in summary.errors] == [at(11), at(13)]

    def test_fail_fast_raises_the_first_error(self):
        store = make_store(
            switch(at(10), True, None),
            switch(at(11), False, "wrong"),
            switch(at(13), False, "wrong again"),
        )
        with pytest.raises(LastStateError) as exc_info:
            _check(store)
        assert exc_info.value.occur_time == at(11)

    def test_error_message_format(self):
        docs = consistent_switches()
        docs[1] = switch(at(11), False, "wrong")
        summary = _check(make_store(*docs), fail_on_error=False)
        message = summary.errors[0].message
        assert message.startswith(f"{FIELD} 2023-08-22T11:00:00.000Z:")
        assert doc_id(FIELD, at(10)) in message


class TestWindows:

    def _store(self):
        return make_store(
            switch(at(10), True, None),
            switch(at(11), False, "wrong"),
            switch(at(12), True, False),
            switch(at(13), False, "wrong again"),
        )

    def test_start_uses_the_last_change_before_the_window(self):
        summary = _check(self._store(), start=at(12), fail_on_error=False)
        assert len(summary.errors) == 1
        assert summary.errors[0].ids == (doc_id(FIELD, at(12)), doc_id(FIELD, at(13)))

    def test_end_is_exclusive(self):
        summary = _check(self._store(), end=at(13), fail_on_error=False)
        assert [e.occur_time for e in summary.errors] == [at(11)]

    def test_start_is_inclusive(self):
        summary = _check(self._store(), start=at(11), end=at(12), fail_on_error=False)
        assert [e.occur_time for e in summary.errors] == [at(11)]


class TestOverlapRootCause:

    def test_intersecting_blocks_fail_fast(self):
        with pytest.raises(OverlappingBlockError) as exc_info:
            _check(make_store(*intersecting_blocks()))
        error = exc_info.value
        assert error.occur_time == at(10, 30)
        assert error.problem == BLOCK_STARTS_WITHIN_BLOCK
        assert error.ids == (doc_id(FIELD, at(11)), doc_id(FIELD, at(11, 30)))

    def test_intersecting_blocks_accumulate(self):
        summary = _check(make_store(*intersecting_blocks()), fail_on_error=False)
        assert not summary.ok
        assert all(isinstance(e, OverlappingBlockError) for e in summary.errors)
        assert [e.problem for e in summary.errors] == [
            BLOCK_STARTS_WITHIN_BLOCK, BLOCK_ENDS_WITHIN_BLOCK,
        ]

    def test_state_change_within_a_block(self):
        store = make_store(
            switch(at(9), False, None),
            block(at(11), "PT1H", False),
            switch(at(10, 30), "x", True),
        )
        summary = _check(store, fail_on_error=False)
        assert len(summary.errors) == 1
        error = summary.errors[0]
        assert isinstance(error, OverlappingBlockError)
        assert error.problem == STATE_CHANGES_WITHIN_BLOCK
        assert error.occur_time == at(10, 30)
        assert error.ids == (doc_id(FIELD, at(11)), doc_id(FIELD, at(10, 30)))

    def test_point_at_block_start_lands_inside_the_block(self):
        store = make_store(
            switch(at(9), False, None),
            block(at(11), "PT1H", False),
            switch(at(10), "x", True),
        )
        summary = _check(store, fail_on_error=False)
        overlaps = [e for e in summary.errors if isinstance(e, OverlappingBlockError)]
        assert len(overlaps) == 1
        assert overlaps[0].occur_time == at(10)
        assert overlaps[0].problem == STATE_CHANGES_WITHIN_BLOCK

    def test_nested_blocks_with_consistent_chain_are_swept(self):
        store = make_store(
            switch(at(9), False, None),
            block(at(12), "PT2H", False),
            block(at(11), "PT30M", True),
        )
        summary = _check(store, fail_on_error=False)
        assert [e.problem for e in summary.errors] == [
            BLOCK_STARTS_WITHIN_BLOCK, BLOCK_ENDS_WITHIN_BLOCK,
        ]

    def test_sweep_can_be_disabled(self):
        store = make_store(
            switch(at(9), False, None),
            block(at(12), "PT2H", False),
            block(at(11), "PT30M", True),
        )
        assert _check(store, sweep_overlaps=False).ok

    def test_overlaps_are_never_repaired(self):
        store = make_store(*intersecting_blocks())
        before = {e.id: e.rev for e in store.all_events()}
        summary = _check(store, fail_on_error=False, fix=True)
        assert summary.repairs == []
        assert {e.id: e.rev for e in store.all_events()} == before

    def test_independent_error_inside_overlap_window_is_skipped(self):
        # The first block's id carries a later logging time, stretching the
        # root-cause window past the 12:00 break.
        store = make_store(
            switch(at(9), False, None),
            block(at(11), "PT1H", False, _id=doc_id(FIELD, at(13))),
            block(at(11, 30), "PT1H", False),
            switch(at(12), True, "wrong"),
        )
        summary = _check(store, fail_on_error=False)
        assert summary.errors
        assert not any(isinstance(e, LastStateError) for e in summary.errors)

    def test_independent_error_after_overlap_window_is_reported(self):
        store = make_store(
            *intersecting_blocks(),
            switch(at(12), True, False),
            switch(at(13), False, "wrong"),
        )
        summary = _check(store, fail_on_error=False)
        chain_errors = [e for e in summary.errors if isinstance(e, LastStateError)]
        assert len(chain_errors) == 1
        assert chain_errors[0].occur_time == at(13)


class TestRepeatedStates:

    def _store(self):
        return make_store(
            switch(at(10), True, None),
            switch(at(11), True, True),
        )

    def test_repeated_states_ignored_by_default(self):
        assert _check(self._store()).ok

    def test_repeated_state_flagged_on_request(self):
        summary = _check(self._store(), fail_on_error=False, flag_repeated_states=True)
        assert len(summary.errors) == 1
        assert isinstance(summary.errors[0], RepeatedStateError)
        assert summary.errors[0].ids == (doc_id(FIELD, at(10)), doc_id(FIELD, at(11)))

    def test_repeated_states_are_not_repaired(self):
        summary = _check(self._store(), fail_on_error=False, fix=True,
                         flag_repeated_states=True)
        assert summary.repairs == []
