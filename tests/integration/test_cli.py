"""
CLI Tests

End-to-end runs of the `fieldstate` command against a JSON-lines store.
"""

import json

import pytest

from fieldstate.cli import main

from .fixtures import FIELD, at, doc_id, switch, consistent_switches


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("FIELDSTATE_STORE_PATH", "FIELDSTATE_FAIL_ON_ERROR", "FIELDSTATE_FLAG_REPEATED"):
        monkeypatch.delenv(name, raising=False)


def write_store(path, docs):
    with open(path, "w") as f:
        for doc in docs:
            f.write(json.dumps(doc) + "\n")
    return str(path)


def corrupted():
    docs = consistent_switches()
    docs[1] = switch(at(11), False, "wrong")
    return docs


class TestCheckCommand:

    def test_consistent_store_passes(self, tmp_path, capsys):
        store = write_store(tmp_path / "events.jsonl", consistent_switches())
        assert main(["--store", store, "check", "--field", FIELD]) == 0
        assert "[PASS] bar" in capsys.readouterr().out

    def test_all_fields_by_default(self, tmp_path, capsys):
        store = write_store(tmp_path / "events.jsonl", [
            *consistent_switches(), switch(at(10), "x", None, field="other"),
        ])
        assert main(["--store", store, "check"]) == 0
        out = capsys.readouterr().out
        assert "[PASS] bar" in out
        assert "[PASS] other" in out

    def test_empty_store(self, tmp_path, capsys):
        assert main(["--store", str(tmp_path / "empty.jsonl"), "check"]) == 0
        assert "No fields" in capsys.readouterr().out

    def test_break_fails(self, tmp_path, capsys):
        store = write_store(tmp_path / "events.jsonl", corrupted())
        assert main(["--store", store, "check", "--field", FIELD]) == 1
        out = capsys.readouterr().out
        assert "[FAIL]" in out
        assert doc_id(FIELD, at(11)) in out

    def test_accumulate_lists_every_error(self, tmp_path, capsys):
        docs = corrupted() + [switch(at(13), False, "wrong again")]
        store = write_store(tmp_path / "events.jsonl", docs)
        assert main(["--store", store, "check", "--accumulate"]) == 1
        out = capsys.readouterr().out
        assert out.count("[FAIL]") == 2

    def test_window(self, tmp_path, capsys):
        store = write_store(tmp_path / "events.jsonl", corrupted())
        code = main(["--store", store, "check", "--start", "2023-08-22T12:00:00Z"])
        assert code == 0

    def test_fix_then_recheck(self, tmp_path, capsys):
        store = write_store(tmp_path / "events.jsonl", corrupted())
        assert main(["--store", store, "check", "--fix"]) == 1
        out = capsys.readouterr().out
        assert f"[FIX]  bar: {doc_id(FIELD, at(11))} lastState -> true" in out

        assert main(["--store", store, "check"]) == 0

    def test_invalid_time_is_a_usage_error(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["--store", str(tmp_path / "s.jsonl"), "check", "--start", "soon"])
        assert exc_info.value.code == 2


class TestInspectionCommands:

    def test_state_at_instant(self, tmp_path, capsys):
        store = write_store(tmp_path / "events.jsonl", consistent_switches())
        assert main(["--store", store, "state", FIELD, "--at", "2023-08-22T11:30:00Z"]) == 0
        assert capsys.readouterr().out.strip() == "false"

    def test_state_of_unknown_field(self, tmp_path, capsys):
        store = write_store(tmp_path / "events.jsonl", consistent_switches())
        assert main(["--store", store, "state", "nope"]) == 0
        assert capsys.readouterr().out.strip() == "null"

    def test_timeline(self, tmp_path, capsys):
        store = write_store(tmp_path / "events.jsonl", consistent_switches())
        assert main(["--store", store, "timeline", FIELD]) == 0
        out = capsys.readouterr().out
        assert "2023-08-22T10:00:00.000Z | null -> true | switch" in out
        assert doc_id(FIELD, at(12)) in out

    def test_empty_timeline(self, tmp_path, capsys):
        store = write_store(tmp_path / "events.jsonl", consistent_switches())
        assert main(["--store", store, "timeline", "nope"]) == 0
        assert "No state changes." in capsys.readouterr().out

    def test_unreadable_store(self, tmp_path, capsys):
        path = tmp_path / "bad.jsonl"
        path.write_text("{broken\n")
        assert main(["--store", str(path), "state", FIELD]) == 2
        assert "[ERROR]" in capsys.readouterr().err

    def test_no_command(self, capsys):
        assert main([]) == 2
