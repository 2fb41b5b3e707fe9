"""Tests for the maintenance CLI."""

import json
from datetime import datetime, timedelta, timezone

from cprtrack.cli import (
    cmd_delete,
    cmd_doctor,
    cmd_export,
    cmd_history,
    cmd_import,
    cmd_init,
    cmd_show,
    main,
)
from cprtrack.models.events import EventKind, EventRecord
from cprtrack.models.session import (
    CodeStatus,
    HistoryRecord,
    Outcome,
    PatientDetails,
    Session,
    SummaryCounts,
)
from cprtrack.store.sqlite_store import SessionStore


T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class MockArgs:
    """Mock argparse namespace for testing."""

    def __init__(self, **kwargs):
        for k, v in kwargs.items():
            setattr(self, k, v)


def make_record(record_id: str = "rec1", counts: SummaryCounts | None = None) -> HistoryRecord:
    """Helper to create a finished code with two events."""
    events = [
        EventRecord(
            id=f"{record_id}-e2",
            kind=EventKind.RHYTHM_CHECK_ROSC,
            occurred_at_elapsed_seconds=130,
        ),
        EventRecord(
            id=f"{record_id}-e1",
            kind=EventKind.SHOCK_DELIVERED,
            occurred_at_elapsed_seconds=10,
            details="200J",
        ),
    ]
    return HistoryRecord(
        id=record_id,
        date=T0 + timedelta(minutes=3),
        started_at=T0,
        elapsed_seconds=180,
        patient_details=PatientDetails(name="Test Patient", hn="HN-42"),
        summary_counts=counts or SummaryCounts(shocks=1),
        events=events,
        outcome=Outcome.ROSC,
    )


def seed(db_path, *records: HistoryRecord) -> None:
    with SessionStore(db_path) as store:
        for record in records:
            store.append_history(record)


class TestInit:
    def test_creates_database(self, tmp_path):
        db_path = tmp_path / "cprtrack.db"
        assert cmd_init(MockArgs(db=str(db_path), force=False)) == 0
        assert db_path.exists()

    def test_refuses_overwrite(self, tmp_path, capsys):
        db_path = tmp_path / "cprtrack.db"
        db_path.touch()
        assert cmd_init(MockArgs(db=str(db_path), force=False)) == 1
        assert "already exists" in capsys.readouterr().out

    def test_force_overwrites(self, tmp_path):
        db_path = tmp_path / "cprtrack.db"
        seed(db_path, make_record())
        assert cmd_init(MockArgs(db=str(db_path), force=True)) == 0
        with SessionStore(db_path) as store:
            assert store.load_history() == []


class TestHistory:
    def test_empty(self, tmp_path, capsys):
        db_path = tmp_path / "cprtrack.db"
        assert cmd_history(MockArgs(db=str(db_path), json=False)) == 0
        assert "No history records found" in capsys.readouterr().out

    def test_lists_records(self, tmp_path, capsys):
        db_path = tmp_path / "cprtrack.db"
        seed(db_path, make_record("rec1"), make_record("rec2"))

        assert cmd_history(MockArgs(db=str(db_path), json=False)) == 0
        out = capsys.readouterr().out
        assert "rec1" in out and "rec2" in out
        assert "Duration: 00:03:00" in out
        assert "Outcome: ROSC" in out

    def test_json(self, tmp_path, capsys):
        db_path = tmp_path / "cprtrack.db"
        seed(db_path, make_record("rec1"))

        assert cmd_history(MockArgs(db=str(db_path), json=True)) == 0
        data = json.loads(capsys.readouterr().out)
        assert [r["id"] for r in data] == ["rec1"]


class TestShow:
    def test_show_review(self, tmp_path, capsys):
        db_path = tmp_path / "cprtrack.db"
        seed(db_path, make_record())

        assert cmd_show(MockArgs(db=str(db_path), record_id="rec1", json=False)) == 0
        out = capsys.readouterr().out
        assert "Patient: Test Patient HN HN-42" in out
        assert "Shocks: 1" in out
        assert "[00:00:10] Shock Delivered: 200J" in out

    def test_show_json(self, tmp_path, capsys):
        db_path = tmp_path / "cprtrack.db"
        seed(db_path, make_record())

        assert cmd_show(MockArgs(db=str(db_path), record_id="rec1", json=True)) == 0
        assert json.loads(capsys.readouterr().out)["id"] == "rec1"

    def test_show_missing(self, tmp_path, capsys):
        db_path = tmp_path / "cprtrack.db"
        assert cmd_show(MockArgs(db=str(db_path), record_id="nope", json=False)) == 1
        assert "not found" in capsys.readouterr().out


class TestExportImport:
    def test_round_trip(self, tmp_path, capsys):
        source = tmp_path / "source.db"
        target = tmp_path / "target.db"
        output = tmp_path / "history.jsonl"
        seed(source, make_record("rec1"), make_record("rec2"))

        assert cmd_export(MockArgs(db=str(source), output=str(output))) == 0
        assert cmd_import(MockArgs(db=str(target), input=str(output))) == 0
        assert "Imported 2 records" in capsys.readouterr().out

        with SessionStore(target) as store:
            assert [r.id for r in store.load_history()] == ["rec1", "rec2"]

    def test_import_missing_file(self, tmp_path, capsys):
        args = MockArgs(db=str(tmp_path / "cprtrack.db"), input=str(tmp_path / "nope.jsonl"))
        assert cmd_import(args) == 1
        assert "not found" in capsys.readouterr().out

    def test_import_invalid(self, tmp_path, capsys):
        input_path = tmp_path / "bad.jsonl"
        input_path.write_text("{not json\n", encoding="utf-8")
        args = MockArgs(db=str(tmp_path / "cprtrack.db"), input=str(input_path))
        assert cmd_import(args) == 1
        assert "Import error" in capsys.readouterr().out


class TestDelete:
    def test_delete(self, tmp_path):
        db_path = tmp_path / "cprtrack.db"
        seed(db_path, make_record())
        assert cmd_delete(MockArgs(db=str(db_path), record_id="rec1")) == 0
        assert cmd_delete(MockArgs(db=str(db_path), record_id="rec1")) == 1


class TestDoctor:
    def test_missing_database(self, tmp_path, capsys):
        assert cmd_doctor(MockArgs(db=str(tmp_path / "nope.db"))) == 1
        assert "not found" in capsys.readouterr().out

    def test_healthy(self, tmp_path, capsys):
        db_path = tmp_path / "cprtrack.db"
        seed(db_path, make_record())
        with SessionStore(db_path) as store:
            store.save_snapshot(Session(status=CodeStatus.ACTIVE, started_at=T0))

        assert cmd_doctor(MockArgs(db=str(db_path))) == 0
        assert "HEALTHY" in capsys.readouterr().out

    def test_count_mismatch(self, tmp_path, capsys):
        db_path = tmp_path / "cprtrack.db"
        seed(db_path, make_record(counts=SummaryCounts(shocks=5)))

        assert cmd_doctor(MockArgs(db=str(db_path))) == 1
        out = capsys.readouterr().out
        assert "Summary counts do not match events" in out
        assert "UNHEALTHY" in out

    def test_unreadable_snapshot_reports_stored_status(self, tmp_path, capsys):
        db_path = tmp_path / "cprtrack.db"
        with SessionStore(db_path) as store:
            conn = store._get_conn()
            conn.execute(
                "INSERT INTO snapshot (slot, saved_at, status, state_json) VALUES (0, ?, ?, ?)",
                (T0.isoformat(), "review", '{"status": "sideways"}'),
            )
            conn.commit()

        assert cmd_doctor(MockArgs(db=str(db_path))) == 0
        out = capsys.readouterr().out
        assert "Snapshot: review, unreadable" in out
        assert "ignored on resume" in out


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out

    def test_dispatches_command(self, tmp_path, capsys):
        db_path = tmp_path / "cprtrack.db"
        assert main(["--db", str(db_path), "init"]) == 0
        assert db_path.exists()

    def test_db_from_environment(self, tmp_path, monkeypatch, capsys):
        db_path = tmp_path / "from_env.db"
        monkeypatch.setenv("CPRTRACK_DB", str(db_path))
        assert main(["init"]) == 0
        assert db_path.exists()
