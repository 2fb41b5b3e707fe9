"""Tests for the SQLite snapshot and history store."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from cprtrack.models.events import EventKind, EventRecord
from cprtrack.models.session import (
    CodeStatus,
    HistoryRecord,
    Outcome,
    Session,
    SummaryCounts,
)
from cprtrack.store.jsonl_io import export_history_jsonl, import_history_jsonl
from cprtrack.store.ports import InMemorySessionStore
from cprtrack.store.sqlite_store import SessionStore


T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    """Create an in-memory store for testing."""
    return SessionStore(":memory:")


def make_record(record_id: str, outcome: Outcome = Outcome.ROSC) -> HistoryRecord:
    """Helper to create test history records."""
    shock = EventRecord(
        id=f"{record_id}-e1",
        kind=EventKind.SHOCK_DELIVERED,
        occurred_at_elapsed_seconds=60,
        details="200J",
    )
    return HistoryRecord(
        id=record_id,
        date=T0 + timedelta(minutes=10),
        started_at=T0,
        elapsed_seconds=600,
        summary_counts=SummaryCounts(shocks=1),
        events=[shock],
        outcome=outcome,
    )


def make_session(elapsed: float = 42) -> Session:
    return Session(status=CodeStatus.ACTIVE, started_at=T0, elapsed_seconds=elapsed)


class TestSnapshot:
    """Tests for the single-row session snapshot."""

    def test_empty(self, store: SessionStore):
        assert store.load_snapshot() is None
        assert store.snapshot_status() is None

    def test_save_and_load(self, store: SessionStore):
        session = make_session()
        store.save_snapshot(session)

        loaded = store.load_snapshot()
        assert loaded == session
        assert store.snapshot_status() == "active"

    def test_save_replaces(self, store: SessionStore):
        store.save_snapshot(make_session(1))
        store.save_snapshot(make_session(2))
        assert store.load_snapshot().elapsed_seconds == 2

    def test_clear(self, store: SessionStore):
        store.save_snapshot(make_session())
        store.clear_snapshot()
        assert store.load_snapshot() is None

    def test_malformed_snapshot_is_absent(self, store: SessionStore):
        conn = store._get_conn()
        conn.execute(
            "INSERT INTO snapshot (slot, saved_at, status, state_json) VALUES (0, ?, ?, ?)",
            (T0.isoformat(), "active", '{"status": "sideways"}'),
        )
        conn.commit()

        assert store.load_snapshot() is None
        assert store.raw_snapshot() == '{"status": "sideways"}'

    def test_persists_across_instances(self, tmp_path):
        db_path = tmp_path / "cprtrack.db"
        with SessionStore(db_path) as first:
            first.save_snapshot(make_session())

        with SessionStore(db_path) as second:
            assert second.load_snapshot() == make_session()


class TestHistory:
    """Tests for the append-only history."""

    def test_append_and_load(self, store: SessionStore):
        store.append_history(make_record("r1"))
        store.append_history(make_record("r2", Outcome.CEASED))

        records = store.load_history()
        assert [r.id for r in records] == ["r1", "r2"]
        assert records[1].outcome == Outcome.CEASED
        assert records[0].events[0].details == "200J"

    def test_duplicate_rejected(self, store: SessionStore):
        store.append_history(make_record("r1"))
        with pytest.raises(ValueError, match="already exists"):
            store.append_history(make_record("r1"))

    def test_get_record(self, store: SessionStore):
        store.append_history(make_record("r1"))
        assert store.get_history_record("r1").id == "r1"
        assert store.get_history_record("missing") is None

    def test_delete(self, store: SessionStore):
        store.append_history(make_record("r1"))
        assert store.delete_history_record("r1") is True
        assert store.delete_history_record("r1") is False
        assert store.load_history() == []

    def test_unreadable_rows_skipped(self, store: SessionStore):
        store.append_history(make_record("r1"))
        conn = store._get_conn()
        conn.execute(
            "INSERT INTO history (record_id, date, outcome, record_json) VALUES (?, ?, ?, ?)",
            ("bad", T0.isoformat(), "ROSC", "not json"),
        )
        conn.commit()

        assert [r.id for r in store.load_history()] == ["r1"]
        assert len(store.raw_history()) == 2


class TestInMemoryStore:
    """The in-memory port behaves like the SQLite store."""

    def test_round_trip(self):
        store = InMemorySessionStore()
        assert store.load_snapshot() is None

        store.save_snapshot(make_session())
        assert store.load_snapshot() == make_session()

        store.clear_snapshot()
        assert store.load_snapshot() is None

        store.append_history(make_record("r1"))
        assert store.load_history() == [make_record("r1")]


class TestJsonl:
    """Tests for history JSONL import/export."""

    def test_export(self, store: SessionStore, tmp_path):
        store.append_history(make_record("r1"))
        store.append_history(make_record("r2"))

        output_path = tmp_path / "out" / "history.jsonl"
        assert export_history_jsonl(store, output_path) == 2

        lines = output_path.read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["id"] for line in lines] == ["r1", "r2"]

    def test_export_then_import(self, store: SessionStore, tmp_path):
        store.append_history(make_record("r1"))
        output_path = tmp_path / "history.jsonl"
        export_history_jsonl(store, output_path)

        target = SessionStore(":memory:")
        assert import_history_jsonl(target, output_path) == 1
        assert target.load_history() == store.load_history()

    def test_import_skips_blank_lines(self, store: SessionStore, tmp_path):
        input_path = tmp_path / "history.jsonl"
        input_path.write_text(
            make_record("r1").model_dump_json() + "\n\n" + make_record("r2").model_dump_json() + "\n",
            encoding="utf-8",
        )
        assert import_history_jsonl(store, input_path) == 2

    def test_import_invalid_json(self, store: SessionStore, tmp_path):
        input_path = tmp_path / "history.jsonl"
        input_path.write_text(make_record("r1").model_dump_json() + "\n{oops\n", encoding="utf-8")

        with pytest.raises(ValueError, match="line 2"):
            import_history_jsonl(store, input_path)

    def test_import_invalid_record(self, store: SessionStore, tmp_path):
        input_path = tmp_path / "history.jsonl"
        input_path.write_text('{"id": "r1"}\n', encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid record on line 1"):
            import_history_jsonl(store, input_path)

    def test_import_duplicate(self, store: SessionStore, tmp_path):
        store.append_history(make_record("r1"))
        input_path = tmp_path / "history.jsonl"
        input_path.write_text(make_record("r1").model_dump_json() + "\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Line 1"):
            import_history_jsonl(store, input_path)
