"""Snapshot and history storage for cprtrack."""

from cprtrack.store.ports import InMemorySessionStore, SessionPersistence
from cprtrack.store.sqlite_store import SessionStore
from cprtrack.store.jsonl_io import export_history_jsonl, import_history_jsonl

__all__ = [
    "InMemorySessionStore",
    "SessionPersistence",
    "SessionStore",
    "export_history_jsonl",
    "import_history_jsonl",
]
