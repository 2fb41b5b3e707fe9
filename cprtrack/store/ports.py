"""Persistence port used by the controller.

Any backing store that implements SessionPersistence can be injected. The
in-memory implementation here serves tests and embedded use.
"""

from typing import Protocol

from cprtrack.models.session import HistoryRecord, Session


class SessionPersistence(Protocol):
    """Snapshot and history storage for the single tracked session."""

    def load_snapshot(self) -> Session | None: ...

    def save_snapshot(self, session: Session) -> None: ...

    def clear_snapshot(self) -> None: ...

    def append_history(self, record: HistoryRecord) -> None: ...

    def load_history(self) -> list[HistoryRecord]: ...


class InMemorySessionStore:
    """Process-local persistence. Stores JSON so values round-trip like disk."""

    def __init__(self) -> None:
        self._snapshot_json: str | None = None
        self._history: list[str] = []

    def load_snapshot(self) -> Session | None:
        if self._snapshot_json is None:
            return None
        return Session.model_validate_json(self._snapshot_json)

    def save_snapshot(self, session: Session) -> None:
        self._snapshot_json = session.model_dump_json()

    def clear_snapshot(self) -> None:
        self._snapshot_json = None

    def append_history(self, record: HistoryRecord) -> None:
        self._history.append(record.model_dump_json())

    def load_history(self) -> list[HistoryRecord]:
        return [HistoryRecord.model_validate_json(raw) for raw in self._history]
