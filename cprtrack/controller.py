"""CodeController - owns the live session and its persistence.

The reducers are pure. This class is the one place that holds the current
Session, applies actions to it in strict sequence, and performs the storage
side effects that follow a transition:
- save a stripped snapshot while the code is active or in review
- clear the snapshot when the code is reset to inactive
- append a history record when an active code ends
"""

import logging
import sqlite3
import threading
from datetime import datetime, timezone

from cprtrack.models.actions import EndSession, LoadSnapshot, StartSession
from cprtrack.models.derived import CodeReview, Recommendation
from cprtrack.models.session import CodeStatus, Session, TimerSettings
from cprtrack.reducers.algorithm import recommend
from cprtrack.reducers.review import build_review
from cprtrack.reducers.session import apply_action, strip_transient, to_history_record
from cprtrack.store.ports import SessionPersistence


logger = logging.getLogger(__name__)

_PERSISTED = (CodeStatus.ACTIVE, CodeStatus.REVIEW)


class CodeController:
    """Serializes actions against a single Session and persists the results."""

    def __init__(
        self,
        store: SessionPersistence,
        timer_settings: TimerSettings | None = None,
    ):
        """Initialize the controller.

        Args:
            store: Where snapshots and history records are kept.
            timer_settings: Intervals used when a start action carries none.
        """
        self.store = store
        self.timer_settings = timer_settings or TimerSettings()
        self._state = Session()
        self._lock = threading.Lock()

    @property
    def state(self) -> Session:
        return self._state

    def resume(self, now: datetime | None = None) -> bool:
        """Load the persisted snapshot, if any.

        Returns:
            True if a snapshot was found and loaded.
        """
        snapshot = self.store.load_snapshot()
        if snapshot is None:
            return False
        self.dispatch(LoadSnapshot(snapshot=snapshot), now=now)
        logger.info("Resumed %s code from snapshot", self._state.status.value)
        return True

    def dispatch(self, action: object, now: datetime | None = None) -> Session:
        """Apply one action and persist the outcome.

        Args:
            action: Any action model from cprtrack.models.actions.
            now: Wall-clock time of the transition. Defaults to now (UTC).

        Returns:
            The new session state.
        """
        now = now or datetime.now(timezone.utc)

        if isinstance(action, StartSession) and action.timer_settings is None:
            action = action.model_copy(update={"timer_settings": self.timer_settings})

        # Storage writes stay under the lock so they land in transition order
        with self._lock:
            previous = self._state
            state = apply_action(previous, action, now)
            if state is previous:
                return state
            self._state = state

            if isinstance(action, EndSession) and previous.status == CodeStatus.ACTIVE:
                self._append_history(state, now)

            self._persist(previous, state)
        return state

    def recommendation(self) -> Recommendation | None:
        return recommend(self._state.algorithm, self._state.summary_counts)

    def review(self) -> CodeReview:
        """Review of the history record being viewed, else of the live code."""
        state = self._state
        if state.status == CodeStatus.HISTORY_VIEW and state.viewing_history_record:
            return build_review(state.viewing_history_record)
        return build_review(state)

    def _append_history(self, state: Session, now: datetime) -> None:
        record = to_history_record(state, now)
        try:
            self.store.append_history(record)
        except (sqlite3.Error, ValueError):
            logger.exception("Failed to save code %s to history", record.id)
            return
        logger.info("Saved code %s to history (outcome=%s)", record.id, record.outcome.value)

    def _persist(self, previous: Session, state: Session) -> None:
        try:
            if state.status in _PERSISTED:
                self.store.save_snapshot(strip_transient(state))
            elif state.status == CodeStatus.INACTIVE and previous.status in _PERSISTED:
                self.store.clear_snapshot()
        except sqlite3.Error:
            logger.exception("Failed to persist session snapshot")
