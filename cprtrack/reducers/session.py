"""Session reducer - the state machine for one tracked code.

This is the main entry point: ``apply_action(state, action, now)`` returns the
next Session. It is total over the action set. An action that does not apply
to the current status returns the input state unchanged; nothing raises.

Status transitions:
- inactive --start--> active
- active --end--> review
- active/review --reset--> inactive
- inactive --view-history--> history_view --close-history--> inactive
- any --load--> the snapshot's status

Undo is one level deep. log-event, delete-event, set-path, toggle-cause and
update-timer-setting store the prior state (with its own snapshot cleared)
in undo_snapshot; undo swaps that snapshot back in and creates no redo entry.
"""

from datetime import datetime, timezone
from typing import Callable

import ulid

from cprtrack.models.actions import (
    CloseHistoryView,
    DeleteEvent,
    DismissEpinephrineDueAlert,
    DismissPrepareEpinephrineAlert,
    DismissPrompt,
    DismissRhythmAlert,
    EndSession,
    FetchSuggestionsFailure,
    FetchSuggestionsStart,
    FetchSuggestionsSuccess,
    LoadSnapshot,
    LogEvent,
    ResetSession,
    SetAlgorithmPath,
    StartSession,
    Tick,
    ToggleReversibleCause,
    Undo,
    UpdatePatientDetails,
    UpdateTimerSetting,
    ViewHistoryRecord,
)
from cprtrack.models.events import DEFAULT_ACTOR, EventKind, EventRecord
from cprtrack.models.session import (
    Alerts,
    CodeStatus,
    HistoryRecord,
    Outcome,
    PromptKind,
    Session,
    SuggestionsState,
    TimerSettings,
)
from cprtrack.reducers.aggregates import apply_event, reduce_aggregates
from cprtrack.reducers.algorithm import (
    classification_details,
    classify,
    reduce_algorithm,
)
from cprtrack.reducers.timers import (
    clear_timers_and_alerts,
    dismiss_epinephrine_due,
    dismiss_prepare_epinephrine,
    dismiss_rhythm_alert,
    reduce_tick,
    restart_epinephrine,
    start_compressions,
    stop_compressions,
)


_EDITABLE = (CodeStatus.ACTIVE, CodeStatus.REVIEW)


def new_id() -> str:
    """Mint a lexicographically sortable, time-ordered identifier."""
    return str(ulid.new())


def take_snapshot(state: Session) -> Session:
    """Deep copy of the state for undo, never nesting another snapshot."""
    return state.model_copy(update={"undo_snapshot": None}, deep=True)


# -----------------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------------


def _start(state: Session, action: StartSession, now: datetime) -> Session:
    if state.status != CodeStatus.INACTIVE:
        return state

    # Compressions have not begun yet, so the no-flow clock starts now
    return Session(
        status=CodeStatus.ACTIVE,
        started_at=now,
        timer_settings=action.timer_settings or TimerSettings(),
        last_compression_stopped_at=now,
        patient_details=state.patient_details,
        pending_prompt=PromptKind.INITIAL_RHYTHM,
    )


def _end(state: Session, action: EndSession, now: datetime) -> Session:
    if state.status != CodeStatus.ACTIVE:
        return state

    ended = clear_timers_and_alerts(state)
    return ended.model_copy(update={"status": CodeStatus.REVIEW, "pending_prompt": None})


def _reset(state: Session, action: ResetSession, now: datetime) -> Session:
    if state.status not in _EDITABLE:
        return state
    return Session()


def _tick(state: Session, action: Tick, now: datetime) -> Session:
    return reduce_tick(state, now)


def _load(state: Session, action: LoadSnapshot, now: datetime) -> Session:
    snapshot = action.snapshot

    # A snapshot never restores a read-only history view
    status = snapshot.status
    if status == CodeStatus.HISTORY_VIEW:
        status = CodeStatus.INACTIVE

    # Never trust a persisted elapsed value for a running code
    elapsed = snapshot.elapsed_seconds
    if status == CodeStatus.ACTIVE and snapshot.started_at is not None:
        elapsed = max(0.0, (now - snapshot.started_at).total_seconds())

    return snapshot.model_copy(
        update={
            "status": status,
            "elapsed_seconds": elapsed,
            "alerts": Alerts(epinephrine_due=snapshot.alerts.epinephrine_due),
            "suggestions": SuggestionsState(data=snapshot.suggestions.data),
            "pending_prompt": None,
            "viewing_history_record": None,
            "undo_snapshot": None,
        },
        deep=True,
    )


def _view_history(state: Session, action: ViewHistoryRecord, now: datetime) -> Session:
    if state.status != CodeStatus.INACTIVE:
        return state
    return state.model_copy(
        update={"status": CodeStatus.HISTORY_VIEW, "viewing_history_record": action.record}
    )


def _close_history(state: Session, action: CloseHistoryView, now: datetime) -> Session:
    if state.status != CodeStatus.HISTORY_VIEW:
        return state
    return state.model_copy(
        update={"status": CodeStatus.INACTIVE, "viewing_history_record": None}
    )


# -----------------------------------------------------------------------------
# Event log
# -----------------------------------------------------------------------------


def _make_event(
    state: Session,
    kind: EventKind,
    details: str | None = None,
    actor: str | None = None,
    medication_name: str | None = None,
) -> EventRecord:
    if kind == EventKind.OTHER_MEDICATION and not medication_name and details:
        # "Atropine 1mg IV" names its drug in the first word
        words = details.split()
        medication_name = words[0] if words else None

    return EventRecord(
        id=new_id(),
        kind=kind,
        occurred_at_elapsed_seconds=state.elapsed_seconds,
        details=details,
        actor=actor or DEFAULT_ACTOR,
        medication_name=medication_name,
    )


def _append_event(state: Session, event: EventRecord, now: datetime) -> Session:
    """Append an event and apply its aggregate, timer and algorithm effects."""
    counts, last_shock_energy = apply_event(
        state.summary_counts, state.last_shock_energy, event
    )
    next_state = state.model_copy(
        update={
            "event_log": [event, *state.event_log],
            "summary_counts": counts,
            "last_shock_energy": last_shock_energy,
            "algorithm": reduce_algorithm(state.algorithm, event),
        }
    )

    if event.kind == EventKind.COMPRESSIONS_STARTED:
        next_state = start_compressions(next_state)
    elif event.kind == EventKind.EPINEPHRINE_GIVEN:
        next_state = restart_epinephrine(next_state)
    elif event.stops_compressions:
        next_state = stop_compressions(next_state, now)

    return next_state


def _log_event(state: Session, action: LogEvent, now: datetime) -> Session:
    if state.status != CodeStatus.ACTIVE:
        return state

    event = _make_event(
        state,
        action.kind,
        details=action.details,
        actor=action.actor,
        medication_name=action.medication_name,
    )
    next_state = _append_event(state, event, now)
    return next_state.model_copy(update={"undo_snapshot": take_snapshot(state)})


def _delete_event(state: Session, action: DeleteEvent, now: datetime) -> Session:
    if state.status not in _EDITABLE:
        return state
    if not any(event.id == action.event_id for event in state.event_log):
        return state

    remaining = [event for event in state.event_log if event.id != action.event_id]
    counts, last_shock_energy = reduce_aggregates(remaining)

    return state.model_copy(
        update={
            "event_log": remaining,
            "summary_counts": counts,
            "last_shock_energy": last_shock_energy,
            "undo_snapshot": take_snapshot(state),
        }
    )


def _undo(state: Session, action: Undo, now: datetime) -> Session:
    if state.undo_snapshot is None:
        return state
    return state.undo_snapshot


# -----------------------------------------------------------------------------
# Alerts and prompts
# -----------------------------------------------------------------------------


def _dismiss_rhythm(state: Session, action: DismissRhythmAlert, now: datetime) -> Session:
    if state.status != CodeStatus.ACTIVE or not state.alerts.rhythm_check_due:
        return state
    return dismiss_rhythm_alert(state, now)


def _dismiss_prepare(
    state: Session, action: DismissPrepareEpinephrineAlert, now: datetime
) -> Session:
    if not state.alerts.prepare_epinephrine:
        return state
    return dismiss_prepare_epinephrine(state)


def _dismiss_epinephrine_due(
    state: Session, action: DismissEpinephrineDueAlert, now: datetime
) -> Session:
    if state.status != CodeStatus.ACTIVE or not state.alerts.epinephrine_due:
        return state
    return dismiss_epinephrine_due(state)


def _dismiss_prompt(state: Session, action: DismissPrompt, now: datetime) -> Session:
    if state.pending_prompt is None:
        return state
    return state.model_copy(update={"pending_prompt": None})


# -----------------------------------------------------------------------------
# Settings, algorithm, checklist
# -----------------------------------------------------------------------------


def _update_timer_setting(
    state: Session, action: UpdateTimerSetting, now: datetime
) -> Session:
    if state.status == CodeStatus.HISTORY_VIEW or action.value <= 0:
        return state

    settings = state.timer_settings.model_copy(update={action.timer.value: action.value})
    return state.model_copy(
        update={"timer_settings": settings, "undo_snapshot": take_snapshot(state)}
    )


def _set_path(state: Session, action: SetAlgorithmPath, now: datetime) -> Session:
    if state.status != CodeStatus.ACTIVE or state.algorithm.path is not None:
        return state

    event = _make_event(state, EventKind.RHYTHM_ANALYZED, details=classification_details(action.path))
    next_state = _append_event(state, event, now)
    return next_state.model_copy(
        update={
            "algorithm": classify(action.path),
            "pending_prompt": PromptKind.RECOMMENDATION,
            "undo_snapshot": take_snapshot(state),
        }
    )


def _toggle_cause(state: Session, action: ToggleReversibleCause, now: datetime) -> Session:
    if state.status != CodeStatus.ACTIVE:
        return state

    name = action.cause.value
    flagged = not getattr(state.reversible_causes, name)
    causes = state.reversible_causes.model_copy(update={name: flagged})

    label = name.replace("_", " ").title()
    event = _make_event(
        state,
        EventKind.CHECKLIST_UPDATE,
        details=f"{label}: {'Considered/Treated' if flagged else 'Cleared'}",
    )
    next_state = _append_event(state, event, now)
    return next_state.model_copy(
        update={"reversible_causes": causes, "undo_snapshot": take_snapshot(state)}
    )


def _update_patient(state: Session, action: UpdatePatientDetails, now: datetime) -> Session:
    if state.status == CodeStatus.HISTORY_VIEW:
        return state

    changes = action.model_dump(exclude={"type"}, exclude_none=True)
    if not changes:
        return state
    return state.model_copy(
        update={"patient_details": state.patient_details.model_copy(update=changes)}
    )


# -----------------------------------------------------------------------------
# Suggestions
# -----------------------------------------------------------------------------


def _is_stale(state: Session, request_id: str | None) -> bool:
    return request_id is not None and request_id != state.suggestions.request_id


def _suggestions_start(
    state: Session, action: FetchSuggestionsStart, now: datetime
) -> Session:
    if state.status not in _EDITABLE:
        return state
    return state.model_copy(
        update={
            "suggestions": SuggestionsState(
                is_loading=True, request_id=action.request_id or new_id()
            )
        }
    )


def _suggestions_success(
    state: Session, action: FetchSuggestionsSuccess, now: datetime
) -> Session:
    if state.status not in _EDITABLE or _is_stale(state, action.request_id):
        return state
    return state.model_copy(
        update={
            "suggestions": SuggestionsState(
                data=list(action.suggestions), request_id=state.suggestions.request_id
            )
        }
    )


def _suggestions_failure(
    state: Session, action: FetchSuggestionsFailure, now: datetime
) -> Session:
    if state.status not in _EDITABLE or _is_stale(state, action.request_id):
        return state
    return state.model_copy(
        update={
            "suggestions": SuggestionsState(
                error=action.error, request_id=state.suggestions.request_id
            )
        }
    )


# -----------------------------------------------------------------------------
# Dispatch
# -----------------------------------------------------------------------------


_HANDLERS: dict[type, Callable[[Session, object, datetime], Session]] = {
    StartSession: _start,
    EndSession: _end,
    ResetSession: _reset,
    Tick: _tick,
    LoadSnapshot: _load,
    ViewHistoryRecord: _view_history,
    CloseHistoryView: _close_history,
    LogEvent: _log_event,
    DeleteEvent: _delete_event,
    Undo: _undo,
    DismissRhythmAlert: _dismiss_rhythm,
    DismissPrepareEpinephrineAlert: _dismiss_prepare,
    DismissEpinephrineDueAlert: _dismiss_epinephrine_due,
    DismissPrompt: _dismiss_prompt,
    UpdateTimerSetting: _update_timer_setting,
    SetAlgorithmPath: _set_path,
    ToggleReversibleCause: _toggle_cause,
    UpdatePatientDetails: _update_patient,
    FetchSuggestionsStart: _suggestions_start,
    FetchSuggestionsSuccess: _suggestions_success,
    FetchSuggestionsFailure: _suggestions_failure,
}


def apply_action(
    state: Session,
    action: object,
    now: datetime | None = None,
) -> Session:
    """Compute the next session state.

    Args:
        state: The current session.
        action: Any action model from cprtrack.models.actions.
        now: Wall-clock time of the transition. Defaults to the current UTC time.

    Returns:
        The next session. Unknown or inapplicable actions return ``state``.
    """
    handler = _HANDLERS.get(type(action))
    if handler is None:
        return state
    return handler(state, action, now or datetime.now(timezone.utc))


# -----------------------------------------------------------------------------
# Persistence helpers
# -----------------------------------------------------------------------------


def strip_transient(state: Session) -> Session:
    """Drop dialog state, alert flags and the undo snapshot before persisting."""
    return state.model_copy(
        update={
            "alerts": Alerts(),
            "pending_prompt": None,
            "undo_snapshot": None,
            "viewing_history_record": None,
            "suggestions": SuggestionsState(data=state.suggestions.data),
        }
    )


def derive_outcome(event_log: list[EventRecord]) -> Outcome:
    """ROSC if the most recent event is a ROSC rhythm check."""
    if not event_log:
        return Outcome.UNKNOWN
    if event_log[0].kind == EventKind.RHYTHM_CHECK_ROSC:
        return Outcome.ROSC
    return Outcome.CEASED


def to_history_record(state: Session, now: datetime | None = None) -> HistoryRecord:
    """Freeze a finished code into a history record."""
    now = now or datetime.now(timezone.utc)
    return HistoryRecord(
        id=new_id(),
        date=now,
        started_at=state.started_at or now,
        elapsed_seconds=state.elapsed_seconds,
        patient_details=state.patient_details,
        summary_counts=state.summary_counts,
        events=list(state.event_log),
        outcome=derive_outcome(state.event_log),
    )
