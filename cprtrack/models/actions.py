"""Actions accepted by the session state machine.

Every action is a small pydantic model tagged by its ``type`` literal, so a
JSON body can be parsed into the right class with ``ActionAdapter``.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from cprtrack.models.events import EventKind
from cprtrack.models.session import (
    AlgorithmPath,
    HistoryRecord,
    ReversibleCause,
    Session,
    TimerName,
    TimerSettings,
)


# -----------------------------------------------------------------------------
# Lifecycle
# -----------------------------------------------------------------------------


class StartSession(BaseModel):
    """Begin a new code. timer_settings overrides the configured defaults."""

    type: Literal["start"] = "start"
    timer_settings: TimerSettings | None = None


class EndSession(BaseModel):
    type: Literal["end"] = "end"


class ResetSession(BaseModel):
    type: Literal["reset"] = "reset"


class Tick(BaseModel):
    type: Literal["tick"] = "tick"


class LoadSnapshot(BaseModel):
    """Replace the state with a persisted snapshot."""

    type: Literal["load"] = "load"
    snapshot: Session


class ViewHistoryRecord(BaseModel):
    type: Literal["view-history"] = "view-history"
    record: HistoryRecord


class CloseHistoryView(BaseModel):
    type: Literal["close-history"] = "close-history"


# -----------------------------------------------------------------------------
# Event log
# -----------------------------------------------------------------------------


class LogEvent(BaseModel):
    """Append a clinical event."""

    type: Literal["log-event"] = "log-event"
    kind: EventKind
    details: str | None = None
    actor: str | None = None
    medication_name: str | None = None


class DeleteEvent(BaseModel):
    type: Literal["delete-event"] = "delete-event"
    event_id: str


class Undo(BaseModel):
    type: Literal["undo"] = "undo"


# -----------------------------------------------------------------------------
# Alerts and prompts
# -----------------------------------------------------------------------------


class DismissRhythmAlert(BaseModel):
    type: Literal["dismiss-rhythm-alert"] = "dismiss-rhythm-alert"


class DismissPrepareEpinephrineAlert(BaseModel):
    type: Literal["dismiss-prepare-epinephrine"] = "dismiss-prepare-epinephrine"


class DismissEpinephrineDueAlert(BaseModel):
    type: Literal["dismiss-epinephrine-due"] = "dismiss-epinephrine-due"


class DismissPrompt(BaseModel):
    type: Literal["dismiss-prompt"] = "dismiss-prompt"


# -----------------------------------------------------------------------------
# Settings, algorithm, checklist
# -----------------------------------------------------------------------------


class UpdateTimerSetting(BaseModel):
    type: Literal["update-timer-setting"] = "update-timer-setting"
    timer: TimerName
    value: int


class SetAlgorithmPath(BaseModel):
    type: Literal["set-path"] = "set-path"
    path: AlgorithmPath


class ToggleReversibleCause(BaseModel):
    type: Literal["toggle-cause"] = "toggle-cause"
    cause: ReversibleCause


class UpdatePatientDetails(BaseModel):
    """Partial update; fields left as None are kept."""

    type: Literal["update-patient"] = "update-patient"
    hn: str | None = None
    name: str | None = None
    age: str | None = None
    sex: str | None = None
    history: str | None = None
    diagnosis: str | None = None


# -----------------------------------------------------------------------------
# Suggestions
# -----------------------------------------------------------------------------


class FetchSuggestionsStart(BaseModel):
    type: Literal["fetch-suggestions-start"] = "fetch-suggestions-start"
    request_id: str | None = None


class FetchSuggestionsSuccess(BaseModel):
    type: Literal["fetch-suggestions-success"] = "fetch-suggestions-success"
    suggestions: list[str]
    request_id: str | None = None


class FetchSuggestionsFailure(BaseModel):
    type: Literal["fetch-suggestions-failure"] = "fetch-suggestions-failure"
    error: str
    request_id: str | None = None


Action = Annotated[
    Union[
        StartSession,
        EndSession,
        ResetSession,
        Tick,
        LoadSnapshot,
        ViewHistoryRecord,
        CloseHistoryView,
        LogEvent,
        DeleteEvent,
        Undo,
        DismissRhythmAlert,
        DismissPrepareEpinephrineAlert,
        DismissEpinephrineDueAlert,
        DismissPrompt,
        UpdateTimerSetting,
        SetAlgorithmPath,
        ToggleReversibleCause,
        UpdatePatientDetails,
        FetchSuggestionsStart,
        FetchSuggestionsSuccess,
        FetchSuggestionsFailure,
    ],
    Field(discriminator="type"),
]

ActionAdapter: TypeAdapter[Action] = TypeAdapter(Action)
