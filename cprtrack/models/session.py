"""Session state models.

The Session is the single authoritative value describing the live code. It is
never mutated in place: every transition derives a new value with
``model_copy(update=...)``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from cprtrack.models.events import EventRecord


DEFAULT_RHYTHM_CHECK_INTERVAL = 120
DEFAULT_EPINEPHRINE_INTERVAL = 180


def _as_utc(value: datetime) -> datetime:
    """Timestamps without an offset are read as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------


class CodeStatus(str, Enum):
    """Lifecycle status of the session."""

    INACTIVE = "inactive"
    ACTIVE = "active"
    REVIEW = "review"
    HISTORY_VIEW = "history_view"


class AlgorithmPath(str, Enum):
    """Guideline branch selected after rhythm classification."""

    SHOCKABLE = "shockable"
    NON_SHOCKABLE = "non-shockable"


class TimerName(str, Enum):
    """Configurable countdown timers."""

    RHYTHM_CHECK = "rhythm_check"
    EPINEPHRINE = "epinephrine"


class PromptKind(str, Enum):
    """Prompts the core asks the presentation layer to show."""

    INITIAL_RHYTHM = "initial_rhythm"
    RECOMMENDATION = "recommendation"


class Outcome(str, Enum):
    """Outcome recorded for a finished code."""

    ROSC = "ROSC"
    CEASED = "Ceased"
    UNKNOWN = "Unknown"


class ReversibleCause(str, Enum):
    """The H's and T's differential-diagnosis checklist."""

    HYPOVOLEMIA = "hypovolemia"
    HYPOXIA = "hypoxia"
    HYDROGEN_ION = "hydrogen_ion"
    HYPO_HYPERKALEMIA = "hypo_hyperkalemia"
    HYPOTHERMIA = "hypothermia"
    TENSION_PNEUMOTHORAX = "tension_pneumothorax"
    TAMPONADE = "tamponade"
    TOXINS = "toxins"
    THROMBOSIS_PULMONARY = "thrombosis_pulmonary"
    THROMBOSIS_CORONARY = "thrombosis_coronary"


# -----------------------------------------------------------------------------
# Sub-states
# -----------------------------------------------------------------------------


class TimerSettings(BaseModel):
    """Operator-configurable timer intervals, in seconds."""

    model_config = ConfigDict(frozen=True)

    rhythm_check: int = Field(default=DEFAULT_RHYTHM_CHECK_INTERVAL, gt=0)
    epinephrine: int = Field(default=DEFAULT_EPINEPHRINE_INTERVAL, gt=0)


class Timers(BaseModel):
    """Running countdowns. None means the timer is not running."""

    model_config = ConfigDict(frozen=True)

    rhythm_check: int | None = Field(default=None, ge=0)
    epinephrine: int | None = Field(default=None, ge=0)


class Alerts(BaseModel):
    """Alert flags owned by the timer and alert engine."""

    model_config = ConfigDict(frozen=True)

    rhythm_check_due: bool = False
    prepare_epinephrine: bool = False
    epinephrine_due: bool = False
    no_flow: bool = False


class AlgorithmState(BaseModel):
    """Guided algorithm position. step is meaningless while path is None."""

    model_config = ConfigDict(frozen=True)

    path: AlgorithmPath | None = None
    step: int = Field(default=0, ge=0)


class ReversibleCauses(BaseModel):
    """Flags for the reversible causes considered so far."""

    model_config = ConfigDict(frozen=True)

    hypovolemia: bool = False
    hypoxia: bool = False
    hydrogen_ion: bool = False
    hypo_hyperkalemia: bool = False
    hypothermia: bool = False
    tension_pneumothorax: bool = False
    tamponade: bool = False
    toxins: bool = False
    thrombosis_pulmonary: bool = False
    thrombosis_coronary: bool = False

    def active(self) -> list[str]:
        """Names of the causes currently flagged."""
        return [name for name, value in self.model_dump().items() if value]


class SummaryCounts(BaseModel):
    """Totals derived from the event log.

    amiodarone_mg and lidocaine_mg are cumulative milligrams.
    """

    model_config = ConfigDict(frozen=True)

    shocks: int = 0
    epinephrine: int = 0
    amiodarone_mg: int = 0
    lidocaine_mg: int = 0
    other_medications: dict[str, int] = {}


class PatientDetails(BaseModel):
    model_config = ConfigDict(frozen=True)

    hn: str = ""
    name: str = ""
    age: str = ""
    sex: str = ""
    history: str = ""
    diagnosis: str = ""


class SuggestionsState(BaseModel):
    """Result of the most recent suggestion request."""

    model_config = ConfigDict(frozen=True)

    is_loading: bool = False
    error: str | None = None
    data: list[str] = []
    request_id: str | None = None


# -----------------------------------------------------------------------------
# History record
# -----------------------------------------------------------------------------


class HistoryRecord(BaseModel):
    """A finished code, stored for later read-only review."""

    model_config = ConfigDict(frozen=True)

    id: str
    date: UtcDatetime
    started_at: UtcDatetime
    elapsed_seconds: float = 0.0
    patient_details: PatientDetails = PatientDetails()
    summary_counts: SummaryCounts = SummaryCounts()
    events: list[EventRecord] = []
    outcome: Outcome = Outcome.UNKNOWN


# -----------------------------------------------------------------------------
# Session
# -----------------------------------------------------------------------------


class Session(BaseModel):
    """Complete state of the tracked code.

    summary_counts and last_shock_energy always equal the fold of event_log.
    undo_snapshot holds the state before the last undoable action; its own
    undo_snapshot is always None.
    """

    model_config = ConfigDict(frozen=True)

    status: CodeStatus = CodeStatus.INACTIVE
    started_at: UtcDatetime | None = None
    elapsed_seconds: float = 0.0

    timer_settings: TimerSettings = TimerSettings()
    timers: Timers = Timers()
    last_compression_stopped_at: UtcDatetime | None = None

    algorithm: AlgorithmState = AlgorithmState()
    reversible_causes: ReversibleCauses = ReversibleCauses()
    summary_counts: SummaryCounts = SummaryCounts()
    last_shock_energy: str | None = None
    alerts: Alerts = Alerts()

    event_log: list[EventRecord] = []
    patient_details: PatientDetails = PatientDetails()
    suggestions: SuggestionsState = SuggestionsState()
    pending_prompt: PromptKind | None = None
    viewing_history_record: HistoryRecord | None = None

    undo_snapshot: "Session | None" = None

    @property
    def last_event(self) -> EventRecord | None:
        return self.event_log[0] if self.event_log else None
