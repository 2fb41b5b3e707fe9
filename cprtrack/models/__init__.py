"""cprtrack data models."""

from cprtrack.models.events import (
    DEFAULT_ACTOR,
    EventKind,
    EventRecord,
)
from cprtrack.models.session import (
    AlgorithmPath,
    AlgorithmState,
    Alerts,
    CodeStatus,
    HistoryRecord,
    Outcome,
    PatientDetails,
    PromptKind,
    ReversibleCause,
    ReversibleCauses,
    Session,
    SuggestionsState,
    SummaryCounts,
    TimerName,
    TimerSettings,
    Timers,
)
from cprtrack.models.actions import Action, ActionAdapter
from cprtrack.models.derived import (
    CodeReview,
    MedicationLine,
    Recommendation,
    RecommendedAction,
    TimelineSegment,
)

__all__ = [
    # Events
    "DEFAULT_ACTOR",
    "EventKind",
    "EventRecord",
    # Session
    "AlgorithmPath",
    "AlgorithmState",
    "Alerts",
    "CodeStatus",
    "HistoryRecord",
    "Outcome",
    "PatientDetails",
    "PromptKind",
    "ReversibleCause",
    "ReversibleCauses",
    "Session",
    "SuggestionsState",
    "SummaryCounts",
    "TimerName",
    "TimerSettings",
    "Timers",
    # Actions
    "Action",
    "ActionAdapter",
    # Derived
    "CodeReview",
    "MedicationLine",
    "Recommendation",
    "RecommendedAction",
    "TimelineSegment",
]
