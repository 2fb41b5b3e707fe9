"""Derived view models computed from the session.

These are the read-side projections that the UI consumes:
- Recommendation: the next guided action for the current algorithm step
- CodeReview: the post-code summary shown in review and history view
"""

from enum import Enum

from pydantic import BaseModel

from cprtrack.models.session import Outcome


# -----------------------------------------------------------------------------
# Recommendation
# -----------------------------------------------------------------------------


class RecommendedAction(str, Enum):
    """What the operator is prompted to do next."""

    SHOCK = "shock"
    EPINEPHRINE = "epinephrine"
    RESUME_CPR = "resume_cpr"
    ANTIARRHYTHMIC = "antiarrhythmic"


class Recommendation(BaseModel):
    """The guided action for one algorithm step."""

    title: str
    description: str
    action: RecommendedAction

    # Only meaningful when action is ANTIARRHYTHMIC
    amiodarone_available: bool = True
    lidocaine_available: bool = True
    amiodarone_dose: str | None = None
    lidocaine_dose: str | None = None


# -----------------------------------------------------------------------------
# Code review
# -----------------------------------------------------------------------------


class RhythmStatus(str, Enum):
    PULSELESS = "Pulseless"
    ROSC = "ROSC"


class TimelineSegment(BaseModel):
    """A stretch of the code spent in one rhythm status."""

    status: RhythmStatus
    start_seconds: float
    end_seconds: float

    @property
    def duration_seconds(self) -> float:
        return self.end_seconds - self.start_seconds


class MedicationLine(BaseModel):
    """Medication administrations grouped by name and dose."""

    name: str
    dose: str
    count: int


class ShockLine(BaseModel):
    at_seconds: float
    energy: str | None = None


class CodeReview(BaseModel):
    """Summary of a finished (or running) code.

    Computed from the event log in chronological order.
    """

    elapsed_seconds: float = 0.0
    total_compression_seconds: float = 0.0
    timeline: list[TimelineSegment] = []
    medications: list[MedicationLine] = []
    shocks: list[ShockLine] = []
    outcome: Outcome = Outcome.UNKNOWN

    @property
    def compression_fraction(self) -> float:
        """Share of the code spent doing compressions, 0.0 to 1.0."""
        if self.elapsed_seconds <= 0:
            return 0.0
        return min(1.0, self.total_compression_seconds / self.elapsed_seconds)
