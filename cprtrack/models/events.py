"""Event models for the resuscitation event log.

Events are immutable once created. The log is kept newest-first: index 0 is
the most recently logged event.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_ACTOR = "System"


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------


class EventKind(str, Enum):
    """All clinical event kinds that can be logged."""

    COMPRESSIONS_STARTED = "Compressions Started"
    SHOCK_DELIVERED = "Shock Delivered"
    EPINEPHRINE_GIVEN = "Epinephrine"
    AMIODARONE_GIVEN = "Amiodarone"
    LIDOCAINE_GIVEN = "Lidocaine"
    OTHER_MEDICATION = "Other Medication"
    NOTE = "Nurse's Note"
    RHYTHM_CHECK_ROSC = "Rhythm Check: ROSC"
    RHYTHM_CHECK_PULSELESS = "Rhythm Check: Pulseless"
    RHYTHM_ANALYZED = "Rhythm Analyzed"
    CHECKLIST_UPDATE = "Checklist Update"


MEDICATION_KINDS = frozenset(
    {
        EventKind.EPINEPHRINE_GIVEN,
        EventKind.AMIODARONE_GIVEN,
        EventKind.LIDOCAINE_GIVEN,
        EventKind.OTHER_MEDICATION,
    }
)

# Events that end a compression cycle.
COMPRESSION_STOP_KINDS = frozenset(
    {
        EventKind.RHYTHM_CHECK_ROSC,
        EventKind.RHYTHM_CHECK_PULSELESS,
        EventKind.RHYTHM_ANALYZED,
    }
)


# -----------------------------------------------------------------------------
# Event record
# -----------------------------------------------------------------------------


class EventRecord(BaseModel):
    """A single logged clinical intervention.

    occurred_at_elapsed_seconds is the session-relative offset frozen at
    logging time. medication_name is only used by kinds that do not imply a
    fixed drug (other-medication).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: EventKind
    occurred_at_elapsed_seconds: float = Field(ge=0)
    details: str | None = None
    actor: str = DEFAULT_ACTOR
    medication_name: str | None = None

    @property
    def is_medication(self) -> bool:
        return self.kind in MEDICATION_KINDS

    @property
    def stops_compressions(self) -> bool:
        return self.kind in COMPRESSION_STOP_KINDS
