"""Review reducer - the post-code summary.

Computed over the event log in chronological order, for either the live
session (review) or a stored history record (history view).
"""

from cprtrack.models.derived import (
    CodeReview,
    MedicationLine,
    RhythmStatus,
    ShockLine,
    TimelineSegment,
)
from cprtrack.models.events import EventKind, EventRecord
from cprtrack.models.session import HistoryRecord, Session
from cprtrack.reducers.session import derive_outcome


_DRUG_NAMES = {
    EventKind.EPINEPHRINE_GIVEN: "Epinephrine",
    EventKind.AMIODARONE_GIVEN: "Amiodarone",
    EventKind.LIDOCAINE_GIVEN: "Lidocaine",
    EventKind.OTHER_MEDICATION: "Other Medication",
}

_RHYTHM_CHECKS = (EventKind.RHYTHM_CHECK_PULSELESS, EventKind.RHYTHM_CHECK_ROSC)


def build_review(source: Session | HistoryRecord) -> CodeReview:
    """Summarize a code.

    Args:
        source: The live session or a stored history record.

    Returns:
        The computed CodeReview.
    """
    if isinstance(source, HistoryRecord):
        events = source.events
        outcome = source.outcome
    else:
        events = source.event_log
        outcome = derive_outcome(events)

    chronological = list(reversed(events))
    elapsed = source.elapsed_seconds

    return CodeReview(
        elapsed_seconds=elapsed,
        total_compression_seconds=compression_seconds(chronological, elapsed),
        timeline=rhythm_timeline(chronological, elapsed),
        medications=medication_summary(chronological),
        shocks=[
            ShockLine(at_seconds=e.occurred_at_elapsed_seconds, energy=e.details)
            for e in chronological
            if e.kind == EventKind.SHOCK_DELIVERED
        ],
        outcome=outcome,
    )


def compression_seconds(chronological: list[EventRecord], elapsed: float) -> float:
    """Total time spent doing compressions.

    A compressions-started event opens an interval; a pulseless or ROSC rhythm
    check closes it. An interval still open at the end runs to ``elapsed``.
    """
    total = 0.0
    started: float | None = None

    for event in chronological:
        if event.kind == EventKind.COMPRESSIONS_STARTED and started is None:
            started = event.occurred_at_elapsed_seconds
        elif event.kind in _RHYTHM_CHECKS and started is not None:
            total += event.occurred_at_elapsed_seconds - started
            started = None

    if started is not None:
        total += max(0.0, elapsed - started)

    return total


def rhythm_timeline(chronological: list[EventRecord], elapsed: float) -> list[TimelineSegment]:
    """Split the code into pulseless and ROSC stretches.

    The code is assumed pulseless from the start. Zero-length segments are
    dropped.
    """
    segments: list[TimelineSegment] = []
    status = RhythmStatus.PULSELESS
    last_seconds = 0.0

    for event in chronological:
        if event.kind not in _RHYTHM_CHECKS:
            continue
        at = event.occurred_at_elapsed_seconds
        if at > last_seconds:
            segments.append(
                TimelineSegment(status=status, start_seconds=last_seconds, end_seconds=at)
            )
        status = (
            RhythmStatus.ROSC
            if event.kind == EventKind.RHYTHM_CHECK_ROSC
            else RhythmStatus.PULSELESS
        )
        last_seconds = at

    if elapsed > last_seconds:
        segments.append(
            TimelineSegment(status=status, start_seconds=last_seconds, end_seconds=elapsed)
        )

    return segments


def medication_summary(chronological: list[EventRecord]) -> list[MedicationLine]:
    """Group medication events by (name, dose), in order of first use."""
    lines: dict[tuple[str, str], MedicationLine] = {}

    for event in chronological:
        if not event.is_medication:
            continue
        name = event.medication_name or _DRUG_NAMES[event.kind]
        dose = event.details or "Unknown Dose"
        key = (name, dose)
        if key in lines:
            lines[key] = lines[key].model_copy(update={"count": lines[key].count + 1})
        else:
            lines[key] = MedicationLine(name=name, dose=dose, count=1)

    return list(lines.values())
