"""Aggregate reducer - summary counters derived from the event log.

Two entry points share one per-event rule so they can never disagree:
- apply_event: O(1) update of existing totals when an event is logged
- reduce_aggregates: full re-fold of the log after a deletion

Key invariant: summary_counts always equals reduce_aggregates(event_log).
"""

import re

from cprtrack.models.events import EventKind, EventRecord
from cprtrack.models.session import SummaryCounts


_FIRST_NUMBER = re.compile(r"(\d+)")


def parse_dose(dose: str | None) -> int:
    """Extract a milligram amount from a free-text dose.

    Best effort: the first run of digits is taken as milligrams and any unit
    is ignored, so "1.5mg" reads as 1 and "1g" reads as 1. Text without
    digits contributes 0.
    """
    if not dose:
        return 0
    match = _FIRST_NUMBER.search(dose)
    return int(match.group(1)) if match else 0


def apply_event(
    counts: SummaryCounts,
    last_shock_energy: str | None,
    event: EventRecord,
) -> tuple[SummaryCounts, str | None]:
    """Apply one event's effect to the running totals.

    Args:
        counts: Totals before the event.
        last_shock_energy: Energy label of the latest shock before the event.
        event: The event to fold in.

    Returns:
        The new (counts, last_shock_energy) pair.
    """
    if event.kind == EventKind.SHOCK_DELIVERED:
        counts = counts.model_copy(update={"shocks": counts.shocks + 1})
        last_shock_energy = event.details or None

    elif event.kind == EventKind.EPINEPHRINE_GIVEN:
        counts = counts.model_copy(update={"epinephrine": counts.epinephrine + 1})

    elif event.kind == EventKind.AMIODARONE_GIVEN:
        counts = counts.model_copy(
            update={"amiodarone_mg": counts.amiodarone_mg + parse_dose(event.details)}
        )

    elif event.kind == EventKind.LIDOCAINE_GIVEN:
        counts = counts.model_copy(
            update={"lidocaine_mg": counts.lidocaine_mg + parse_dose(event.details)}
        )

    elif event.kind == EventKind.OTHER_MEDICATION:
        # Unnamed medications are logged but not counted
        if event.medication_name:
            others = dict(counts.other_medications)
            others[event.medication_name] = others.get(event.medication_name, 0) + 1
            counts = counts.model_copy(update={"other_medications": others})

    return counts, last_shock_energy


def reduce_aggregates(
    event_log: list[EventRecord],
) -> tuple[SummaryCounts, str | None]:
    """Rebuild totals from scratch.

    Args:
        event_log: The event log, newest first.

    Returns:
        The (counts, last_shock_energy) pair for the whole log.
    """
    counts = SummaryCounts()
    last_shock_energy: str | None = None

    # Fold oldest to newest so the latest shock wins
    for event in reversed(event_log):
        counts, last_shock_energy = apply_event(counts, last_shock_energy, event)

    return counts, last_shock_energy
