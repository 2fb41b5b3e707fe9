"""Guided algorithm reducer - path and step tracking.

The core owns only the (path, step) pair. Steps advance by one when a
qualifying event is logged while a path is set. ROSC is the only transition
that resets the algorithm.

The recommendation table maps (path, step) to the next guided action. Steps
past the end of the table repeat the steady-state "Continuing Cycles" entry,
so step may grow without bound.
"""

from cprtrack.models.derived import Recommendation, RecommendedAction
from cprtrack.models.events import EventKind, EventRecord
from cprtrack.models.session import AlgorithmPath, AlgorithmState, SummaryCounts


AMIODARONE_MAX_MG = 450
LIDOCAINE_MAX_MG = 300

# Events that advance the step on any path
_ADVANCE_ON_ANY_PATH = frozenset({EventKind.EPINEPHRINE_GIVEN})

# Events that advance the step on the shockable path only
_ADVANCE_ON_SHOCKABLE = frozenset(
    {
        EventKind.SHOCK_DELIVERED,
        EventKind.AMIODARONE_GIVEN,
        EventKind.LIDOCAINE_GIVEN,
    }
)


def classify(path: AlgorithmPath) -> AlgorithmState:
    """Start a path at step 1 after rhythm classification."""
    return AlgorithmState(path=path, step=1)


def classification_details(path: AlgorithmPath) -> str:
    """Text recorded on the rhythm-analyzed event."""
    if path == AlgorithmPath.SHOCKABLE:
        return "Rhythm is VF/pVT (Shockable)"
    return "Rhythm is Asystole/PEA (Non-shockable)"


def should_advance(state: AlgorithmState, event: EventRecord) -> bool:
    """Whether logging this event moves the algorithm one step forward."""
    if state.path is None:
        return False
    if event.kind in _ADVANCE_ON_ANY_PATH:
        return True
    return state.path == AlgorithmPath.SHOCKABLE and event.kind in _ADVANCE_ON_SHOCKABLE


def reduce_algorithm(state: AlgorithmState, event: EventRecord) -> AlgorithmState:
    """Apply one logged event to the algorithm state.

    Args:
        state: The algorithm state before the event.
        event: The newly logged event.

    Returns:
        The next algorithm state.
    """
    if event.kind == EventKind.RHYTHM_CHECK_ROSC:
        return AlgorithmState()

    if should_advance(state, event):
        return state.model_copy(update={"step": state.step + 1})

    return state


# -----------------------------------------------------------------------------
# Recommendation table
# -----------------------------------------------------------------------------

_CONTINUING = (
    "Continuing Cycles",
    "Continue CPR, administer Epinephrine every 3-5 mins.",
    RecommendedAction.EPINEPHRINE,
)

_SHOCKABLE_STEPS = {
    1: ("Shockable Rhythm: VF/pVT", "First action is to defibrillate.", RecommendedAction.SHOCK),
    2: ("Post-Shock", "Immediately resume compressions. Epinephrine is next.", RecommendedAction.RESUME_CPR),
    3: ("Epinephrine Cycle", "Administer Epinephrine, then prepare for next rhythm check.", RecommendedAction.EPINEPHRINE),
    4: ("Post-Epinephrine", "Continue CPR. Another shock is due if rhythm persists.", RecommendedAction.RESUME_CPR),
    5: ("Refractory VF/pVT", "Deliver another shock.", RecommendedAction.SHOCK),
    6: ("Antiarrhythmic Cycle", "Immediately resume CPR. Consider antiarrhythmic drugs.", RecommendedAction.RESUME_CPR),
    7: ("Administer Antiarrhythmic", "Administer Amiodarone or Lidocaine.", RecommendedAction.ANTIARRHYTHMIC),
}

_NON_SHOCKABLE_STEPS = {
    1: ("Non-Shockable: Asystole/PEA", "Administer Epinephrine as soon as possible.", RecommendedAction.EPINEPHRINE),
    2: ("Post-Epinephrine", "Immediately resume high-quality CPR.", RecommendedAction.RESUME_CPR),
}


def recommend(
    state: AlgorithmState,
    counts: SummaryCounts,
) -> Recommendation | None:
    """Look up the guided action for the current step.

    Args:
        state: The algorithm state.
        counts: Current totals, used to cap antiarrhythmic doses.

    Returns:
        The recommendation, or None when no path is set.
    """
    if state.path is None:
        return None

    table = _SHOCKABLE_STEPS if state.path == AlgorithmPath.SHOCKABLE else _NON_SHOCKABLE_STEPS
    title, description, action = table.get(state.step, _CONTINUING)

    recommendation = Recommendation(title=title, description=description, action=action)
    if action == RecommendedAction.ANTIARRHYTHMIC:
        recommendation = recommendation.model_copy(
            update={
                "amiodarone_available": counts.amiodarone_mg < AMIODARONE_MAX_MG,
                "lidocaine_available": counts.lidocaine_mg < LIDOCAINE_MAX_MG,
                "amiodarone_dose": "300mg IV Push" if counts.amiodarone_mg == 0 else "150mg IV Push",
                "lidocaine_dose": "100mg IV Push",
            }
        )
    return recommendation
