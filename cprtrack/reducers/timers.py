"""Timer and alert reducer.

Owns the two countdowns and the four alert flags:
- rhythm_check_due: the rhythm-check countdown reached 0
- prepare_epinephrine: the epinephrine countdown is exactly one minute out
- epinephrine_due: the epinephrine countdown reached 0
- no_flow: compressions have been stopped too long without ROSC

The prepare warning is an equality check on a single tick value. A skipped
tick (suspended clock, delayed wake) skips the warning entirely.
"""

from datetime import datetime

from cprtrack.models.events import EventKind
from cprtrack.models.session import CodeStatus, Session


TICK_SECONDS = 1
NO_FLOW_THRESHOLD_SECONDS = 15
PREPARE_EPINEPHRINE_AT = 60


def _countdown(remaining: int | None) -> int | None:
    """Decrement a running timer by one tick, never below zero."""
    if remaining is None:
        return None
    return max(0, remaining - TICK_SECONDS)


def reduce_tick(session: Session, now: datetime) -> Session:
    """Advance the clock by one tick.

    Args:
        session: The current session.
        now: Wall-clock time of the tick.

    Returns:
        The session with elapsed time, timers and alerts updated. Unchanged
        unless the session is active.
    """
    if session.status != CodeStatus.ACTIVE or session.started_at is None:
        return session

    elapsed = max(session.elapsed_seconds, (now - session.started_at).total_seconds())

    rhythm_check = _countdown(session.timers.rhythm_check)
    epinephrine = _countdown(session.timers.epinephrine)
    alerts = session.alerts

    if rhythm_check == 0:
        alerts = alerts.model_copy(update={"rhythm_check_due": True})

    if epinephrine == 0:
        alerts = alerts.model_copy(
            update={"epinephrine_due": True, "prepare_epinephrine": False}
        )
    elif epinephrine == PREPARE_EPINEPHRINE_AT:
        alerts = alerts.model_copy(update={"prepare_epinephrine": True})

    # No-flow only applies while nobody is timing a compression cycle
    if rhythm_check is None:
        if _no_flow_exceeded(session, now):
            alerts = alerts.model_copy(update={"no_flow": True})
    elif alerts.no_flow:
        alerts = alerts.model_copy(update={"no_flow": False})

    return session.model_copy(
        update={
            "elapsed_seconds": elapsed,
            "timers": session.timers.model_copy(
                update={"rhythm_check": rhythm_check, "epinephrine": epinephrine}
            ),
            "alerts": alerts,
        }
    )


def _no_flow_exceeded(session: Session, now: datetime) -> bool:
    stopped_at = session.last_compression_stopped_at
    if stopped_at is None:
        return False
    if (now - stopped_at).total_seconds() <= NO_FLOW_THRESHOLD_SECONDS:
        return False
    last_event = session.last_event
    return last_event is None or last_event.kind != EventKind.RHYTHM_CHECK_ROSC


def start_compressions(session: Session) -> Session:
    """Compressions resumed: clear no-flow and ensure a rhythm-check countdown."""
    rhythm_check = session.timers.rhythm_check
    if not rhythm_check:
        rhythm_check = session.timer_settings.rhythm_check

    return session.model_copy(
        update={
            "timers": session.timers.model_copy(update={"rhythm_check": rhythm_check}),
            "last_compression_stopped_at": None,
            "alerts": session.alerts.model_copy(update={"no_flow": False}),
        }
    )


def stop_compressions(session: Session, now: datetime) -> Session:
    """Compressions paused for a rhythm check or ROSC."""
    return session.model_copy(
        update={
            "timers": session.timers.model_copy(update={"rhythm_check": None}),
            "last_compression_stopped_at": now,
            "alerts": session.alerts.model_copy(update={"rhythm_check_due": False}),
        }
    )


def restart_epinephrine(session: Session) -> Session:
    """Restart the epinephrine countdown at its full interval and clear its alerts."""
    return session.model_copy(
        update={
            "timers": session.timers.model_copy(
                update={"epinephrine": session.timer_settings.epinephrine}
            ),
            "alerts": session.alerts.model_copy(
                update={"prepare_epinephrine": False, "epinephrine_due": False}
            ),
        }
    )


def dismiss_rhythm_alert(session: Session, now: datetime) -> Session:
    """Dismissal stops the rhythm-check countdown rather than restarting it."""
    return stop_compressions(session, now)


def dismiss_prepare_epinephrine(session: Session) -> Session:
    return session.model_copy(
        update={"alerts": session.alerts.model_copy(update={"prepare_epinephrine": False})}
    )


def dismiss_epinephrine_due(session: Session) -> Session:
    """Dismissal defers the dose: the countdown restarts at its full interval."""
    return session.model_copy(
        update={
            "timers": session.timers.model_copy(
                update={"epinephrine": session.timer_settings.epinephrine}
            ),
            "alerts": session.alerts.model_copy(update={"epinephrine_due": False}),
        }
    )


def clear_timers_and_alerts(session: Session) -> Session:
    """Stop every countdown and drop every alert, as when a code ends."""
    return session.model_copy(
        update={
            "timers": session.timers.model_copy(
                update={"rhythm_check": None, "epinephrine": None}
            ),
            "alerts": session.alerts.model_copy(
                update={
                    "rhythm_check_due": False,
                    "prepare_epinephrine": False,
                    "epinephrine_due": False,
                    "no_flow": False,
                }
            ),
        }
    )
