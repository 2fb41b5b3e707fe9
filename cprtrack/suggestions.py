"""Suggestion service contract.

The core never talks to a text-generation service directly. It builds a
digest of the session, hands it to an injected SuggestionClient, and parses
the reply: only lines starting with a dash are kept, with the dash stripped.
"""

import logging
from typing import Protocol

from cprtrack.models.actions import (
    FetchSuggestionsFailure,
    FetchSuggestionsStart,
    FetchSuggestionsSuccess,
)
from cprtrack.models.session import Session


logger = logging.getLogger(__name__)

EMPTY_RESPONSE_ERROR = "Could not generate suggestions. Please try again."
SERVICE_ERROR = "An error occurred while fetching suggestions."

_INSTRUCTIONS = (
    "You are an expert ACLS instructor providing guidance during a cardiac arrest. "
    "Based on the following summary, provide the top 3-4 most critical and likely "
    "next steps or considerations according to the latest AHA ACLS guidelines. "
    "Be very concise. Present the output as a simple list with each item starting "
    "with a hyphen (-). Do not add any introductory or concluding text."
)


class SuggestionClient(Protocol):
    """Anything that turns a prompt into free text."""

    def generate(self, prompt: str) -> str: ...


def format_duration(total_seconds: float) -> str:
    """HH:MM:SS, clamped at zero."""
    total = int(max(0, total_seconds))
    return f"{total // 3600:02d}:{(total % 3600) // 60:02d}:{total % 60:02d}"


def format_countdown(total_seconds: float) -> str:
    """MM:SS, clamped at zero."""
    total = int(max(0, total_seconds))
    return f"{total // 60:02d}:{total % 60:02d}"


def build_digest(session: Session) -> str:
    """Render the session as the prompt sent to the suggestion service."""
    counts = session.summary_counts
    timers = session.timers

    rhythm = (
        f"{format_countdown(timers.rhythm_check)} remaining"
        if timers.rhythm_check
        else "Due now"
    )
    epinephrine = (
        f"{format_countdown(timers.epinephrine)} remaining"
        if timers.epinephrine
        else "Consider administering"
    )

    last = session.last_event
    if last is not None:
        last_line = f"{last.kind.value} at {format_duration(last.occurred_at_elapsed_seconds)}"
    else:
        last_line = f"None at {format_duration(0)}"

    causes = ", ".join(session.reversible_causes.active()) or "None"

    lines = [
        _INSTRUCTIONS,
        "",
        "Current Code State:",
        f"- Total Duration: {format_duration(session.elapsed_seconds)}",
        f"- Time until next rhythm check: {rhythm}",
        f"- Time until next epinephrine dose: {epinephrine}",
        f"- Total shocks delivered: {counts.shocks}",
        f"- Last shock energy: {session.last_shock_energy or 'None'}",
        f"- Last event logged: {last_line}",
        f"- Known medications given: Epinephrine x{counts.epinephrine}, "
        f"Amiodarone {counts.amiodarone_mg}mg total, Lidocaine {counts.lidocaine_mg}mg total",
        f"- H's and T's Considered: {causes}",
    ]
    return "\n".join(lines) + "\n"


def parse_suggestions(text: str) -> list[str]:
    """Keep lines that begin with a dash, with the dash stripped."""
    suggestions = []
    for line in text.splitlines():
        line = line.strip()
        if line.startswith("-"):
            suggestions.append(line[1:].strip())
    return suggestions


def fetch_suggestions(controller, client: SuggestionClient) -> Session:
    """Run one suggestion request through the controller.

    Dispatches a start action, calls the client, then dispatches success or
    failure tagged with the same request id. Errors from the client are
    reported in the session, never raised.

    Args:
        controller: The CodeController holding the live session.
        client: The suggestion service client.

    Returns:
        The session after the request has settled.
    """
    state = controller.dispatch(FetchSuggestionsStart())
    request_id = state.suggestions.request_id
    if not state.suggestions.is_loading:
        return state

    try:
        text = client.generate(build_digest(state))
    except Exception:
        logger.exception("Suggestion request %s failed", request_id)
        return controller.dispatch(
            FetchSuggestionsFailure(error=SERVICE_ERROR, request_id=request_id)
        )

    suggestions = parse_suggestions(text)
    if not suggestions:
        return controller.dispatch(
            FetchSuggestionsFailure(error=EMPTY_RESPONSE_ERROR, request_id=request_id)
        )
    return controller.dispatch(
        FetchSuggestionsSuccess(suggestions=suggestions, request_id=request_id)
    )
