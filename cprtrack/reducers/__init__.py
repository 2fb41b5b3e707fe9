"""Reducers that compute the session state and its derived views."""

from cprtrack.reducers.aggregates import reduce_aggregates, parse_dose
from cprtrack.reducers.algorithm import recommend
from cprtrack.reducers.review import build_review
from cprtrack.reducers.session import apply_action
from cprtrack.reducers.timers import reduce_tick

__all__ = [
    "reduce_aggregates",
    "parse_dose",
    "recommend",
    "build_review",
    "apply_action",
    "reduce_tick",
]
