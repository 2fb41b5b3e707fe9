"""Environment-driven settings.

- CPRTRACK_DB: SQLite path for snapshot and history
- CPRTRACK_RHYTHM_CHECK_INTERVAL / CPRTRACK_EPINEPHRINE_INTERVAL: default
  timer intervals in seconds, applied when a code starts
- CPRTRACK_API_KEY: when set, the HTTP API requires the X-API-Key header
- CPRTRACK_MAX_PAYLOAD_SIZE: HTTP request size limit in bytes
"""

import logging
import os

from pydantic import BaseModel

from cprtrack.models.session import (
    DEFAULT_EPINEPHRINE_INTERVAL,
    DEFAULT_RHYTHM_CHECK_INTERVAL,
    TimerSettings,
)


logger = logging.getLogger(__name__)

DEFAULT_DB = "cprtrack.db"
DEFAULT_MAX_PAYLOAD_SIZE = 1024 * 1024  # 1MB


class Settings(BaseModel):
    db_path: str = DEFAULT_DB
    timer_settings: TimerSettings = TimerSettings()
    api_key: str | None = None
    max_payload_size: int = DEFAULT_MAX_PAYLOAD_SIZE


def _positive_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %d", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Ignoring %s=%r: must be positive, using %d", name, raw, default)
        return default
    return value


def load_settings() -> Settings:
    """Read settings from the environment."""
    return Settings(
        db_path=os.environ.get("CPRTRACK_DB", DEFAULT_DB),
        timer_settings=TimerSettings(
            rhythm_check=_positive_int(
                "CPRTRACK_RHYTHM_CHECK_INTERVAL", DEFAULT_RHYTHM_CHECK_INTERVAL
            ),
            epinephrine=_positive_int(
                "CPRTRACK_EPINEPHRINE_INTERVAL", DEFAULT_EPINEPHRINE_INTERVAL
            ),
        ),
        api_key=os.environ.get("CPRTRACK_API_KEY") or None,
        max_payload_size=_positive_int("CPRTRACK_MAX_PAYLOAD_SIZE", DEFAULT_MAX_PAYLOAD_SIZE),
    )
