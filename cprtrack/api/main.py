"""FastAPI application for cprtrack.

Endpoints:
- GET /state: The live session
- POST /actions: Apply one action to the live session
- GET /recommendation: Next guided action for the current algorithm step
- GET /review: Post-code summary of the live code or viewed history record
- GET /history: List finished codes
- GET /history/{record_id}: A single finished code
- POST /history/{record_id}/view: Open a finished code read-only
- POST /suggestions/parse: Apply the dash-line parse rule to service output

The clock is external: callers post {"type": "tick"} once per second while
the code is active.

Security:
- Set CPRTRACK_API_KEY env var to require authentication
- Payload size limited to 1MB by default
"""

from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from pydantic import BaseModel

from cprtrack.config import load_settings
from cprtrack.controller import CodeController
from cprtrack.models.actions import Action, ViewHistoryRecord
from cprtrack.models.derived import CodeReview, Recommendation
from cprtrack.models.session import HistoryRecord, Outcome, Session
from cprtrack.store.sqlite_store import SessionStore
from cprtrack.suggestions import parse_suggestions


API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)


# -----------------------------------------------------------------------------
# Request/Response models
# -----------------------------------------------------------------------------


class HistoryListItem(BaseModel):
    """Summary of a finished code for listing."""

    id: str
    date: datetime
    elapsed_seconds: float
    outcome: Outcome
    event_count: int


class ParseRequest(BaseModel):
    text: str


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------


def create_app(
    db_path: str | Path | None = None,
    require_api_key: bool | None = None,
    max_payload_size: int | None = None,
    resume: bool = True,
) -> FastAPI:
    """Create a FastAPI app around a single tracked code.

    Args:
        db_path: Path to SQLite database, or ":memory:" for in-memory.
                 Defaults to CPRTRACK_DB.
        require_api_key: If True, require X-API-Key header. If None, enabled
                         when CPRTRACK_API_KEY is set.
        max_payload_size: Maximum request payload size in bytes. Defaults to
                          CPRTRACK_MAX_PAYLOAD_SIZE or 1MB.
        resume: Load the persisted snapshot at startup.

    Returns:
        Configured FastAPI application.
    """
    settings = load_settings()

    store = SessionStore(db_path if db_path is not None else settings.db_path)
    controller = CodeController(store, timer_settings=settings.timer_settings)
    if resume:
        controller.resume()

    api_key = settings.api_key
    if require_api_key is None:
        require_api_key = api_key is not None

    if max_payload_size is None:
        max_payload_size = settings.max_payload_size

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        store.close()

    app = FastAPI(
        title="cprtrack API",
        description="Resuscitation event tracking and guided ACLS workflow",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.store = store
    app.state.controller = controller
    app.state.require_api_key = require_api_key
    app.state.api_key = api_key

    # -------------------------------------------------------------------------
    # Middleware for payload size limit
    # -------------------------------------------------------------------------

    @app.middleware("http")
    async def limit_payload_size(request: Request, call_next):
        """Reject requests with payload larger than max_payload_size."""
        content_length = request.headers.get("content-length")
        if content_length and int(content_length) > max_payload_size:
            return JSONResponse(
                status_code=413,
                content={"detail": f"Payload too large. Maximum size is {max_payload_size} bytes."},
            )
        return await call_next(request)

    # -------------------------------------------------------------------------
    # Dependency for API key verification
    # -------------------------------------------------------------------------

    async def verify_api_key(api_key_header: str | None = Depends(API_KEY_HEADER)):
        """Verify API key if required."""
        if not app.state.require_api_key:
            return
        if not api_key_header or api_key_header != app.state.api_key:
            raise HTTPException(
                status_code=401,
                detail="Invalid or missing API key. Set X-API-Key header.",
            )

    # ---------------------------------------------------------------------
    # Endpoints
    # ---------------------------------------------------------------------

    @app.get("/state", response_model=Session)
    async def get_state() -> Session:
        return controller.state

    @app.post("/actions", response_model=Session, dependencies=[Depends(verify_api_key)])
    async def post_action(action: Action = Body(...)) -> Session:
        """Apply one action to the live session.

        Actions that do not apply to the current status leave it unchanged.
        """
        return controller.dispatch(action)

    @app.get("/recommendation", response_model=Recommendation | None)
    async def get_recommendation() -> Recommendation | None:
        return controller.recommendation()

    @app.get("/review", response_model=CodeReview)
    async def get_review() -> CodeReview:
        return controller.review()

    @app.get("/history", response_model=list[HistoryListItem])
    async def list_history() -> list[HistoryListItem]:
        """List finished codes, oldest first."""
        return [
            HistoryListItem(
                id=record.id,
                date=record.date,
                elapsed_seconds=record.elapsed_seconds,
                outcome=record.outcome,
                event_count=len(record.events),
            )
            for record in store.load_history()
        ]

    @app.get("/history/{record_id}", response_model=HistoryRecord)
    async def get_history_record(record_id: str) -> HistoryRecord:
        record = store.get_history_record(record_id)
        if record is None:
            raise HTTPException(status_code=404, detail="History record not found")
        return record

    @app.post(
        "/history/{record_id}/view",
        response_model=Session,
        dependencies=[Depends(verify_api_key)],
    )
    async def view_history_record(record_id: str) -> Session:
        """Open a finished code read-only. Only applies while no code is running."""
        record = store.get_history_record(record_id)
        if record is None:
            raise HTTPException(status_code=404, detail="History record not found")
        return controller.dispatch(ViewHistoryRecord(record=record))

    @app.post("/suggestions/parse", response_model=list[str])
    async def parse_suggestion_text(request: ParseRequest) -> list[str]:
        return parse_suggestions(request.text)

    return app
