"""Tests for the post-code review projection."""

from datetime import datetime, timezone

from cprtrack.models.derived import MedicationLine, RhythmStatus
from cprtrack.models.events import EventKind, EventRecord
from cprtrack.models.session import CodeStatus, HistoryRecord, Outcome, Session
from cprtrack.reducers.review import (
    build_review,
    compression_seconds,
    medication_summary,
    rhythm_timeline,
)


def make_event(
    event_id: str,
    kind: EventKind,
    at: float,
    details: str | None = None,
    medication_name: str | None = None,
) -> EventRecord:
    """Helper to create test events."""
    return EventRecord(
        id=event_id,
        kind=kind,
        occurred_at_elapsed_seconds=at,
        details=details,
        medication_name=medication_name,
    )


def make_code() -> list[EventRecord]:
    """A short code in chronological order."""
    return [
        make_event("e1", EventKind.COMPRESSIONS_STARTED, 0),
        make_event("e2", EventKind.EPINEPHRINE_GIVEN, 30, "1mg IV Push"),
        make_event("e3", EventKind.RHYTHM_CHECK_PULSELESS, 120),
        make_event("e4", EventKind.SHOCK_DELIVERED, 125, "200J"),
        make_event("e5", EventKind.COMPRESSIONS_STARTED, 130),
        make_event("e6", EventKind.EPINEPHRINE_GIVEN, 210, "1mg IV Push"),
        make_event("e7", EventKind.OTHER_MEDICATION, 220, "Atropine 1mg", "Atropine"),
        make_event("e8", EventKind.RHYTHM_CHECK_ROSC, 250),
    ]


class TestCompressionSeconds:
    """Tests for total compression time."""

    def test_closed_intervals(self):
        assert compression_seconds(make_code(), 300) == 240

    def test_open_interval_runs_to_elapsed(self):
        events = [make_event("e1", EventKind.COMPRESSIONS_STARTED, 10)]
        assert compression_seconds(events, 100) == 90

    def test_repeated_start_does_not_reopen(self):
        events = [
            make_event("e1", EventKind.COMPRESSIONS_STARTED, 0),
            make_event("e2", EventKind.COMPRESSIONS_STARTED, 50),
            make_event("e3", EventKind.RHYTHM_CHECK_PULSELESS, 100),
        ]
        assert compression_seconds(events, 100) == 100

    def test_no_compressions(self):
        assert compression_seconds([], 100) == 0


class TestRhythmTimeline:
    """Tests for the pulseless/ROSC timeline."""

    def test_segments(self):
        timeline = rhythm_timeline(make_code(), 300)
        assert [(s.status, s.start_seconds, s.end_seconds) for s in timeline] == [
            (RhythmStatus.PULSELESS, 0, 120),
            (RhythmStatus.PULSELESS, 120, 250),
            (RhythmStatus.ROSC, 250, 300),
        ]
        assert timeline[-1].duration_seconds == 50

    def test_no_checks_is_one_pulseless_segment(self):
        timeline = rhythm_timeline([], 60)
        assert len(timeline) == 1
        assert timeline[0].status == RhythmStatus.PULSELESS

    def test_zero_length_segments_dropped(self):
        events = [make_event("e1", EventKind.RHYTHM_CHECK_ROSC, 0)]
        timeline = rhythm_timeline(events, 0)
        assert timeline == []


class TestMedicationSummary:
    """Tests for medication grouping."""

    def test_groups_by_name_and_dose(self):
        assert medication_summary(make_code()) == [
            MedicationLine(name="Epinephrine", dose="1mg IV Push", count=2),
            MedicationLine(name="Atropine", dose="Atropine 1mg", count=1),
        ]

    def test_unknown_dose(self):
        events = [make_event("e1", EventKind.AMIODARONE_GIVEN, 10)]
        assert medication_summary(events) == [
            MedicationLine(name="Amiodarone", dose="Unknown Dose", count=1)
        ]


class TestBuildReview:
    """Tests for the assembled review."""

    def test_from_session(self):
        session = Session(
            status=CodeStatus.REVIEW,
            started_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            elapsed_seconds=300,
            event_log=list(reversed(make_code())),
        )
        review = build_review(session)

        assert review.elapsed_seconds == 300
        assert review.total_compression_seconds == 240
        assert review.compression_fraction == 0.8
        assert review.outcome == Outcome.ROSC
        assert [(s.at_seconds, s.energy) for s in review.shocks] == [(125, "200J")]

    def test_from_history_record_uses_stored_outcome(self):
        record = HistoryRecord(
            id="rec1",
            date=datetime(2026, 1, 1, 0, 5, tzinfo=timezone.utc),
            started_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
            elapsed_seconds=300,
            events=list(reversed(make_code())),
            outcome=Outcome.CEASED,
        )
        review = build_review(record)
        assert review.outcome == Outcome.CEASED
        assert len(review.timeline) == 3

    def test_empty_session(self):
        review = build_review(Session())
        assert review.compression_fraction == 0.0
        assert review.outcome == Outcome.UNKNOWN
        assert review.medications == []
