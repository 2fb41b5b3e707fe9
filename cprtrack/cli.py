"""CLI tools for cprtrack.

Commands:
- init: Initialize a new database
- history: List finished codes
- show: Print the review of one finished code
- export: Export history to JSONL
- import: Import history from JSONL
- delete: Delete one finished code
- serve: Start the API server
- doctor: Run health checks on the database
"""

import argparse
import logging
import sys
from multiprocessing import freeze_support
from pathlib import Path

from pydantic import ValidationError

from cprtrack.config import load_settings
from cprtrack.models.session import HistoryRecord, Session
from cprtrack.reducers.aggregates import reduce_aggregates
from cprtrack.reducers.review import build_review
from cprtrack.store.jsonl_io import export_history_jsonl, import_history_jsonl
from cprtrack.store.sqlite_store import SessionStore
from cprtrack.suggestions import format_duration


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new database."""
    db_path = Path(args.db)

    if db_path.exists() and not args.force:
        print(f"Database already exists: {db_path}")
        print("Use --force to overwrite.")
        return 1

    if db_path.exists():
        db_path.unlink()

    store = SessionStore(db_path)
    store.close()
    print(f"Initialized database: {db_path}")
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    """List finished codes."""
    store = SessionStore(Path(args.db))
    try:
        records = store.load_history()

        if args.json:
            print("[")
            for i, record in enumerate(records):
                comma = "," if i < len(records) - 1 else ""
                print(f"  {record.model_dump_json()}{comma}")
            print("]")
            return 0

        if not records:
            print("No history records found.")
            return 0

        for record in records:
            print(f"{record.id}")
            print(f"  Date: {record.date.isoformat()}")
            print(f"  Duration: {format_duration(record.elapsed_seconds)}")
            print(f"  Outcome: {record.outcome.value}")
            print(f"  Events: {len(record.events)}")
            print()

        return 0
    finally:
        store.close()


def cmd_show(args: argparse.Namespace) -> int:
    """Print the review of one finished code."""
    store = SessionStore(Path(args.db))
    try:
        record = store.get_history_record(args.record_id)
        if record is None:
            print(f"History record not found: {args.record_id}")
            return 1

        if args.json:
            print(record.model_dump_json(indent=2))
        else:
            _print_review(record)
        return 0
    finally:
        store.close()


def _print_review(record: HistoryRecord) -> None:
    """Print a human-readable code summary."""
    review = build_review(record)
    counts = record.summary_counts
    patient = record.patient_details

    print(f"Code: {record.id}")
    print(f"Patient: {patient.name or '(unnamed)'} HN {patient.hn or '---'}")
    print(f"Duration: {format_duration(review.elapsed_seconds)}")
    print(f"Outcome: {review.outcome.value}")
    print(f"Compression time: {format_duration(review.total_compression_seconds)}"
          f" ({review.compression_fraction:.0%})")
    print()

    print("=== Totals ===")
    print(f"  Shocks: {counts.shocks}")
    print(f"  Epinephrine: {counts.epinephrine}")
    print(f"  Amiodarone: {counts.amiodarone_mg}mg")
    print(f"  Lidocaine: {counts.lidocaine_mg}mg")
    for name, count in counts.other_medications.items():
        print(f"  {name}: {count}")
    print()

    print("=== Rhythm timeline ===")
    for segment in review.timeline:
        print(f"  {format_duration(segment.start_seconds)} - "
              f"{format_duration(segment.end_seconds)}  {segment.status.value}")
    print()

    print("=== Events ===")
    for event in reversed(record.events):
        line = f"  [{format_duration(event.occurred_at_elapsed_seconds)}] {event.kind.value}"
        if event.details:
            line += f": {event.details}"
        print(line)


def cmd_export(args: argparse.Namespace) -> int:
    """Export history to JSONL."""
    store = SessionStore(Path(args.db))
    try:
        count = export_history_jsonl(store, Path(args.output))
        print(f"Exported {count} records to {args.output}")
        return 0
    finally:
        store.close()


def cmd_import(args: argparse.Namespace) -> int:
    """Import history from JSONL."""
    input_path = Path(args.input)

    if not input_path.exists():
        print(f"Input file not found: {input_path}")
        return 1

    store = SessionStore(Path(args.db))
    try:
        count = import_history_jsonl(store, input_path)
        print(f"Imported {count} records from {input_path}")
        return 0
    except ValueError as e:
        print(f"Import error: {e}")
        return 1
    finally:
        store.close()


def cmd_delete(args: argparse.Namespace) -> int:
    """Delete one finished code."""
    store = SessionStore(Path(args.db))
    try:
        if not store.delete_history_record(args.record_id):
            print(f"History record not found: {args.record_id}")
            return 1
        print(f"Deleted {args.record_id}")
        return 0
    finally:
        store.close()


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn
        from cprtrack.api.main import create_app
    except ImportError:
        print("uvicorn not installed. Run: pip install uvicorn")
        return 1

    app = create_app(args.db)
    print(f"Starting cprtrack API server on http://{args.host}:{args.port}")
    print(f"Database: {args.db}")

    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    """Run health checks on the database.

    Checks:
    1. Snapshot parses (if present)
    2. Every history record parses
    3. Summary counts equal the fold of each record's events
    4. Event logs are newest-first
    """
    db_path = Path(args.db)

    if not db_path.exists():
        print(f"ERROR: Database not found: {db_path}")
        return 1

    print(f"Checking database: {db_path}")
    print("=" * 50)

    issues = []
    warnings = []

    store = SessionStore(db_path)
    try:
        # Check 1: Snapshot
        raw_snapshot = store.raw_snapshot()
        if raw_snapshot is None:
            print("Snapshot: none")
        else:
            try:
                snapshot = Session.model_validate_json(raw_snapshot)
                print(f"Snapshot: {snapshot.status.value}, {len(snapshot.event_log)} events")
                counts, _ = reduce_aggregates(snapshot.event_log)
                if counts != snapshot.summary_counts:
                    issues.append("[snapshot] Summary counts do not match event log")
            except ValidationError as e:
                status = store.snapshot_status()
                print(f"Snapshot: {status}, unreadable")
                warnings.append(f"[snapshot] Unreadable, will be ignored on resume: {e}")

        raw_history = store.raw_history()
        print(f"History records found: {len(raw_history)}")

        for record_id, record_json in raw_history:
            # Check 2: Record validation
            try:
                record = HistoryRecord.model_validate_json(record_json)
            except ValidationError as e:
                issues.append(f"[{record_id}] Invalid record: {e}")
                continue

            # Check 3: Aggregate consistency
            counts, _ = reduce_aggregates(record.events)
            if counts != record.summary_counts:
                issues.append(f"[{record_id}] Summary counts do not match events")

            # Check 4: Newest-first ordering
            offsets = [e.occurred_at_elapsed_seconds for e in record.events]
            if offsets != sorted(offsets, reverse=True):
                warnings.append(f"[{record_id}] Events not in newest-first order")

            print(f"  {record_id}: {len(record.events)} events, outcome={record.outcome.value}")

        print("=" * 50)

        if warnings:
            print(f"\nWarnings ({len(warnings)}):")
            for w in warnings:
                print(f"  [WARN] {w}")

        if issues:
            print(f"\nIssues ({len(issues)}):")
            for issue in issues:
                print(f"  [FAIL] {issue}")
            print("\nDiagnosis: UNHEALTHY")
            return 1
        else:
            print("\n[OK] All checks passed")
            print("Diagnosis: HEALTHY")
            return 0

    finally:
        store.close()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    settings = load_settings()

    parser = argparse.ArgumentParser(
        description="cprtrack CLI - resuscitation event history",
        prog="cprtrack",
    )
    parser.add_argument(
        "--db",
        default=settings.db_path,
        help=f"Database path (default: {settings.db_path})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init
    init_parser = subparsers.add_parser("init", help="Initialize database")
    init_parser.add_argument("--force", action="store_true", help="Overwrite existing")

    # history
    history_parser = subparsers.add_parser("history", help="List finished codes")
    history_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # show
    show_parser = subparsers.add_parser("show", help="Show one finished code")
    show_parser.add_argument("record_id", help="History record to show")
    show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # export
    export_parser = subparsers.add_parser("export", help="Export history to JSONL")
    export_parser.add_argument("--output", "-o", required=True, help="Output file")

    # import
    import_parser = subparsers.add_parser("import", help="Import history from JSONL")
    import_parser.add_argument("input", help="Input JSONL file")

    # delete
    delete_parser = subparsers.add_parser("delete", help="Delete a finished code")
    delete_parser.add_argument("record_id", help="History record to delete")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")

    # doctor
    subparsers.add_parser("doctor", help="Run health checks on database")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "init": cmd_init,
        "history": cmd_history,
        "show": cmd_show,
        "export": cmd_export,
        "import": cmd_import,
        "delete": cmd_delete,
        "serve": cmd_serve,
        "doctor": cmd_doctor,
    }

    return commands[args.command](args)


if __name__ == "__main__":
    freeze_support()
    sys.exit(main())
