"""JSONL import/export for cprtrack history.

Used for archiving finished codes, sharing repros, and migrating data.
"""

import json
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from cprtrack.models.session import HistoryRecord

if TYPE_CHECKING:
    from cprtrack.store.sqlite_store import SessionStore


def export_history_jsonl(
    store: "SessionStore",
    output_path: str | Path,
) -> int:
    """Export all history records to a JSONL file.

    Each line is a JSON object representing one finished code.

    Args:
        store: The store to read from.
        output_path: Path to write the JSONL file.

    Returns:
        Number of records exported.
    """
    records = store.load_history()
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        for record in records:
            f.write(record.model_dump_json() + "\n")

    return len(records)


def import_history_jsonl(
    store: "SessionStore",
    input_path: str | Path,
) -> int:
    """Import history records from a JSONL file into the store.

    Args:
        store: The store to write to.
        input_path: Path to the JSONL file.

    Returns:
        Number of records imported.

    Raises:
        ValueError: If the file contains invalid or duplicate records.
    """
    input_path = Path(input_path)
    count = 0

    with open(input_path, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue

            try:
                data = json.loads(line)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON on line {line_num}: {e}") from e

            try:
                record = HistoryRecord.model_validate(data)
            except ValidationError as e:
                raise ValueError(f"Invalid record on line {line_num}: {e}") from e

            try:
                store.append_history(record)
            except ValueError as e:
                raise ValueError(f"Line {line_num}: {e}") from e
            count += 1

    return count
