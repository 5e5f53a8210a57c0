"""
CSV ingestion and export.

Input rows need an id column (id / ID) and a name column (name / Name / NAME).
Output is the condensed group format:
group_id, group_name, members_id, members_name.
"""

import csv
from pathlib import Path
from typing import Dict, List, Sequence

from category_grouper.schemas.data_models import GroupRecord
from category_grouper.utils.advanced_logging import get_logger
from category_grouper.utils.error_handling import FileStorageError

logger = get_logger(__name__)

ID_COLUMNS = ("id", "ID")
NAME_COLUMNS = ("name", "Name", "NAME")
OUTPUT_COLUMNS = ["group_id", "group_name", "members_id", "members_name"]


def _first_value(row: Dict[str, str], columns: Sequence[str]) -> str:
    for column in columns:
        value = row.get(column)
        if value:
            return value
    return ""


def read_items_csv(path: str) -> List[Dict[str, str]]:
    """
    Read {id, name} rows from a CSV file.

    Values are trimmed; rows missing either value are skipped.

    Raises:
        FileStorageError: If the file cannot be read
    """
    rows: List[Dict[str, str]] = []
    skipped = 0

    try:
        with open(path, newline="", encoding="utf-8-sig") as f:
            for row in csv.DictReader(f):
                item_id = _first_value(row, ID_COLUMNS).strip()
                name = _first_value(row, NAME_COLUMNS).strip()
                if item_id and name:
                    rows.append({"id": item_id, "name": name})
                else:
                    skipped += 1
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise FileStorageError(f"Failed to read {path}: {e}", details={"path": path}) from e

    logger.info("csv_read", path=path, rows=len(rows), skipped=skipped)
    return rows


def write_group_records(path: str, records: Sequence[GroupRecord]) -> int:
    """
    Write group records as a condensed CSV.

    Member ids are joined with "," and member names with ", ".

    Returns:
        Number of rows written

    Raises:
        FileStorageError: If the file cannot be written
    """
    try:
        output = Path(path)
        output.parent.mkdir(parents=True, exist_ok=True)
        with open(output, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=OUTPUT_COLUMNS)
            writer.writeheader()
            for record in records:
                writer.writerow({
                    "group_id": record.group_id,
                    "group_name": record.group_name,
                    "members_id": ",".join(record.members_id),
                    "members_name": ", ".join(record.members_name),
                })
    except OSError as e:
        raise FileStorageError(f"Failed to write {path}: {e}", details={"path": path}) from e

    logger.info("csv_written", path=path, rows=len(records))
    return len(records)
