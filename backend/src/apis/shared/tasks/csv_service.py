"""CSV bulk validation for task uploads

Turns an uploaded CSV document into a list of CreateTaskRequest objects.
The upload is all-or-nothing: if any row fails validation, nothing is
returned and every failing row is reported.

Expected header: title,detail,dueAt,isComplete
"""

import csv
import io
import logging
from typing import Dict, List, Optional

from pydantic import ValidationError

from apis.shared.errors import CsvParseError, CsvValidationError, RowError

from .models import CreateTaskRequest

logger = logging.getLogger(__name__)

CSV_COLUMNS = ("title", "detail", "dueAt", "isComplete")

# Row 1 is the header, so the first data row is row 2
FIRST_DATA_ROW = 2

_TRUE_LITERALS = ("true", "1")


def parse_is_complete(value: Optional[str]) -> bool:
    """Only the exact literals "true" and "1" mean complete."""
    return value in _TRUE_LITERALS


def _is_blank(cells: List[str]) -> bool:
    return not cells or (len(cells) == 1 and not cells[0].strip())


def _read_rows(csv_content: str) -> List[List[str]]:
    """Split CSV text into trimmed, non-blank rows."""
    reader = csv.reader(io.StringIO(csv_content, newline=""), strict=True)
    try:
        return [
            [cell.strip() for cell in cells]
            for cells in reader
            if not _is_blank(cells)
        ]
    except csv.Error as e:
        raise CsvParseError(f"Failed to parse CSV: {e}") from e


def _row_to_payload(header: List[str], cells: List[str]) -> Dict[str, object]:
    """Build the CreateTaskRequest payload for one data row."""
    record = dict(zip(header, cells))
    payload: Dict[str, object] = {
        "isComplete": parse_is_complete(record.get("isComplete")),
    }
    if "title" in record:
        payload["title"] = record["title"]
    # Empty optional cells mean "not provided"
    if record.get("detail"):
        payload["detail"] = record["detail"]
    if record.get("dueAt"):
        payload["dueAt"] = record["dueAt"]
    return payload


def _row_errors(row_number: int, error: ValidationError) -> List[RowError]:
    errors = []
    for issue in error.errors():
        field = ".".join(str(part) for part in issue.get("loc", ())) or "row"
        errors.append(RowError(row=row_number, field=field, message=issue.get("msg", "Invalid value")))
    return errors


def parse_tasks_csv(csv_content: str) -> List[CreateTaskRequest]:
    """
    Parse and validate CSV content into CreateTaskRequest objects.

    Blank lines are skipped and every cell is trimmed. Each row is validated
    on its own; all violations are collected before deciding.

    Args:
        csv_content: Raw CSV text including the header row

    Returns:
        Validated requests in row order (empty when there are no data rows)

    Raises:
        CsvParseError: If the document has no usable header or is malformed
        CsvValidationError: If any row fails validation (lists every violation)
    """
    logger.info("Parsing task CSV upload")

    rows = _read_rows(csv_content)
    if not rows:
        raise CsvParseError("Failed to parse CSV: no header row found")

    header = rows[0]
    if "title" not in header:
        raise CsvParseError(
            f"Failed to parse CSV: header must include columns {', '.join(CSV_COLUMNS)}"
        )

    tasks: List[CreateTaskRequest] = []
    errors: List[RowError] = []

    for index, cells in enumerate(rows[1:]):
        row_number = index + FIRST_DATA_ROW

        if len(cells) != len(header):
            raise CsvParseError(
                f"Failed to parse CSV: row {row_number} has {len(cells)} columns, "
                f"expected {len(header)}"
            )

        try:
            tasks.append(CreateTaskRequest.model_validate(_row_to_payload(header, cells)))
        except ValidationError as e:
            errors.extend(_row_errors(row_number, e))

    if errors:
        logger.warning(
            f"CSV validation failed: {len(errors)} violations in "
            f"{len({e.row for e in errors})} rows"
        )
        raise CsvValidationError(errors)

    logger.info(f"Parsed {len(tasks)} tasks from CSV")
    return tasks
