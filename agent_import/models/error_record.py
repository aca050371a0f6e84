from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

from .validation_error import ValidationError

"""ErrorRecord model for the import error log.

One JSON Lines record per rejected row. ``row=-1`` marks a file-level failure
(unreadable workbook, unknown project) where no single row is to blame.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Uploaded workbook name
        row: 1-based spreadsheet row, or -1 for file-level errors
        field: Failing column, ``General``, or ``<FILE_LEVEL>``
        error: Human-readable message
    """
    timestamp: str
    file: str
    row: int
    field: str
    error: str

    @staticmethod
    def create(file: str, row: int, field: str, error: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(timestamp=ts, file=file, row=row, field=field, error=error)

    @staticmethod
    def from_validation_error(file: str, err: ValidationError) -> ErrorRecord:
        return ErrorRecord.create(file=file, row=err.row, field=err.field, error=err.error)

    def to_json_line(self) -> str:
        """Serialize to one JSON line (fixed key set, no row payload)."""
        return json.dumps(asdict(self), ensure_ascii=False)
