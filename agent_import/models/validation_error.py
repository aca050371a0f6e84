from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .import_row import ImportRow

"""ValidationError model for row-level import diagnostics.

A ValidationError is returned as data, never raised: it names the 1-based
spreadsheet row, the failing column (or ``General`` for unexpected failures)
and carries a copy of the offending row so that the caller can correct and
resubmit it.
"""

__all__ = [
    "GENERAL_FIELD",
    "ValidationError",
]

# Field name used when a row fails for a reason not tied to one column.
GENERAL_FIELD = "General"


@dataclass(frozen=True)
class ValidationError:
    """Row-level import failure.

    Attributes:
        row: 1-based spreadsheet row number
        field: Column header of the failing value, or ``General``
        error: Human-readable message
        data: Copy of the row's raw values
    """
    row: int
    field: str
    error: str
    data: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def for_row(row: ImportRow, field: str, error: str) -> ValidationError:
        return ValidationError(row=row.row_number, field=field, error=error, data=row.snapshot())

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the response payload shape ``{row, error, field, data}``."""
        return {
            "row": self.row,
            "error": self.error,
            "field": self.field,
            "data": dict(self.data),
        }
