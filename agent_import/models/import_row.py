from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""ImportRow model for the bulk agent import pipeline.

An ImportRow is one decoded spreadsheet row. Column keys are the header cell
text exactly as written in the workbook; blank cells are absent from
``values`` rather than mapped to an empty string.
"""

__all__ = [
    "ImportRow",
]


@dataclass(frozen=True)
class ImportRow:
    """A single decoded spreadsheet row.

    ``row_number`` is the 1-based spreadsheet row (the header is row 1, so the
    first data row is 2) and is what every diagnostic refers to.
    """
    row_number: int
    values: dict[str, str] = field(default_factory=dict)

    def get(self, column: str) -> str | None:
        """Return the stripped cell text, or None when blank/absent."""
        raw = self.values.get(column)
        if raw is None:
            return None
        text = str(raw).strip()
        return text or None

    def has(self, column: str) -> bool:
        return self.get(column) is not None

    def snapshot(self) -> dict[str, Any]:
        # Copy handed to callers with each error, so they can fix and resubmit.
        return dict(self.values)
