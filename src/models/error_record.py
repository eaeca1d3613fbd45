from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the reconciliation error log.

A record is written whenever a submission reached the central log but a later
step (document rendering, reference backfill) failed. ``first_row`` and
``row_count`` locate the rows still carrying the pending marker so an operator
can reconcile them. ``first_row=-1`` marks failures where no rows were written.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        transmittal_no: Transmittal number of the affected submission
        first_row: First log row of the submission (1-based), -1 if unknown
        row_count: Number of contiguous rows written for the submission
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Error message from the failing step
    """
    timestamp: str  # ISO8601 UTC
    transmittal_no: str
    first_row: int
    row_count: int
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(
        transmittal_no: str, first_row: int, row_count: int, error_type: str, message: str
    ) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            transmittal_no=transmittal_no,
            first_row=first_row,
            row_count=row_count,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize ErrorRecord to JSON Lines format (fixed key set)."""
        return json.dumps(asdict(self), ensure_ascii=False)
