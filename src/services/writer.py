from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime

from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.letterhead import Letterhead
from ..models.log_row import LogRow
from ..models.submission import TransmittalSubmission
from .allocator import local_now
from .letterhead import resolve_letterhead
from .log_store import HEADER_ROW, LogStore
from .renderer import DocumentGenerationError, DocumentRenderer

"""Transmittal writer: append a submission to the central log.

Under the log lock:
1. (optional) re-check that the transmittal number is not in the log yet
2. build one LogRow per item, all sharing one capture timestamp
3. write them contiguously right after the last non-empty row (never into
   the header row, even when the log tab was created without one)
4. render the document, then back-fill its reference into those rows

Rows are durable before rendering starts. A rendering (or back-fill) failure
leaves the rows with the pending marker, records an ErrorRecord for
reconciliation and raises DocumentGenerationError.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "TransmittalWriter",
    "AppendResult",
    "EmptySubmission",
    "DuplicateTransmittal",
    "InvalidSubmission",
]


class EmptySubmission(Exception):
    """Raised when a submission has no line items."""

    def __init__(self, transmittal_no: str) -> None:
        super().__init__(f"submission {transmittal_no or '<no number>'} has no items")
        self.transmittal_no = transmittal_no


class InvalidSubmission(Exception):
    pass


class DuplicateTransmittal(Exception):
    """Raised when the transmittal number is already present in the log."""

    def __init__(self, transmittal_no: str) -> None:
        super().__init__(f"transmittal number already recorded: {transmittal_no}")
        self.transmittal_no = transmittal_no


@dataclass(frozen=True)
class AppendResult:
    transmittal_no: str
    first_row: int
    row_count: int
    document_ref: str

    @property
    def last_row(self) -> int:
        return self.first_row + self.row_count - 1

    def to_dict(self) -> dict[str, object]:
        return {
            "transmittal_no": self.transmittal_no,
            "first_row": self.first_row,
            "row_count": self.row_count,
            "document_ref": self.document_ref,
        }


class TransmittalWriter:
    def __init__(
        self,
        store: LogStore,
        renderer: DocumentRenderer,
        letterheads: Mapping[str, Letterhead] | None = None,
        lock_timeout: float = 30.0,
        verify_unique: bool = True,
        clock: Callable[[], datetime] = local_now,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.store = store
        self.renderer = renderer
        self.letterheads = dict(letterheads or {})
        self.lock_timeout = lock_timeout
        self.verify_unique = verify_unique
        self.clock = clock
        self.error_log = error_log if error_log is not None else ErrorLogBuffer()

    def append(self, submission: TransmittalSubmission) -> AppendResult:
        """Append every item of ``submission`` and attach its document.

        Raises:
            EmptySubmission / InvalidSubmission: before the lock, nothing written
            Busy: lock not acquired in time, nothing written
            DuplicateTransmittal: number already in the log, nothing written
            DocumentGenerationError: rows written, document reference pending
        """
        if not submission.items:
            raise EmptySubmission(submission.transmittal_no)
        if not submission.transmittal_no:
            raise InvalidSubmission("transmittal_no is required")

        with self.store.lock(self.lock_timeout):
            if self.verify_unique and submission.transmittal_no in self.store.read_identifiers():
                raise DuplicateTransmittal(submission.transmittal_no)

            rows = LogRow.from_submission(submission, self.clock(), self.store.pending_marker)
            first_row = max(self.store.last_row(), HEADER_ROW) + 1
            self.store.write_rows(first_row, rows)
            logger.info(
                f"log: transmittal_no={submission.transmittal_no} rows={first_row}-{first_row + len(rows) - 1}"
            )

            letterhead = resolve_letterhead(submission.from_department, self.letterheads)
            try:
                ref = self.renderer.render(submission, letterhead)
            except Exception as e:
                detail = e.detail if isinstance(e, DocumentGenerationError) else str(e)
                self._record_failure(submission.transmittal_no, first_row, len(rows), "DOCUMENT_RENDER_ERROR", detail)
                raise DocumentGenerationError(submission.transmittal_no, detail, first_row, len(rows)) from e

            try:
                self.store.write_document_ref(first_row, len(rows), ref)
            except Exception as e:
                self._record_failure(
                    submission.transmittal_no, first_row, len(rows), "DOCUMENT_BACKFILL_ERROR", f"{ref}: {e}"
                )
                raise DocumentGenerationError(
                    submission.transmittal_no, f"document stored at {ref} but not recorded: {e}", first_row, len(rows)
                ) from e

        return AppendResult(
            transmittal_no=submission.transmittal_no,
            first_row=first_row,
            row_count=len(rows),
            document_ref=ref,
        )

    def backfill(self, transmittal_no: str, ref: str) -> AppendResult:
        """Record a document reference for a submission left pending."""
        with self.store.lock(self.lock_timeout):
            first_row, count = self.store.rows_for(transmittal_no)
            if count == 0:
                raise InvalidSubmission(f"transmittal number not found in log: {transmittal_no}")
            self.store.write_document_ref(first_row, count, ref)
        logger.info(f"log: backfilled transmittal_no={transmittal_no} rows={first_row}-{first_row + count - 1}")
        return AppendResult(transmittal_no=transmittal_no, first_row=first_row, row_count=count, document_ref=ref)

    def _record_failure(self, transmittal_no: str, first_row: int, count: int, error_type: str, message: str) -> None:
        logger.error(f"{error_type.lower()}: transmittal_no={transmittal_no} rows left pending: {message}")
        self.error_log.append(ErrorRecord.create(transmittal_no, first_row, count, error_type, message))
        try:
            path = self.error_log.flush()
        except OSError as e:
            logger.warning(f"error log flush failed: {e}")
        else:
            if path is not None:
                logger.info(f"error record written: {path}")
