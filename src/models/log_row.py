from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .matched_item import ITEM_FIELDS, MatchedItem
from .submission import TransmittalSubmission

"""LogRow model for the central log.

One LogRow is persisted per line item. The layout is fixed at 20 columns:

    1  timestamp            8  to address
    2  transmittal no       9-19 item fields (reference number + 10 business)
    3  from name            20 document reference
    4  from department
    5  date transmitted
    6  to name
    7  to department

Column numbers are 1-based to match worksheet addressing.
"""

__all__ = [
    "LogRow",
    "LOG_HEADERS",
    "LOG_COLUMN_COUNT",
    "TRANSMITTAL_NO_COLUMN",
    "DOCUMENT_REF_COLUMN",
]

LOG_HEADERS: tuple[str, ...] = (
    "Timestamp",
    "Transmittal No.",
    "From",
    "From Department",
    "Date Transmitted",
    "To",
    "To Department",
    "To Address",
    "RFP/ PEF #",
    "Doc Details",
    "Supplier",
    "Payor Company",
    "Property",
    "Location",
    "Sector",
    "Service Type",
    "Period Covered",
    "Particulars",
    "Amount",
    "Document",
)
LOG_COLUMN_COUNT = len(LOG_HEADERS)
TRANSMITTAL_NO_COLUMN = 2
DOCUMENT_REF_COLUMN = 20


@dataclass(frozen=True)
class LogRow:
    timestamp: datetime | None
    transmittal_no: str
    from_name: str
    from_department: str
    date_transmitted: str
    to_name: str
    to_department: str
    to_address: str
    item: MatchedItem
    document_ref: str
    row_number: int | None = None  # 書き込み前は None

    @classmethod
    def from_submission(
        cls, submission: TransmittalSubmission, timestamp: datetime, pending_marker: str
    ) -> list[LogRow]:
        """Build one row per item; every row shares ``timestamp``."""
        return [
            cls(
                timestamp=timestamp,
                transmittal_no=submission.transmittal_no,
                from_name=submission.from_name,
                from_department=submission.from_department,
                date_transmitted=submission.date_transmitted,
                to_name=submission.to_name,
                to_department=submission.to_department,
                to_address=submission.to_address,
                item=item,
                document_ref=pending_marker,
            )
            for item in submission.items
        ]

    @classmethod
    def from_values(cls, values: Sequence[Any], row_number: int | None = None) -> LogRow:
        padded = list(values) + [None] * (LOG_COLUMN_COUNT - len(values))

        def text(v: Any) -> str:
            return "" if v is None else str(v)

        item_values = dict(zip(ITEM_FIELDS, padded[8:19], strict=True))
        return cls(
            timestamp=padded[0] if isinstance(padded[0], datetime) else None,
            transmittal_no=text(padded[1]).strip(),
            from_name=text(padded[2]),
            from_department=text(padded[3]),
            date_transmitted=text(padded[4]),
            to_name=text(padded[5]),
            to_department=text(padded[6]),
            to_address=text(padded[7]),
            item=MatchedItem.from_mapping(item_values),
            document_ref=text(padded[19]),
            row_number=row_number,
        )

    def to_values(self) -> list[Any]:
        """Return the 20 cell values in log column order."""
        return [
            self.timestamp,
            self.transmittal_no,
            self.from_name,
            self.from_department,
            self.date_transmitted,
            self.to_name,
            self.to_department,
            self.to_address,
            *(getattr(self.item, name) for name in ITEM_FIELDS),
            self.document_ref,
        ]
