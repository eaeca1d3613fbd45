from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .matched_item import MatchedItem

"""TransmittalSubmission model.

A submission is created client side from matched items (or manual entry) and
submitted once. ``transmittal_no`` comes from the sequence allocator.
"""

__all__ = [
    "TransmittalSubmission",
    "HEADER_FIELDS",
]

HEADER_FIELDS: tuple[str, ...] = (
    "transmittal_no",
    "from_name",
    "from_department",
    "date_transmitted",
    "to_name",
    "to_department",
    "to_address",
)


@dataclass(frozen=True)
class TransmittalSubmission:
    """Header fields shared by every line item, plus the ordered items."""
    transmittal_no: str
    from_name: str = ""
    from_department: str = ""
    date_transmitted: str = ""
    to_name: str = ""
    to_department: str = ""
    to_address: str = ""
    items: tuple[MatchedItem, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TransmittalSubmission:
        header = {}
        for name in HEADER_FIELDS:
            value = data.get(name, "")
            header[name] = "" if value is None else str(value).strip()
        items = tuple(MatchedItem.from_mapping(raw) for raw in data.get("items") or [])
        return cls(items=items, **header)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {name: getattr(self, name) for name in HEADER_FIELDS}
        out["items"] = [item.to_dict() for item in self.items]
        return out
