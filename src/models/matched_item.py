from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, fields
from typing import Any

"""MatchedItem model.

A MatchedItem is one supporting row found in an external source, reshaped
into the fixed output schema. The same shape is used for the line items of a
submission: the user may edit, add or discard items before submitting, so
items are never persisted directly.
"""

__all__ = [
    "MatchedItem",
    "ITEM_FIELDS",
    "BUSINESS_FIELDS",
]


@dataclass(frozen=True)
class MatchedItem:
    reference_number: str
    doc_details: Any = ""
    supplier: Any = ""
    payor_company: Any = ""
    property: Any = ""
    location: Any = ""
    sector: Any = ""
    service_type: Any = ""
    period_covered: Any = ""
    particulars: Any = ""
    amount: Any = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> MatchedItem:
        """Build an item from a mapping, ignoring unknown keys.

        Missing fields default to the empty string, the same value a source
        tab without that column produces.
        """
        values = {name: data.get(name, "") for name in ITEM_FIELDS}
        ref = values["reference_number"]
        values["reference_number"] = "" if ref is None else str(ref).strip()
        for name in BUSINESS_FIELDS:
            if values[name] is None:
                values[name] = ""
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


ITEM_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(MatchedItem))
# 参照番号以外の 10 業務列
BUSINESS_FIELDS: tuple[str, ...] = ITEM_FIELDS[1:]
