from __future__ import annotations

from dataclasses import dataclass

"""SourceEntry model: one row of the source registry table."""

__all__ = [
    "SourceEntry",
    "parse_allowed_tabs",
]


def parse_allowed_tabs(raw: object) -> tuple[str, ...]:
    """Split a comma separated tab list, trimming names and dropping blanks."""
    if raw is None:
        return ()
    text = str(raw)
    return tuple(name.strip() for name in text.split(",") if name.strip())


@dataclass(frozen=True)
class SourceEntry:
    """Registry entry naming an external source table.

    ``allowed_tabs`` keeps registry order; an empty tuple means every tab of
    the source workbook is searched.
    """
    id: str
    label: str
    allowed_tabs: tuple[str, ...] = ()

    @property
    def searches_all_tabs(self) -> bool:
        return not self.allowed_tabs

    def to_dict(self) -> dict[str, object]:
        return {"id": self.id, "label": self.label, "allowed_tabs": list(self.allowed_tabs)}
