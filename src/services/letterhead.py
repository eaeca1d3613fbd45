from __future__ import annotations

from collections.abc import Mapping

from ..models.letterhead import Letterhead

DEFAULT_KEY = "DEFAULT"
BLANK_LETTERHEAD = Letterhead(title="")


def resolve_letterhead(department: str | None, letterheads: Mapping[str, Letterhead]) -> Letterhead:
    """Pick the letterhead of a department code.

    Keys are upper-cased department codes; unknown or blank departments fall
    back to the ``DEFAULT`` entry, or a blank letterhead when none is set.
    """
    key = (department or "").strip().upper()
    if key and key in letterheads:
        return letterheads[key]
    return letterheads.get(DEFAULT_KEY, BLANK_LETTERHEAD)
