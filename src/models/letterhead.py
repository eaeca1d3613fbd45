from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "Letterhead",
]


@dataclass(frozen=True)
class Letterhead:
    """Department letterhead printed at the top of a rendered transmittal."""
    title: str
    address: str = ""
    phone: str = ""
