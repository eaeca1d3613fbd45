from __future__ import annotations

from .writer import AppendResult

"""Confirmation line rendering.

The writer returns an AppendResult; callers (CLI, UI) turn it into the line
shown to the user with render_confirmation().
"""


def render_confirmation(result: AppendResult) -> str:
    """Render a human-readable confirmation for an appended transmittal.

    Examples:
        >>> r = AppendResult("20240105-4321", first_row=8, row_count=2, document_ref="file:///d/20240105-4321.pdf")
        >>> render_confirmation(r)
        'Transmittal 20240105-4321 saved: 2 items (log rows 8-9), document file:///d/20240105-4321.pdf'
    """
    noun = "item" if result.row_count == 1 else "items"
    if result.row_count == 1:
        rows = f"log row {result.first_row}"
    else:
        rows = f"log rows {result.first_row}-{result.last_row}"
    return (
        f"Transmittal {result.transmittal_no} saved: "
        f"{result.row_count} {noun} ({rows}), "
        f"document {result.document_ref}"
    )
