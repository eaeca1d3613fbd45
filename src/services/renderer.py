from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from io import BytesIO
from pathlib import Path
from typing import Any, Protocol
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..models.letterhead import Letterhead
from ..models.submission import TransmittalSubmission

"""Transmittal document renderer.

Turns a submission into an A4 landscape PDF (letterhead, header block, item
table with total, signature lines) and stores it in the document repository
directory. The returned reference is the stored file's ``file://`` URI; that
string is what the writer back-fills into the log.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "DocumentRenderer",
    "PdfRenderer",
    "DocumentGenerationError",
]


class DocumentGenerationError(Exception):
    """Raised when a transmittal document could not be produced or stored.

    ``first_row`` / ``row_count`` are filled in by the writer when the
    submission's rows were already written (they keep the pending marker).
    """

    def __init__(
        self, transmittal_no: str, detail: str, first_row: int = -1, row_count: int = 0
    ) -> None:
        where = f" (log rows {first_row}-{first_row + row_count - 1} left pending)" if row_count else ""
        super().__init__(f"document generation failed for {transmittal_no}: {detail}{where}")
        self.transmittal_no = transmittal_no
        self.detail = detail
        self.first_row = first_row
        self.row_count = row_count


class DocumentRenderer(Protocol):
    def render(self, submission: TransmittalSubmission, letterhead: Letterhead) -> str:
        ...


ITEM_COLUMNS: tuple[tuple[str, str, float], ...] = (
    # (field, heading, width mm)
    ("reference_number", "RFP/ PEF #", 28),
    ("doc_details", "Doc Details", 34),
    ("supplier", "Supplier", 34),
    ("payor_company", "Payor Company", 32),
    ("property", "Property", 28),
    ("period_covered", "Period Covered", 26),
    ("particulars", "Particulars", 54),
    ("amount", "Amount", 26),
)


def parse_amount(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value).replace(",", "").strip())
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def format_amount(value: Any) -> str:
    amount = parse_amount(value)
    if amount is None:
        return "" if value is None else str(value)
    return f"{amount:,.2f}"


def _safe_filename(transmittal_no: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]", "_", transmittal_no) or "transmittal"


class PdfRenderer:
    def __init__(self, documents_directory: Path) -> None:
        self.documents_directory = documents_directory
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self) -> None:
        self.styles.add(ParagraphStyle(
            name='LetterheadTitle',
            parent=self.styles['Title'],
            fontSize=16,
            textColor=HexColor('#1a1a1a'),
            spaceAfter=2,
            alignment=TA_CENTER,
            fontName='Helvetica-Bold',
        ))
        self.styles.add(ParagraphStyle(
            name='LetterheadLine',
            parent=self.styles['Normal'],
            fontSize=9,
            textColor=HexColor('#4a4a4a'),
            alignment=TA_CENTER,
        ))
        self.styles.add(ParagraphStyle(
            name='DocHeading',
            parent=self.styles['Heading2'],
            alignment=TA_CENTER,
            spaceBefore=8,
            spaceAfter=6,
        ))
        self.styles.add(ParagraphStyle(
            name='Cell',
            parent=self.styles['Normal'],
            fontSize=8,
            leading=10,
        ))
        self.styles.add(ParagraphStyle(
            name='CellRight',
            parent=self.styles['Normal'],
            fontSize=8,
            leading=10,
            alignment=TA_RIGHT,
        ))

    def _p(self, text: Any, style: str = 'Cell') -> Paragraph:
        return Paragraph(escape("" if text is None else str(text)), self.styles[style])

    def _letterhead(self, letterhead: Letterhead) -> list[Any]:
        story: list[Any] = []
        if letterhead.title:
            story.append(self._p(letterhead.title, 'LetterheadTitle'))
        for line in (letterhead.address, letterhead.phone):
            if line:
                story.append(self._p(line, 'LetterheadLine'))
        return story

    def _header_block(self, submission: TransmittalSubmission) -> Table:
        rows = [
            [self._p("Transmittal No."), self._p(submission.transmittal_no),
             self._p("Date Transmitted"), self._p(submission.date_transmitted)],
            [self._p("From"), self._p(submission.from_name),
             self._p("Department"), self._p(submission.from_department)],
            [self._p("To"), self._p(submission.to_name),
             self._p("Department"), self._p(submission.to_department)],
            [self._p("Address"), self._p(submission.to_address), "", ""],
        ]
        table = Table(rows, colWidths=[32 * mm, 100 * mm, 32 * mm, 100 * mm])
        table.setStyle(TableStyle([
            ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
            ('FONTNAME', (2, 0), (2, -1), 'Helvetica-Bold'),
            ('SPAN', (1, 3), (3, 3)),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ]))
        return table

    def _items_table(self, submission: TransmittalSubmission) -> Table:
        header = [self._p(title) for _, title, _ in ITEM_COLUMNS]
        body = []
        total = Decimal("0")
        for item in submission.items:
            cells = []
            for name, _, _ in ITEM_COLUMNS:
                value = getattr(item, name)
                if name == "amount":
                    cells.append(self._p(format_amount(value), 'CellRight'))
                    total += parse_amount(value) or Decimal("0")
                else:
                    cells.append(self._p(value))
            body.append(cells)
        footer = [""] * (len(ITEM_COLUMNS) - 2) + [self._p("TOTAL"), self._p(f"{total:,.2f}", 'CellRight')]
        table = Table(
            [header, *body, footer],
            colWidths=[w * mm for _, _, w in ITEM_COLUMNS],
            repeatRows=1,
        )
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), HexColor('#d9e1f2')),
            ('GRID', (0, 0), (-1, -2), 0.5, colors.grey),
            ('LINEABOVE', (-2, -1), (-1, -1), 1, colors.black),
            ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ]))
        return table

    def _signatures(self) -> Table:
        rows = [
            ["", "", ""],
            [self._p("Transmitted by"), "", self._p("Received by / Date")],
        ]
        table = Table(rows, colWidths=[90 * mm, 60 * mm, 90 * mm], rowHeights=[14 * mm, None])
        table.setStyle(TableStyle([
            ('LINEABOVE', (0, 1), (0, 1), 0.8, colors.black),
            ('LINEABOVE', (2, 1), (2, 1), 0.8, colors.black),
        ]))
        return table

    def build_pdf(self, submission: TransmittalSubmission, letterhead: Letterhead) -> bytes:
        """Render the transmittal and return the PDF bytes (print preview)."""
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=landscape(A4),
            leftMargin=12 * mm,
            rightMargin=12 * mm,
            topMargin=12 * mm,
            bottomMargin=12 * mm,
            title=f"Transmittal {submission.transmittal_no}",
        )
        story: list[Any] = self._letterhead(letterhead)
        story.append(self._p("TRANSMITTAL", 'DocHeading'))
        story.append(self._header_block(submission))
        story.append(Spacer(1, 6 * mm))
        story.append(self._items_table(submission))
        story.append(Spacer(1, 10 * mm))
        story.append(self._signatures())
        doc.build(story)
        return buffer.getvalue()

    def render(self, submission: TransmittalSubmission, letterhead: Letterhead) -> str:
        """Render and store the PDF; return its ``file://`` URI."""
        try:
            pdf = self.build_pdf(submission, letterhead)
            self.documents_directory.mkdir(parents=True, exist_ok=True)
            target = self.documents_directory / f"{_safe_filename(submission.transmittal_no)}.pdf"
            target.write_bytes(pdf)
        except Exception as e:  # reportlab のレイアウトエラー等も含めて一律ラップ
            raise DocumentGenerationError(submission.transmittal_no, str(e)) from e
        logger.info(f"document stored: {target}")
        return target.resolve().as_uri()
