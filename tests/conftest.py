# Shared pytest fixtures
from __future__ import annotations

import random
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from src.config.loader import load_config
from src.excel.log_store import ExcelLogStore
from src.models.config_models import DEFAULT_FIELD_HEADERS
from src.models.letterhead import Letterhead
from src.models.log_row import LogRow
from src.models.matched_item import MatchedItem
from src.models.submission import TransmittalSubmission
from src.services.allocator import LOCAL_TZ
from src.services.log_store import Busy, LogStore

REFERENCE_HEADER = "RFP/ PEF #"
FULL_HEADERS = [REFERENCE_HEADER, *DEFAULT_FIELD_HEADERS.values()]


def make_workbook(path: Path, sheets: dict[str, list[list[Any]]]) -> Path:
    """Write raw rows (no header inference) into a multi-tab workbook."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path) as writer:
        for sheet, rows in sheets.items():
            df = pd.DataFrame(rows)
            df.to_excel(writer, sheet_name=sheet, header=False, index=False)
    return path


def source_tab(headers: list[str], rows: list[list[Any]]) -> list[list[Any]]:
    """Tab layout of an external source: 4 title rows, header in row 5, data below."""
    return [
        ["ACME HOLDINGS"],
        ["Payables monitoring"],
        ["as of month end"],
        ["-"],
        headers,
        *rows,
    ]


def full_row(ref: Any, supplier: str = "Supplier Co", amount: Any = 1500) -> list[Any]:
    """Row matching FULL_HEADERS order."""
    return [
        ref, "SI 0042", supplier, "ACME Holdings", "Tower 1", "Makati",
        "Commercial", "Janitorial", "2024-01", "January services", amount,
    ]


class MemoryLogStore(LogStore):
    """List-backed log (row 1 = header) used where a workbook on disk is not needed."""

    def __init__(self, identifiers: set[str] | None = None, pending_marker: str = "PENDING") -> None:
        self.pending_marker = pending_marker
        self.rows: dict[int, LogRow] = {}
        self.extra_identifiers = set(identifiers or ())
        self.lock_calls = 0
        self.held = False
        self._lock = threading.Lock()
        self.fail_backfill: Exception | None = None

    @contextmanager
    def lock(self, timeout: float):
        if not self._lock.acquire(timeout=timeout):
            raise Busy("memory", timeout)
        self.lock_calls += 1
        self.held = True
        try:
            yield
        finally:
            self.held = False
            self._lock.release()

    def read_identifiers(self) -> set[str]:
        return self.extra_identifiers | {r.transmittal_no for r in self.rows.values()}

    def last_row(self) -> int:
        return max(self.rows, default=1)

    def write_rows(self, start_row: int, rows) -> None:
        for offset, row in enumerate(rows):
            self.rows[start_row + offset] = replace(row, row_number=start_row + offset)

    def write_document_ref(self, first_row: int, count: int, ref: str) -> None:
        if self.fail_backfill is not None:
            raise self.fail_backfill
        for n in range(first_row, first_row + count):
            self.rows[n] = replace(self.rows[n], document_ref=ref)

    def iter_rows(self):
        for n in sorted(self.rows):
            yield self.rows[n]

    def initialize(self) -> bool:
        return False


class FakeRenderer:
    """Stand-in document renderer recording its calls."""

    def __init__(self, fail: Exception | None = None) -> None:
        self.fail = fail
        self.calls: list[tuple[TransmittalSubmission, Letterhead]] = []

    def render(self, submission: TransmittalSubmission, letterhead: Letterhead) -> str:
        self.calls.append((submission, letterhead))
        if self.fail is not None:
            raise self.fail
        return f"file:///docs/{submission.transmittal_no}.pdf"

    def build_pdf(self, submission: TransmittalSubmission, letterhead: Letterhead) -> bytes:
        return b"%PDF-fake"


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data" / "sources").mkdir(parents=True)
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """registry:
  path: ./data/registry.xlsx
  sheet: Sources
sources_directory: ./data/sources
header_row: 5
reference_header: "RFP/ PEF #"
lock_timeout_seconds: 2
log:
  backend: excel
  path: ./data/transmittal_log.xlsx
  sheet: Log
documents:
  directory: ./documents
letterheads:
  DEFAULT:
    title: ACME Holdings Inc.
    address: 1 Ayala Ave, Makati
    phone: "+63 2 8123 4567"
  fin:
    title: ACME Holdings Finance
    address: 12F Tower 1, Makati
    phone: "+63 2 8123 0000"
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "transmittal.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def registry_rows() -> list[list[Any]]:
    return [
        ["Source ID", "Label", "Tabs"],
        ["X", "Test", None],
        ["PAY", "Payables", "2024, 2023"],
        ["GHOST", "Tabs missing", "Nope, Nada"],
    ]


@pytest.fixture()
def write_registry(temp_workdir: Path, registry_rows) -> Path:
    return make_workbook(temp_workdir / "data" / "registry.xlsx", {"Sources": registry_rows})


@pytest.fixture()
def write_sources(temp_workdir: Path) -> dict[str, Path]:
    src = temp_workdir / "data" / "sources"
    x = make_workbook(
        src / "X.xlsx",
        {
            "A": source_tab(FULL_HEADERS, [full_row("123"), full_row("456", supplier="Other")]),
            # header row without the reference column
            "B": source_tab(["SUPPLIER", "AMOUNT"], [["123", 5]]),
            "Notes": [["no transmittal data here"]],
        },
    )
    pay = make_workbook(
        src / "PAY.xlsx",
        {
            "2023": source_tab(FULL_HEADERS, [full_row("777", supplier="Old Supplier")]),
            "Summary": source_tab(FULL_HEADERS, [full_row("777", supplier="Ignored")]),
            "2024": source_tab(
                [REFERENCE_HEADER, "SUPPLIER", "AMOUNT"],
                [["777", "New Supplier", 99.5], ["778", "Someone", 1]],
            ),
        },
    )
    ghost = make_workbook(src / "GHOST.xlsx", {"Sheet1": source_tab(FULL_HEADERS, [full_row("1")])})
    return {"X": x, "PAY": pay, "GHOST": ghost}


@pytest.fixture()
def app_config(write_config: Path, write_registry: Path, write_sources):
    return load_config(write_config)


@pytest.fixture()
def excel_store(app_config) -> ExcelLogStore:
    store = ExcelLogStore(app_config.log)
    store.initialize()
    return store


@pytest.fixture()
def fixed_clock():
    moment = datetime(2024, 1, 5, 9, 30, 0, tzinfo=LOCAL_TZ)
    return lambda: moment


@pytest.fixture()
def seeded_rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture()
def sample_submission() -> TransmittalSubmission:
    return TransmittalSubmission(
        transmittal_no="20240105-4321",
        from_name="Maria Santos",
        from_department="fin",
        date_transmitted="2024-01-05",
        to_name="Jose Cruz",
        to_department="TREASURY",
        to_address="2F Tower 2, Makati",
        items=(
            MatchedItem(reference_number="123", supplier="Supplier Co", amount=1500),
            MatchedItem(reference_number="456", supplier="Other", amount="2,000.50"),
        ),
    )
