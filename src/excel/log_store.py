from __future__ import annotations

import logging
import os
import zipfile
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout
from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..config.loader import ConfigError
from ..models.config_models import LogConfig
from ..models.log_row import (
    DOCUMENT_REF_COLUMN,
    LOG_COLUMN_COUNT,
    LOG_HEADERS,
    TRANSMITTAL_NO_COLUMN,
    LogRow,
)
from ..services.log_store import Busy, LogStore

"""Central log kept in an Excel workbook tab.

Row 1 holds the column headers; data rows follow. Mutual exclusion between
processes uses a lock file next to the workbook (``<workbook>.lock``). Every
save goes through a temporary file that replaces the workbook, so a crash
mid-save never leaves a truncated log behind.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ExcelLogStore",
]


def _excel_value(value: Any) -> Any:
    # Excel はタイムゾーン付き datetime を保存できない
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


def _non_empty(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip() != ""
    return True


class ExcelLogStore(LogStore):
    def __init__(self, config: LogConfig) -> None:
        if config.path is None:
            raise ConfigError("log.path is required for the excel backend")
        self.path: Path = config.path
        self.sheet = config.sheet
        self.primary_columns = config.primary_columns
        self.pending_marker = config.pending_marker
        self.lock_path = self.path.with_name(self.path.name + ".lock")

    @contextmanager
    def lock(self, timeout: float) -> Iterator[None]:
        file_lock = FileLock(str(self.lock_path), timeout=timeout)
        try:
            file_lock.acquire()
        except Timeout as e:
            raise Busy(str(self.path), timeout) from e
        try:
            yield
        finally:
            file_lock.release()

    def _open(self, read_only: bool):
        if not self.path.exists():
            raise ConfigError(f"log workbook not found: {self.path}")
        try:
            wb = load_workbook(self.path, read_only=read_only)
        except (OSError, InvalidFileException, zipfile.BadZipFile, KeyError) as e:
            raise ConfigError(f"log workbook unreadable: {self.path}: {e}") from e
        if self.sheet not in wb.sheetnames:
            wb.close()
            raise ConfigError(f"log tab '{self.sheet}' not found in {self.path}")
        return wb, wb[self.sheet]

    def _save(self, wb: Workbook) -> None:
        tmp = self.path.with_name(f".{self.path.stem}.tmp{self.path.suffix}")
        wb.save(tmp)
        os.replace(tmp, self.path)

    def read_identifiers(self) -> set[str]:
        wb, ws = self._open(read_only=True)
        try:
            ids = {
                str(v).strip()
                for (v,) in ws.iter_rows(
                    min_row=2,
                    min_col=TRANSMITTAL_NO_COLUMN,
                    max_col=TRANSMITTAL_NO_COLUMN,
                    values_only=True,
                )
                if _non_empty(v)
            }
        finally:
            wb.close()
        return ids

    def last_row(self) -> int:
        wb, ws = self._open(read_only=True)
        last = 0
        try:
            for idx, values in enumerate(
                ws.iter_rows(min_row=1, max_col=self.primary_columns, values_only=True), start=1
            ):
                if any(_non_empty(v) for v in values):
                    last = idx
        finally:
            wb.close()
        return last

    def write_rows(self, start_row: int, rows: Sequence[LogRow]) -> None:
        if not rows:
            return
        wb, ws = self._open(read_only=False)
        for offset, row in enumerate(rows):
            for col, value in enumerate(row.to_values(), start=1):
                ws.cell(row=start_row + offset, column=col, value=_excel_value(value))
        self._save(wb)
        logger.debug(f"log: wrote rows {start_row}-{start_row + len(rows) - 1} to {self.path}")

    def write_document_ref(self, first_row: int, count: int, ref: str) -> None:
        wb, ws = self._open(read_only=False)
        for row_number in range(first_row, first_row + count):
            ws.cell(row=row_number, column=DOCUMENT_REF_COLUMN, value=ref)
        self._save(wb)

    def iter_rows(self) -> Iterator[LogRow]:
        wb, ws = self._open(read_only=True)
        try:
            rows = [
                LogRow.from_values(values, row_number=idx)
                for idx, values in enumerate(
                    ws.iter_rows(min_row=2, max_col=LOG_COLUMN_COUNT, values_only=True), start=2
                )
                if any(_non_empty(v) for v in values)
            ]
        finally:
            wb.close()
        yield from rows

    def initialize(self) -> bool:
        """Create the workbook / tab with the header row if missing.

        Returns True when something was created.
        """
        if self.path.exists():
            wb = load_workbook(self.path)
            if self.sheet in wb.sheetnames:
                wb.close()
                return False
            ws = wb.create_sheet(self.sheet)
        else:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            wb = Workbook()
            ws = wb.active
            ws.title = self.sheet
        ws.append(list(LOG_HEADERS))
        self._save(wb)
        logger.info(f"log initialized: {self.path} [{self.sheet}]")
        return True
