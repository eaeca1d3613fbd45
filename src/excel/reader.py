from __future__ import annotations

import zipfile
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

"""Excel reader for registry and external source workbooks.

Source tabs carry a title block above a header row at a fixed position
(row 5 by default, 1-based); the rows below it are data rows. Columns are
addressed by header text, never by position, and each tab's header row is
parsed into a TabSchema once before any data row is scanned.
"""

__all__ = [
    "WorkbookReadError",
    "TabSchema",
    "read_workbook",
    "read_table",
    "resolve_tab_schema",
    "iter_data_rows",
    "normalize_key",
    "clean_cell",
]


# Pandas 既定の NA 文字列 ("N/A", "NULL", "NA" ...) は業務データとして保持し、
# 空セルのみ欠損扱いにする
NA_VALUES: list[str] = [""]


class WorkbookReadError(Exception):
    """Raised when a workbook (or one of its tabs) cannot be opened or parsed."""

    def __init__(self, path: Path, detail: str) -> None:
        super().__init__(f"cannot read workbook '{path}': {detail}")
        self.path = path
        self.detail = detail


@dataclass(frozen=True)
class TabSchema:
    """Column map of one tab, resolved from its header row.

    ``field_indices`` only holds the fields whose header was found; fields
    absent from the tab read as empty strings.
    """
    tab_name: str
    reference_index: int
    field_indices: dict[str, int] = field(default_factory=dict)

    def value(self, row: Sequence[Any], field_name: str) -> Any:
        idx = self.field_indices.get(field_name)
        if idx is None or idx >= len(row):
            return ""
        return clean_cell(row[idx])


def read_workbook(path: Path, tabs: Sequence[str] | None = None) -> dict[str, pd.DataFrame]:
    """Read a workbook returning raw DataFrames keyed by tab name.

    Parameters
    ----------
    path: workbook path
    tabs: 対象タブ (None なら全タブ、ワークブック順)。指定時は指定順で返し、
          存在しないタブは結果に含めない。

    Cells are read without header inference and with ``dtype=object`` so
    numeric reference numbers keep their original value. Only empty cells
    read as missing; text such as "N/A" or "NULL" is kept verbatim.
    """
    try:
        xls = pd.ExcelFile(path)
    except (OSError, ValueError, zipfile.BadZipFile, KeyError) as e:
        raise WorkbookReadError(path, str(e)) from e

    with xls:
        names = [str(n) for n in xls.sheet_names]
        if tabs is None:
            selected = names
        else:
            present = set(names)
            selected = [t for t in tabs if t in present]
        dfs: dict[str, pd.DataFrame] = {}
        for name in selected:
            try:
                dfs[name] = xls.parse(
                    name, header=None, dtype=object, keep_default_na=False, na_values=NA_VALUES
                )
            except (OSError, ValueError, KeyError) as e:
                raise WorkbookReadError(path, f"tab '{name}': {e}") from e
    return dfs


def read_table(path: Path, sheet: str | int = 0) -> pd.DataFrame:
    """Read a plain table whose header is the first row (registry layout)."""
    try:
        return pd.read_excel(
            path, sheet_name=sheet, header=0, dtype=object, keep_default_na=False, na_values=NA_VALUES
        )
    except (OSError, ValueError, zipfile.BadZipFile, KeyError) as e:
        raise WorkbookReadError(path, str(e)) from e


def _header_texts(df: pd.DataFrame, header_row: int) -> list[str] | None:
    if df.shape[0] < header_row:
        return None
    header_series = df.iloc[header_row - 1]
    return ["" if pd.isna(c) else str(c).strip() for c in header_series.tolist()]


def resolve_tab_schema(
    df: pd.DataFrame,
    tab_name: str,
    header_row: int,
    reference_header: str,
    field_headers: Mapping[str, str],
) -> TabSchema | None:
    """Resolve the column map of a tab.

    Returns None when the tab has no header row or lacks the reference
    header; such tabs do not carry transmittal data and are skipped.
    """
    headers = _header_texts(df, header_row)
    if headers is None:
        return None
    wanted = reference_header.strip()
    if wanted not in headers:
        return None
    # 同名ヘッダが複数ある場合は左端を採用
    indices = {
        name: headers.index(text.strip())
        for name, text in field_headers.items()
        if text.strip() in headers
    }
    return TabSchema(tab_name=tab_name, reference_index=headers.index(wanted), field_indices=indices)


def iter_data_rows(df: pd.DataFrame, header_row: int) -> Iterator[tuple[int, list[Any]]]:
    """Yield ``(excel_row_number, values)`` for each non-blank row below the header."""
    data_part = df.iloc[header_row:]
    for offset, (_, raw) in enumerate(data_part.iterrows()):
        if raw.isna().all():
            continue
        yield header_row + 1 + offset, raw.tolist()


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def normalize_key(value: Any) -> str:
    """Stringify and trim a reference number for comparison.

    Integral floats (Excel stores every number as a float) lose their
    trailing ``.0`` so that ``123`` in a cell equals the query ``"123"``.
    """
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def clean_cell(value: Any) -> Any:
    """Convert a raw cell into the value handed to callers."""
    if _is_blank(value):
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, datetime):
        if (value.hour, value.minute, value.second, value.microsecond) == (0, 0, 0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if hasattr(value, "item"):  # numpy scalar
        return value.item()
    return value
