from __future__ import annotations

import logging
from pathlib import Path

from ..config.loader import ConfigError
from ..excel.reader import WorkbookReadError, normalize_key, read_table
from ..models.config_models import RegistryConfig
from ..models.source_entry import SourceEntry, parse_allowed_tabs

"""Source registry reader.

The registry is a small table of (source id, label, allowed tabs) rows with a
header in the first row. Columns are read by position. The whole table is
re-read on every call so edits made by an operator take effect immediately.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "SourceRegistry",
    "UnknownSource",
]


class UnknownSource(Exception):
    """Raised when a source id is not present in the registry."""

    def __init__(self, source_id: str) -> None:
        super().__init__(f"unknown source: '{source_id}'")
        self.source_id = source_id


class SourceRegistry:
    def __init__(self, config: RegistryConfig, sources_directory: Path) -> None:
        self.config = config
        self.sources_directory = sources_directory

    def list_sources(self) -> list[SourceEntry]:
        """Read every registry row. Rows with a blank id are ignored."""
        if not self.config.path.exists():
            raise ConfigError(f"registry table not found: {self.config.path}")
        try:
            df = read_table(self.config.path, self.config.sheet)
        except WorkbookReadError as e:
            raise ConfigError(f"registry table unreadable: {e}") from e

        if df.shape[1] < 1:
            raise ConfigError(f"registry table has no columns: {self.config.path}")

        entries: list[SourceEntry] = []
        for raw in df.itertuples(index=False, name=None):
            source_id = normalize_key(raw[0])
            if not source_id:
                continue
            label = normalize_key(raw[1]) if len(raw) > 1 else ""
            allowed = parse_allowed_tabs(normalize_key(raw[2])) if len(raw) > 2 else ()
            entries.append(SourceEntry(id=source_id, label=label or source_id, allowed_tabs=allowed))
        logger.debug(f"registry: {len(entries)} sources from {self.config.path}")
        return entries

    def resolve(self, source_id: str) -> SourceEntry:
        """Find the entry whose trimmed id equals ``source_id`` (case-sensitive)."""
        wanted = source_id.strip()
        for entry in self.list_sources():
            if entry.id == wanted:
                return entry
        raise UnknownSource(wanted)

    def source_path(self, entry: SourceEntry) -> Path:
        """Workbook path of a source: ``<sources_directory>/<id>.xlsx``.

        An id that already carries a file suffix is used as the file name
        verbatim.
        """
        name = entry.id if Path(entry.id).suffix else f"{entry.id}.xlsx"
        return self.sources_directory / name
