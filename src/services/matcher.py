from __future__ import annotations

import logging
from collections.abc import Mapping

from ..excel.reader import (
    TabSchema,
    WorkbookReadError,
    iter_data_rows,
    normalize_key,
    read_workbook,
    resolve_tab_schema,
)
from ..models.matched_item import BUSINESS_FIELDS, MatchedItem
from .registry import SourceRegistry

"""Row matcher: look up a reference number in a registered external source.

Search flow:
1. resolve the source id through the registry (UnknownSource propagates)
2. pick the tabs: the registry's allowed tabs that exist, or every tab
3. resolve each tab's column map from its header row; tabs without the
   reference header are skipped
4. scan the data rows and reshape every exact match into a MatchedItem

Matches are concatenated in tab order without de-duplication. A read failure
aborts the whole search; no partial result is returned.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "RowMatcher",
    "NoMatchingTabs",
    "ExternalSourceError",
]


class NoMatchingTabs(Exception):
    """Raised when none of a source's allowed tabs exist in its workbook."""

    def __init__(self, source_id: str, tabs: tuple[str, ...]) -> None:
        super().__init__(f"source '{source_id}': none of the configured tabs exist: {list(tabs)}")
        self.source_id = source_id
        self.tabs = tabs


class ExternalSourceError(Exception):
    """Raised when a source workbook or one of its tabs cannot be read."""

    def __init__(self, source_id: str, detail: str) -> None:
        super().__init__(f"source '{source_id}' unreadable: {detail}")
        self.source_id = source_id
        self.detail = detail


class RowMatcher:
    def __init__(
        self,
        registry: SourceRegistry,
        header_row: int,
        reference_header: str,
        field_headers: Mapping[str, str],
    ) -> None:
        self.registry = registry
        self.header_row = header_row
        self.reference_header = reference_header
        self.field_headers = {name: field_headers[name] for name in BUSINESS_FIELDS if name in field_headers}

    def search(self, reference_number: str, source_id: str) -> list[MatchedItem]:
        query = normalize_key(reference_number)
        wanted_source = normalize_key(source_id)
        if not query or not wanted_source:
            # 入力途中: 検索対象なし
            return []

        entry = self.registry.resolve(wanted_source)
        path = self.registry.source_path(entry)
        tabs = None if entry.searches_all_tabs else entry.allowed_tabs
        try:
            frames = read_workbook(path, tabs)
        except WorkbookReadError as e:
            raise ExternalSourceError(entry.id, e.detail) from e

        if tabs is not None:
            missing = [t for t in tabs if t not in frames]
            if not frames:
                raise NoMatchingTabs(entry.id, entry.allowed_tabs)
            if missing:
                logger.warning(f"source '{entry.id}': configured tabs not found: {missing}")

        items: list[MatchedItem] = []
        for tab_name, df in frames.items():
            schema = resolve_tab_schema(
                df, tab_name, self.header_row, self.reference_header, self.field_headers
            )
            if schema is None:
                logger.debug(f"source '{entry.id}' tab '{tab_name}': no '{self.reference_header}' header, skipped")
                continue
            items.extend(self._match_tab(df, schema, query))

        logger.info(f"search ref={query} source={entry.id} tabs={len(frames)} matches={len(items)}")
        return items

    def _match_tab(self, df, schema: TabSchema, query: str) -> list[MatchedItem]:
        matches: list[MatchedItem] = []
        for _, row in iter_data_rows(df, self.header_row):
            if schema.reference_index >= len(row):
                continue
            if normalize_key(row[schema.reference_index]) != query:
                continue
            values = {name: schema.value(row, name) for name in BUSINESS_FIELDS}
            matches.append(MatchedItem(reference_number=query, **values))
        return matches
