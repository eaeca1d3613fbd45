from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import AbstractContextManager

from ..config.loader import ConfigError
from ..models.config_models import AppConfig
from ..models.log_row import LogRow

"""Central log store contract.

The central log is the sole durable owner of submission data. Stores expose
row-addressed operations (1-based row numbers, header row included) so both
backends share the append-after-last-non-empty-row semantics:

- lock(timeout): exclusive across processes, Busy on timeout, always released
- read_identifiers(): every transmittal number present in the log
- last_row(): last row with any non-empty cell in the primary column range
- write_rows(start_row, rows): one bulk, contiguous, durable write
- write_document_ref(first_row, count, ref): deferred document backfill
"""

__all__ = [
    "LogStore",
    "Busy",
    "create_log_store",
    "HEADER_ROW",
]

# 1 行目はヘッダ専用。データ行は常に 2 行目以降
HEADER_ROW = 1


class Busy(Exception):
    """Raised when the log lock could not be acquired in time."""

    def __init__(self, resource: str, timeout: float) -> None:
        super().__init__(f"log is busy ({resource}), lock not acquired within {timeout:g}s; try again shortly")
        self.resource = resource
        self.timeout = timeout


class LogStore(ABC):
    """Abstract central log."""

    pending_marker: str

    @abstractmethod
    def lock(self, timeout: float) -> AbstractContextManager[None]:
        ...

    @abstractmethod
    def read_identifiers(self) -> set[str]:
        ...

    @abstractmethod
    def last_row(self) -> int:
        ...

    @abstractmethod
    def write_rows(self, start_row: int, rows: Sequence[LogRow]) -> None:
        ...

    @abstractmethod
    def write_document_ref(self, first_row: int, count: int, ref: str) -> None:
        ...

    @abstractmethod
    def iter_rows(self) -> Iterator[LogRow]:
        """Yield every data row with its row number set."""

    @abstractmethod
    def initialize(self) -> bool:
        """Create the log (with its header) if missing; True when created."""

    def close(self) -> None:  # noqa: B027 (no-op by default)
        pass

    def pending_rows(self) -> list[LogRow]:
        return [r for r in self.iter_rows() if r.document_ref == self.pending_marker]

    def rows_for(self, transmittal_no: str) -> tuple[int, int]:
        """Return ``(first_row, count)`` of a submission's rows; ``(-1, 0)`` if absent."""
        numbers = [r.row_number for r in self.iter_rows() if r.transmittal_no == transmittal_no]
        numbers = [n for n in numbers if n is not None]
        if not numbers:
            return -1, 0
        return min(numbers), len(numbers)


def create_log_store(config: AppConfig) -> LogStore:
    """Build the store selected by ``log.backend``."""
    backend = config.log.backend
    if backend == "excel":
        from ..excel.log_store import ExcelLogStore

        return ExcelLogStore(config.log)
    if backend == "postgres":
        from ..db.log_store import PostgresLogStore

        return PostgresLogStore(config.log, config.database)
    raise ConfigError(f"unknown log backend: {backend}")
