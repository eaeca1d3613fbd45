from __future__ import annotations

import logging
import os
import zlib
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import psycopg2
import psycopg2.errors

from ..config.loader import ConfigError
from ..models.config_models import DatabaseConfig, LogConfig
from ..models.log_row import LogRow
from ..services.log_store import HEADER_ROW, Busy, LogStore
from .batch_insert import BatchInsertError, BatchMetrics, batch_insert

"""Central log kept in a PostgreSQL table.

The table mirrors the worksheet layout: ``row_no`` plays the part of the sheet
row number (row 1 is the virtual header, data starts at 2) followed by the 20
log columns. Mutual exclusion uses a session-level advisory lock acquired
under ``lock_timeout``, so a waiting caller gives up after the configured
bound instead of queueing forever.

    CREATE TABLE transmittal_log (
        row_no integer PRIMARY KEY,
        created_at timestamptz,
        transmittal_no text, ... , document_ref text
    );
"""

logger = logging.getLogger(__name__)

__all__ = [
    "PostgresLogStore",
    "LOG_DB_COLUMNS",
    "resolve_dsn",
]

LOG_DB_COLUMNS: tuple[str, ...] = (
    "created_at",
    "transmittal_no",
    "from_name",
    "from_department",
    "date_transmitted",
    "to_name",
    "to_department",
    "to_address",
    "reference_number",
    "doc_details",
    "supplier",
    "payor_company",
    "property",
    "location",
    "sector",
    "service_type",
    "period_covered",
    "particulars",
    "amount",
    "document_ref",
)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Resolve connection settings.

    優先順位:
        1. DATABASE_URL / PGDSN (環境変数, .env 読み込み済み)
        2. 個別 PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. config の database セクション (不足分のフォールバック)
    """
    dsn_env = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn_env:
        return dsn_env
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _db_value(column: str, value: Any) -> Any:
    if column == "created_at":
        return value
    return "" if value is None else str(value)


class PostgresLogStore(LogStore):
    def __init__(self, config: LogConfig, db_config: DatabaseConfig, connection: Any = None) -> None:
        self.table = config.table
        self.primary_columns = config.primary_columns
        self.pending_marker = config.pending_marker
        self.db_config = db_config
        self._conn = connection
        self.lock_key = zlib.crc32(f"transmittal_log:{self.table}".encode())

    def _connection(self) -> Any:
        if self._conn is None:
            try:
                self._conn = psycopg2.connect(resolve_dsn(self.db_config))
            except psycopg2.OperationalError as e:
                raise ConfigError(f"log database unreachable: {e}") from e
            self._conn.autocommit = False
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _query(self, sql: str, params: Sequence[Any] | None = None) -> list[tuple[Any, ...]]:
        conn = self._connection()
        try:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall() if cur.description is not None else []
        except psycopg2.errors.UndefinedTable as e:
            conn.rollback()
            raise ConfigError(f"log table not found: {self.table}") from e
        conn.commit()
        return rows

    @contextmanager
    def lock(self, timeout: float) -> Iterator[None]:
        conn = self._connection()
        with conn.cursor() as cur:
            try:
                cur.execute("SET lock_timeout = %s", (f"{int(timeout * 1000)}ms",))
                cur.execute("SELECT pg_advisory_lock(%s)", (self.lock_key,))
            except psycopg2.errors.LockNotAvailable as e:
                conn.rollback()
                raise Busy(self.table, timeout) from e
        conn.commit()  # advisory lock はセッション単位なのでコミット後も保持
        try:
            yield
        finally:
            conn.rollback()
            with conn.cursor() as cur:
                cur.execute("SELECT pg_advisory_unlock(%s)", (self.lock_key,))
            conn.commit()

    def read_identifiers(self) -> set[str]:
        rows = self._query(
            f"SELECT DISTINCT transmittal_no FROM \"{self.table}\" WHERE coalesce(transmittal_no, '') <> ''"
        )
        return {str(r[0]).strip() for r in rows}

    def last_row(self) -> int:
        primary = LOG_DB_COLUMNS[: self.primary_columns]
        condition = " OR ".join(f"coalesce(\"{c}\"::text, '') <> ''" for c in primary)
        rows = self._query(f'SELECT max(row_no) FROM "{self.table}" WHERE {condition}')
        last = rows[0][0] if rows else None
        return int(last) if last is not None else HEADER_ROW

    def write_rows(self, start_row: int, rows: Sequence[LogRow]) -> None:
        if not rows:
            return
        values = [
            [start_row + offset, *(_db_value(c, v) for c, v in zip(LOG_DB_COLUMNS, row.to_values(), strict=True))]
            for offset, row in enumerate(rows)
        ]

        def _metrics(m: BatchMetrics) -> None:
            logger.debug(f"log: inserted {m.batch_size} rows in {m.elapsed_seconds:.3f}s")

        conn = self._connection()
        try:
            with conn.cursor() as cur:
                batch_insert(cur, self.table, ["row_no", *LOG_DB_COLUMNS], values, metrics_callback=_metrics)
        except BatchInsertError:
            conn.rollback()
            raise
        conn.commit()

    def write_document_ref(self, first_row: int, count: int, ref: str) -> None:
        self._query(
            f'UPDATE "{self.table}" SET document_ref = %s WHERE row_no BETWEEN %s AND %s',
            (ref, first_row, first_row + count - 1),
        )

    def iter_rows(self) -> Iterator[LogRow]:
        cols = ", ".join(f'"{c}"' for c in LOG_DB_COLUMNS)
        rows = self._query(f'SELECT row_no, {cols} FROM "{self.table}" ORDER BY row_no')
        for raw in rows:
            yield LogRow.from_values(list(raw[1:]), row_number=int(raw[0]))

    def initialize(self) -> bool:
        text_cols = ", ".join(f'"{c}" text' for c in LOG_DB_COLUMNS[1:])
        self._query(
            f'CREATE TABLE IF NOT EXISTS "{self.table}" '
            f"(row_no integer PRIMARY KEY, created_at timestamptz, {text_cols})"
        )
        logger.info(f"log table ensured: {self.table}")
        return True
