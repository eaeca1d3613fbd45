from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .letterhead import Letterhead

"""Config dataclasses for the transmittal log service.

The loader in src/config/loader.py validates the raw YAML and builds these
frozen objects; every other module receives them already typed and defaulted.
"""

DEFAULT_HEADER_ROW = 5
DEFAULT_REFERENCE_HEADER = "RFP/ PEF #"
DEFAULT_LOCK_TIMEOUT_SECONDS = 30.0
DEFAULT_ID_ATTEMPTS = 100
DEFAULT_PENDING_MARKER = "PENDING"
DEFAULT_PRIMARY_COLUMNS = 19

# MatchedItem field -> header text expected in row 5 of each source tab
DEFAULT_FIELD_HEADERS: dict[str, str] = {
    "doc_details": "DOC DETAILS",
    "supplier": "SUPPLIER",
    "payor_company": "PAYOR COMPANY",
    "property": "PROPERTY",
    "location": "LOCATION",
    "sector": "SECTOR",
    "service_type": "SERVICE TYPE",
    "period_covered": "PERIOD COVERED",
    "particulars": "PARTICULARS",
    "amount": "AMOUNT",
}


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration for the PostgreSQL log backend.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class RegistryConfig:
    """Location of the source registry table."""
    path: Path
    sheet: str | int = 0  # 0 = 先頭タブ


@dataclass(frozen=True)
class LogConfig:
    """Central log location and layout settings.

    ``backend`` selects the store: ``excel`` keeps the log in a workbook tab,
    ``postgres`` keeps it in a table with the same 20-column layout.
    """
    backend: str = "excel"
    path: Path | None = None  # excel backend only
    sheet: str = "Log"
    table: str = "transmittal_log"  # postgres backend only
    primary_columns: int = DEFAULT_PRIMARY_COLUMNS
    pending_marker: str = DEFAULT_PENDING_MARKER


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object for the transmittal service."""
    registry: RegistryConfig
    sources_directory: Path
    log: LogConfig
    documents_directory: Path
    header_row: int = DEFAULT_HEADER_ROW
    reference_header: str = DEFAULT_REFERENCE_HEADER
    field_headers: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_FIELD_HEADERS))
    lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS
    id_attempts: int = DEFAULT_ID_ATTEMPTS
    verify_unique_on_write: bool = True
    letterheads: dict[str, Letterhead] = field(default_factory=dict)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
