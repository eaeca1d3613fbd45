from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from src.models.error_record import ErrorRecord

"""Error log generation & buffering module.

- JSON Lines, fixed key set (see ErrorRecord)
- one `logs/errors-YYYYMMDD-HHMMSS.log` (UTC) per buffer, created on first flush
- records are buffered and appended in one go on flush()

The writer flushes right after recording a failed render so that the
pending rows can be found by an operator even if the process dies afterwards.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines.

    - flush() 呼び出し時にファイル (なければ生成) へ一括追記
    - ファイルパスは初回アクセスで決定
    """
    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir if logs_dir is not None else LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
