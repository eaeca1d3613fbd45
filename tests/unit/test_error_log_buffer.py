from __future__ import annotations
import json
from pathlib import Path
from src.logging.error_log import ErrorRecord, ErrorLogBuffer

KEYS = {"timestamp", "transmittal_no", "first_row", "row_count", "error_type", "message"}


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create(
        transmittal_no="20240105-4321",
        first_row=10,
        row_count=3,
        error_type="DOCUMENT_RENDER_ERROR",
        message="disk full"
    )
    line = rec.to_json_line()
    data = json.loads(line)
    assert data["transmittal_no"] == "20240105-4321"
    assert data["first_row"] == 10
    assert data["row_count"] == 3
    assert data["error_type"] == "DOCUMENT_RENDER_ERROR"
    assert "timestamp" in data and data["timestamp"].endswith("Z")
    assert set(data.keys()) == KEYS


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("20240105-4321", 2, 2, "DOCUMENT_RENDER_ERROR", "disk full"))
    buf.append(ErrorRecord.create("20240105-5555", 4, 1, "DOCUMENT_BACKFILL_ERROR", "locked"))
    path = buf.flush()
    assert path is not None and path.exists()
    assert path.parent == Path("logs")
    assert path.name.startswith("errors-") and path.suffix == ".log"
    # ファイル内容検証
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        obj = json.loads(raw)
        assert set(obj.keys()) == KEYS
    # flush 後バッファクリア
    assert len(buf) == 0


def test_error_log_buffer_multiple_flushes(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("20240105-4321", 2, 2, "DOCUMENT_RENDER_ERROR", "x"))
    path = buf.flush()
    size1 = path.stat().st_size
    # 再追加して再flush
    buf.append(ErrorRecord.create("20240105-4322", 4, 1, "DOCUMENT_RENDER_ERROR", "y"))
    path2 = buf.flush()
    assert path == path2
    size2 = path2.stat().st_size
    assert size2 > size1


def test_error_log_buffer_empty_flush_writes_nothing(tmp_path: Path):
    logs = tmp_path / "logs"
    buf = ErrorLogBuffer(logs)
    assert buf.flush() is None
    assert not logs.exists()


def test_error_log_buffer_non_ascii_message(tmp_path: Path):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(ErrorRecord.create("20240105-4321", 2, 1, "DOCUMENT_RENDER_ERROR", "ファイル保存失敗"))
    path = buf.flush()
    assert "ファイル保存失敗" in path.read_text(encoding="utf-8")
