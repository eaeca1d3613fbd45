from __future__ import annotations

import json
from pathlib import Path

from filelock import FileLock

from src.cli import main as cli_main
from src.logging.init import reset_logging

"""Exit code contract tests.

0 ok / 1 fatal config / 2 rejected input / 3 retryable (busy, source, allocate)
/ 4 rows logged but document failed.
"""

SUBMISSION = """transmittal_no: "20240105-4321"
from_name: Maria Santos
from_department: FIN
date_transmitted: 2024-01-05
to_name: Jose Cruz
to_department: TREASURY
to_address: 2F Tower 2, Makati
items:
  - reference_number: "123"
    supplier: Supplier Co
    amount: 1500
"""


def _submission_file(temp_workdir: Path, text: str = SUBMISSION) -> Path:
    path = temp_workdir / "submission.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_exit_code_fatal_startup(temp_workdir: Path, capsys):
    # config/transmittal.yml 無し → exit 1
    reset_logging()
    code = cli_main(["sources"])
    captured = capsys.readouterr()
    assert code == 1
    assert "ERROR config:" in captured.out


def test_exit_code_missing_registry_is_fatal(write_config: Path, capsys):
    reset_logging()
    code = cli_main(["sources"])
    out = capsys.readouterr().out
    assert code == 1
    assert "ERROR config: registry table not found" in out


def test_exit_code_sources_success(app_config, capsys):
    reset_logging()
    code = cli_main(["sources"])
    out = capsys.readouterr().out
    assert code == 0
    data = json.loads(out[: out.rindex("]") + 1])
    assert [d["id"] for d in data] == ["X", "PAY", "GHOST"]


def test_exit_code_search_success(app_config, capsys):
    reset_logging()
    code = cli_main(["search", "123", "X"])
    out = capsys.readouterr().out
    assert code == 0
    assert '"supplier": "Supplier Co"' in out
    assert "SUMMARY matches=1" in out


def test_exit_code_unknown_source_rejected(app_config, capsys):
    reset_logging()
    code = cli_main(["search", "123", "NOPE"])
    out = capsys.readouterr().out
    assert code == 2
    assert "ERROR rejected: unknown source" in out


def test_exit_code_no_matching_tabs_rejected(app_config, capsys):
    reset_logging()
    code = cli_main(["search", "1", "GHOST"])
    assert code == 2


def test_exit_code_unreadable_source_retryable(app_config, temp_workdir: Path, capsys):
    reset_logging()
    (temp_workdir / "data" / "sources" / "X.xlsx").write_bytes(b"corrupt")
    code = cli_main(["search", "123", "X"])
    out = capsys.readouterr().out
    assert code == 3
    assert "ERROR source:" in out


def test_exit_code_submit_success(excel_store, temp_workdir: Path, capsys):
    reset_logging()
    code = cli_main(["submit", str(_submission_file(temp_workdir))])
    out = capsys.readouterr().out
    assert code == 0
    assert "SUMMARY Transmittal 20240105-4321 saved: 1 item (log row 2)" in out
    assert (temp_workdir / "documents" / "20240105-4321.pdf").exists()


def test_exit_code_submit_allocates_missing_number(excel_store, temp_workdir: Path, capsys):
    reset_logging()
    path = _submission_file(temp_workdir, SUBMISSION.replace('transmittal_no: "20240105-4321"\n', ""))
    code = cli_main(["submit", str(path)])
    out = capsys.readouterr().out
    assert code == 0
    ids = excel_store.read_identifiers()
    assert len(ids) == 1
    assert f"SUMMARY Transmittal {ids.pop()} saved" in out


def test_exit_code_duplicate_rejected(excel_store, temp_workdir: Path, capsys):
    reset_logging()
    path = _submission_file(temp_workdir)
    assert cli_main(["submit", str(path)]) == 0
    reset_logging()
    code = cli_main(["submit", str(path)])
    out = capsys.readouterr().out
    assert code == 2
    assert "ERROR rejected: transmittal number already recorded" in out


def test_exit_code_empty_submission_rejected(excel_store, temp_workdir: Path, capsys):
    reset_logging()
    path = _submission_file(temp_workdir, 'transmittal_no: "20240105-4321"\nitems: []\n')
    code = cli_main(["submit", str(path)])
    assert code == 2
    assert excel_store.last_row() == 1


def test_exit_code_invalid_submission_file(excel_store, temp_workdir: Path, capsys):
    reset_logging()
    path = _submission_file(temp_workdir, "items:\n  - supplier: no reference\n")
    assert cli_main(["submit", str(path)]) == 2


def test_exit_code_busy_retryable(excel_store, write_config: Path, temp_workdir: Path, capsys):
    reset_logging()
    text = write_config.read_text(encoding="utf-8").replace("lock_timeout_seconds: 2", "lock_timeout_seconds: 0.2")
    write_config.write_text(text, encoding="utf-8")
    with FileLock(str(excel_store.lock_path)):
        code = cli_main(["submit", str(_submission_file(temp_workdir))])
    out = capsys.readouterr().out
    assert code == 3
    assert "ERROR busy:" in out
    assert excel_store.last_row() == 1


def test_exit_code_document_failure(excel_store, temp_workdir: Path, capsys):
    reset_logging()
    # documents ディレクトリの位置にファイルを置いて保存を失敗させる
    (temp_workdir / "documents").write_text("blocker", encoding="utf-8")
    code = cli_main(["submit", str(_submission_file(temp_workdir))])
    out = capsys.readouterr().out
    assert code == 4
    assert "ERROR document:" in out
    assert [r.document_ref for r in excel_store.iter_rows()] == ["PENDING"]
    assert list((temp_workdir / "logs").glob("errors-*.log"))


def test_exit_code_init_log_and_allocate(app_config, capsys):
    reset_logging()
    assert cli_main(["init-log"]) == 0
    reset_logging()
    code = cli_main(["allocate"])
    out = capsys.readouterr().out
    assert code == 0
    assert '"transmittal_no": "' in out
