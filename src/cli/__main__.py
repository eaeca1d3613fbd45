from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from src.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from src.logging.init import log_summary, set_debug, setup_logging
from src.services.allocator import ExhaustedAttempts
from src.services.log_store import Busy
from src.services.matcher import ExternalSourceError, NoMatchingTabs
from src.services.registry import UnknownSource
from src.services.renderer import DocumentGenerationError
from src.services.submission_io import load_submission
from src.services.summary import render_confirmation
from src.services.transmittal import TransmittalService
from src.services.writer import DuplicateTransmittal, EmptySubmission, InvalidSubmission

"""CLI entrypoint.

    python -m src.cli [--config PATH] [--debug] COMMAND ...

Commands mirror the service surface (sources, search, allocate, submit,
preview) plus operator helpers (pending, backfill, init-log). Structured
results go to stdout as JSON; log lines carry INFO|WARN|ERROR|SUMMARY labels.
"""

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_REJECTED = 2
EXIT_RETRY = 3
EXIT_DOCUMENT_FAILED = 4

# 例外 -> (終了コード, ログラベル)
_ERROR_EXITS: tuple[tuple[type[Exception], int, str], ...] = (
    (ConfigError, EXIT_FATAL, "config"),
    (UnknownSource, EXIT_REJECTED, "rejected"),
    (NoMatchingTabs, EXIT_REJECTED, "rejected"),
    (EmptySubmission, EXIT_REJECTED, "rejected"),
    (InvalidSubmission, EXIT_REJECTED, "rejected"),
    (DuplicateTransmittal, EXIT_REJECTED, "rejected"),
    (Busy, EXIT_RETRY, "busy"),
    (ExternalSourceError, EXIT_RETRY, "source"),
    (ExhaustedAttempts, EXIT_RETRY, "allocate"),
    (DocumentGenerationError, EXIT_DOCUMENT_FAILED, "document"),
)


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True により .env の値で既存環境変数を上書きし、PostgreSQL 接続情報を最優先化。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _print_json(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Transmittal log: source lookup, numbering, logging and documents")
    p.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="Path to the YAML config")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("sources", help="List registered sources")

    s = sub.add_parser("search", help="Find rows for a reference number in a source")
    s.add_argument("reference_number")
    s.add_argument("source_id")

    sub.add_parser("allocate", help="Allocate a new transmittal number")

    s = sub.add_parser("submit", help="Append a submission file to the log and render its document")
    s.add_argument("file", type=Path)

    s = sub.add_parser("preview", help="Render a submission file to PDF without logging it")
    s.add_argument("file", type=Path)
    s.add_argument("--out", type=Path, required=True, help="Output PDF path")

    sub.add_parser("pending", help="List log rows still waiting for a document reference")

    s = sub.add_parser("backfill", help="Record a document reference for a pending transmittal")
    s.add_argument("transmittal_no")
    s.add_argument("document_ref")

    sub.add_parser("init-log", help="Create the central log (header row) if missing")
    return p.parse_args(argv)


def _cmd_sources(service: TransmittalService, args: argparse.Namespace) -> int:
    _print_json([entry.to_dict() for entry in service.list_sources()])
    return EXIT_OK


def _cmd_search(service: TransmittalService, args: argparse.Namespace) -> int:
    items = service.search(args.reference_number, args.source_id)
    _print_json([item.to_dict() for item in items])
    log_summary(f"matches={len(items)}")
    return EXIT_OK


def _cmd_allocate(service: TransmittalService, args: argparse.Namespace) -> int:
    _print_json({"transmittal_no": service.allocate()})
    return EXIT_OK


def _cmd_submit(service: TransmittalService, args: argparse.Namespace) -> int:
    submission = load_submission(args.file)
    if not submission.transmittal_no and submission.items:
        # 番号未指定のファイルはここで採番してから書き込む
        submission = replace(submission, transmittal_no=service.allocate())
    result = service.append(submission)
    _print_json(result.to_dict())
    log_summary(render_confirmation(result))
    return EXIT_OK


def _cmd_preview(service: TransmittalService, args: argparse.Namespace) -> int:
    submission = load_submission(args.file)
    pdf = service.preview(submission)
    args.out.parent.mkdir(parents=True, exist_ok=True)
    args.out.write_bytes(pdf)
    log_summary(f"preview written: {args.out} ({len(pdf)} bytes)")
    return EXIT_OK


def _cmd_pending(service: TransmittalService, args: argparse.Namespace) -> int:
    rows = service.pending()
    _print_json([
        {"row": r.row_number, "transmittal_no": r.transmittal_no, "reference_number": r.item.reference_number}
        for r in rows
    ])
    log_summary(f"pending_rows={len(rows)}")
    return EXIT_OK


def _cmd_backfill(service: TransmittalService, args: argparse.Namespace) -> int:
    result = service.backfill(args.transmittal_no, args.document_ref)
    _print_json(result.to_dict())
    log_summary(render_confirmation(result))
    return EXIT_OK


def _cmd_init_log(service: TransmittalService, args: argparse.Namespace) -> int:
    created = service.init_log()
    log_summary("log created" if created else "log already present")
    return EXIT_OK


_COMMANDS: dict[str, Callable[[TransmittalService, argparse.Namespace], int]] = {
    "sources": _cmd_sources,
    "search": _cmd_search,
    "allocate": _cmd_allocate,
    "submit": _cmd_submit,
    "preview": _cmd_preview,
    "pending": _cmd_pending,
    "backfill": _cmd_backfill,
    "init-log": _cmd_init_log,
}


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # NOTE: [] が与えられた場合に sys.argv[1:] (pytest の引数) が混入しないよう None のときのみ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    # .env を最優先で読み込む (DB 接続パラメータ優先順位保証)
    _load_env_file(Path(".env"), override=True)
    if args.debug:
        set_debug()

    try:
        cfg = load_config(Path(args.config))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    service: TransmittalService | None = None
    try:
        service = TransmittalService(cfg)
        return _COMMANDS[args.command](service, args)
    except tuple(exc for exc, _, _ in _ERROR_EXITS) as e:
        for exc_type, code, label in _ERROR_EXITS:
            if isinstance(e, exc_type):
                logger.error(f"{label}: {e}")
                return code
        raise  # pragma: no cover
    finally:
        if service is not None:
            service.store.close()


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
