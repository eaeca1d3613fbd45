from __future__ import annotations

import random
from collections.abc import Callable
from datetime import datetime

from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import AppConfig
from ..models.log_row import LogRow
from ..models.matched_item import MatchedItem
from ..models.source_entry import SourceEntry
from ..models.submission import TransmittalSubmission
from .allocator import SequenceAllocator, local_now
from .letterhead import resolve_letterhead
from .log_store import LogStore, create_log_store
from .matcher import RowMatcher
from .registry import SourceRegistry
from .renderer import PdfRenderer
from .writer import AppendResult, TransmittalWriter

"""Service facade wiring the registry, matcher, allocator, writer and renderer.

This is the request/response surface a UI talks to:

    list_sources()               -> registry entries for the source picker
    search(ref, source_id)       -> matched items to prefill line items
    allocate()                   -> a fresh transmittal number
    append(submission)           -> rows written + document reference
    preview(submission)          -> PDF bytes, nothing stored
    pending() / backfill(no, ref) -> reconciliation of failed renders
"""


class TransmittalService:
    def __init__(
        self,
        config: AppConfig,
        store: LogStore | None = None,
        renderer: PdfRenderer | None = None,
        clock: Callable[[], datetime] = local_now,
        rng: random.Random | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.config = config
        self.registry = SourceRegistry(config.registry, config.sources_directory)
        self.matcher = RowMatcher(
            self.registry, config.header_row, config.reference_header, config.field_headers
        )
        self.store = store if store is not None else create_log_store(config)
        self.renderer = renderer if renderer is not None else PdfRenderer(config.documents_directory)
        self.allocator = SequenceAllocator(
            self.store,
            lock_timeout=config.lock_timeout_seconds,
            max_attempts=config.id_attempts,
            clock=clock,
            rng=rng,
        )
        self.writer = TransmittalWriter(
            self.store,
            self.renderer,
            letterheads=config.letterheads,
            lock_timeout=config.lock_timeout_seconds,
            verify_unique=config.verify_unique_on_write,
            clock=clock,
            error_log=error_log,
        )

    def list_sources(self) -> list[SourceEntry]:
        return self.registry.list_sources()

    def search(self, reference_number: str, source_id: str) -> list[MatchedItem]:
        return self.matcher.search(reference_number, source_id)

    def allocate(self) -> str:
        return self.allocator.allocate()

    def append(self, submission: TransmittalSubmission) -> AppendResult:
        return self.writer.append(submission)

    def preview(self, submission: TransmittalSubmission) -> bytes:
        letterhead = resolve_letterhead(submission.from_department, self.config.letterheads)
        return self.renderer.build_pdf(submission, letterhead)

    def pending(self) -> list[LogRow]:
        return self.store.pending_rows()

    def backfill(self, transmittal_no: str, ref: str) -> AppendResult:
        return self.writer.backfill(transmittal_no, ref)

    def init_log(self) -> bool:
        return self.store.initialize()
