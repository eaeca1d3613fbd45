"""Domain models for the transmittal log service.

This package contains the value objects passed between the registry, matcher,
allocator, writer and renderer.
"""

from .config_models import AppConfig, DatabaseConfig, LogConfig, RegistryConfig
from .error_record import ErrorRecord
from .letterhead import Letterhead
from .log_row import LogRow
from .matched_item import MatchedItem
from .source_entry import SourceEntry
from .submission import TransmittalSubmission

__all__ = [
    # Configuration models
    "AppConfig",
    "DatabaseConfig",
    "LogConfig",
    "RegistryConfig",
    "Letterhead",
    # Domain models
    "SourceEntry",
    "MatchedItem",
    "TransmittalSubmission",
    "LogRow",
    "ErrorRecord",
]
