"""Service layer for business logic."""

from .config_service import ConfigService
from .lookup_service import LookupService
from .sync_runner import SyncRunner
from .task_note_service import ConversionResult, TaskNoteService, build_meta_summary

__all__ = [
    "ConfigService",
    "ConversionResult",
    "LookupService",
    "SyncRunner",
    "TaskNoteService",
    "build_meta_summary",
]
