"""Data models."""

from .config import ArchiveMode, ImportProjectScope, SyncConfig, normalize_sync_interval
from .remote import (
    CreateTaskInput,
    ProjectSectionLookup,
    RemoteDue,
    RemoteProject,
    RemoteSection,
    RemoteTask,
    SyncSnapshot,
    UpdateTaskInput,
)
from .sync import (
    ParentAssignment,
    PendingLocalCreate,
    PendingLocalUpdate,
    SyncedTaskEntry,
    SyncRunResult,
    UpsertResult,
)
from .task import (
    STATUS_DONE,
    STATUS_OPEN,
    LocalTaskNoteInput,
    SyncState,
    TaskNote,
)

__all__ = [
    "STATUS_DONE",
    "STATUS_OPEN",
    "ArchiveMode",
    "CreateTaskInput",
    "ImportProjectScope",
    "LocalTaskNoteInput",
    "ParentAssignment",
    "PendingLocalCreate",
    "PendingLocalUpdate",
    "ProjectSectionLookup",
    "RemoteDue",
    "RemoteProject",
    "RemoteSection",
    "RemoteTask",
    "SyncConfig",
    "SyncRunResult",
    "SyncSnapshot",
    "SyncState",
    "SyncedTaskEntry",
    "TaskNote",
    "UpdateTaskInput",
    "UpsertResult",
    "normalize_sync_interval",
]
