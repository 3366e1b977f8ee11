"""Todoist <-> task note sync package."""

from .checklist import sync_linked_checklist_states
from .engine import SyncEngine, SyncError
from .import_filter import filter_importable_items, include_ancestor_tasks
from .signature import (
    build_import_signature,
    build_sync_signature,
    note_sync_signature,
    remote_sync_signature,
    repair_signature_frontmatter,
    stable_hash,
)

__all__ = [
    "SyncEngine",
    "SyncError",
    "build_import_signature",
    "build_sync_signature",
    "filter_importable_items",
    "include_ancestor_tasks",
    "note_sync_signature",
    "remote_sync_signature",
    "repair_signature_frontmatter",
    "stable_hash",
    "sync_linked_checklist_states",
]
