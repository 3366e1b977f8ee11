"""Sync engine: one full reconciliation pass between notes and Todoist.

A pass is strictly ordered:
1. Repair malformed signature fields
2. Push local creates, then dirty local updates
3. Re-fetch the snapshot and select importable items plus their ancestors
4. Materialize them (and every already-synced item) as notes
5. Archive or flag notes whose task is gone
6. Refresh checklist lines that link to task notes

A failure aborts the rest of the pass; steps already done stay done.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from ..models import (
    CreateTaskInput,
    PendingLocalCreate,
    ProjectSectionLookup,
    RemoteTask,
    SyncConfig,
    SyncedTaskEntry,
    SyncRunResult,
    TaskNote,
    UpdateTaskInput,
)
from ..todoist.client import TodoistClientError
from ..utils.directives import resolve_due
from .checklist import sync_linked_checklist_states
from .import_filter import filter_importable_items, include_ancestor_tasks

if TYPE_CHECKING:
    from ..repositories.task_notes import TaskNoteRepository
    from ..todoist.client import TodoistClient

logger = logging.getLogger(__name__)

FAILURE_PREFIX = "Todoist sync failed: "


class SyncError(Exception):
    """A sync pass failed; ``result`` carries the counts reached so far."""

    def __init__(self, reason: str, result: SyncRunResult) -> None:
        self.reason = reason
        self.result = result
        super().__init__(f"{FAILURE_PREFIX}{reason}")


class SyncEngine:
    """Runs reconciliation passes for one vault."""

    def __init__(
        self,
        repository: TaskNoteRepository,
        client: TodoistClient,
        config: SyncConfig,
    ) -> None:
        """Initialize the sync engine.

        Args:
            repository: Task note store for the vault
            client: Authenticated Todoist client
            config: Sync configuration
        """
        self._repository = repository
        self._client = client
        self._config = config

    @property
    def vault_root(self) -> Path:
        return self._repository.vault_root

    # --- Public API ---

    def run_import_sync(self) -> SyncRunResult:
        """Run a pass and report failures in the result instead of raising."""
        try:
            return self.sync()
        except SyncError as e:
            logger.error("%s", e)
            return e.result

    def sync(self) -> SyncRunResult:
        """Run one full pass.

        Raises:
            SyncError: A remote or file operation failed
        """
        result = SyncRunResult()
        try:
            self._run(result)
        except (TodoistClientError, OSError) as e:
            result.ok = False
            result.message = f"{FAILURE_PREFIX}{e}"
            result.errors.append(str(e))
            raise SyncError(str(e), result) from e

        result.message = result.summary()
        logger.info("%s", result.message)
        return result

    def push_local_creates(
        self,
        lookup: ProjectSectionLookup,
        result: SyncRunResult | None = None,
    ) -> int:
        """Create a Todoist task for every pending local note.

        Parents are created before their children so the child can carry the
        freshly assigned parent id. Done notes are closed right after creation.
        Each push is counted into ``result`` as soon as it is recorded locally.
        """
        pending = self._repository.list_pending_local_creates()
        created_ids: dict[Path, str] = {}
        pushed = 0

        for entry in _parents_first(pending):
            note = entry.note
            project_id = lookup.resolve_project_id(note.project_id, note.project_name)
            section_id = lookup.resolve_section_id(note.section_id, note.section_name, project_id)
            due_date, due_string = _resolve_note_due(note)
            parent_id = entry.parent_id
            if not parent_id and entry.parent_path is not None:
                parent_id = created_ids.get(entry.parent_path)

            todoist_id = self._client.create_task(
                CreateTaskInput(
                    content=note.title,
                    description=note.description,
                    project_id=project_id,
                    section_id=section_id,
                    parent_id=parent_id,
                    priority=note.priority,
                    labels=note.labels,
                    due_date=due_date,
                    due_string=due_string,
                )
            )
            if note.is_done:
                self._client.close_task(todoist_id)

            self._repository.mark_local_create_synced(note.path, todoist_id, entry.signature)
            created_ids[note.path] = todoist_id
            pushed += 1
            if result is not None:
                result.pushed_creates += 1
            logger.debug("Pushed local create %s -> %s", note.path.name, todoist_id)

        if pushed:
            logger.info("Pushed %d local create(s)", pushed)
        return pushed

    def push_local_updates(
        self,
        lookup: ProjectSectionLookup,
        result: SyncRunResult | None = None,
    ) -> int:
        """Push every dirty note whose signature changed since the last push."""
        pushed = 0
        for entry in self._repository.list_pending_local_updates():
            note = entry.note
            project_id = lookup.resolve_project_id(note.project_id, note.project_name)
            section_id = lookup.resolve_section_id(note.section_id, note.section_name, project_id)
            due_date, due_string = _resolve_note_due(note)

            self._client.update_task(
                UpdateTaskInput(
                    id=entry.todoist_id,
                    content=note.title,
                    description=note.description,
                    is_done=note.is_done,
                    is_recurring=note.is_recurring,
                    project_id=project_id,
                    section_id=section_id,
                    due_date=due_date,
                    due_string=due_string,
                    clear_due=not due_date and not due_string,
                )
            )
            self._repository.mark_local_update_synced(note.path, entry.signature)
            pushed += 1
            if result is not None:
                result.pushed_updates += 1
            logger.debug("Pushed local update %s -> %s", note.path.name, entry.todoist_id)

        if pushed:
            logger.info("Pushed %d local update(s)", pushed)
        return pushed

    # --- Internal ---

    def _run(self, result: SyncRunResult) -> None:
        result.repaired_signatures = self._repository.repair_malformed_signatures()

        snapshot = self._client.fetch_sync_snapshot()
        self.push_local_creates(snapshot, result)
        self.push_local_updates(snapshot, result)

        # Pushed changes must be visible to the import below
        snapshot = self._client.fetch_sync_snapshot()

        importable = filter_importable_items(
            snapshot.items, snapshot.projects, self._config, snapshot.user_id
        )
        expanded = include_ancestor_tasks(importable, snapshot.items)
        result.imported = len(expanded)
        result.ancestors = len(expanded) - len(importable)
        logger.info(
            "Importable: %d task(s) (+%d ancestors)",
            len(importable),
            result.ancestors,
        )

        active = snapshot.active_items_by_id()
        merged = _merge_with_synced(expanded, active, self._repository.list_synced_tasks())

        upserted = self._repository.sync_items(
            merged,
            snapshot.project_name_by_id(),
            snapshot.section_name_by_id(),
        )
        result.created = upserted.created
        result.updated = upserted.updated

        missing = [
            entry
            for entry in self._repository.list_synced_tasks()
            if entry.todoist_id not in active
        ]
        result.missing_handled = self._repository.apply_missing_remote_tasks(
            missing, self._config.archive_mode
        )
        if missing:
            logger.info(
                "Missing remotely: %d note(s), %d changed (%s)",
                len(missing),
                result.missing_handled,
                self._config.archive_mode.value,
            )

        result.linked_checklist_updates = sync_linked_checklist_states(self.vault_root)


def _merge_with_synced(
    expanded: list[RemoteTask],
    active: dict[str, RemoteTask],
    synced: list[SyncedTaskEntry],
) -> list[RemoteTask]:
    """Importable items plus every active item that already has a note."""
    merged = {item.id: item for item in expanded}
    for entry in synced:
        item = active.get(entry.todoist_id)
        if item is not None:
            merged.setdefault(item.id, item)
    return list(merged.values())


def _resolve_note_due(note: TaskNote) -> tuple[str | None, str | None]:
    # A stored due that isn't YYYY-MM-DD goes out as free text
    due_date, due_text = resolve_due(note.due_date)
    return due_date, note.due_string or due_text


def _parents_first(pending: list[PendingLocalCreate]) -> list[PendingLocalCreate]:
    """Order pending creates so a parent note precedes its children."""
    by_path = {entry.note.path: entry for entry in pending}
    ordered: list[PendingLocalCreate] = []
    visited: set[Path] = set()

    def visit(entry: PendingLocalCreate) -> None:
        if entry.note.path in visited:
            return
        visited.add(entry.note.path)
        parent = by_path.get(entry.parent_path) if entry.parent_path else None
        if parent is not None:
            visit(parent)
        ordered.append(entry)

    for entry in pending:
        visit(entry)
    return ordered
