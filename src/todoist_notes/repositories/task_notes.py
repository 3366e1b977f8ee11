"""Task notes stored as Markdown files with YAML front matter."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

import frontmatter

from ..models import (
    ArchiveMode,
    LocalTaskNoteInput,
    ParentAssignment,
    PendingLocalCreate,
    PendingLocalUpdate,
    RemoteTask,
    SyncConfig,
    SyncedTaskEntry,
    SyncState,
    TaskNote,
    UpsertResult,
)
from ..models.task import (
    KEY_IMPORTED_SIGNATURE,
    KEY_LAST_IMPORTED_AT,
    KEY_LOCAL_UPDATED_AT,
    KEY_PARENT_TASK,
    KEY_SYNC,
    KEY_SYNC_STATUS,
    KEY_SYNCED_SIGNATURE,
    KEY_TODOIST_ID,
    STATUS_DONE,
    STATUS_OPEN,
    apply_standard_frontmatter,
    get_signature,
    get_sync_state,
    get_task_status,
    is_truthy,
    normalize_tag,
    remote_frontmatter_fields,
    set_sync_state,
    set_task_status,
    set_task_title,
    to_optional_bool,
    to_optional_id,
    to_optional_int,
    to_string_list,
)
from ..sync.signature import (
    build_import_signature,
    note_sync_signature,
    remote_sync_signature,
    repair_signature_frontmatter,
)
from ..utils.datetime import format_created_date, format_modified_date, iso_timestamp
from ..utils.links import parse_wiki_link, resolve_link, rewrite_links, to_wiki_link
from ..utils.slug import sanitize_file_name, unique_file_path_in_folder, unique_task_file_path

logger = logging.getLogger(__name__)

# Raw-text fallback when front matter can't be parsed as YAML
TODOIST_ID_PATTERN = re.compile(
    r"^---[\s\S]*?\btodoist_id:\s*[\"']?([^\n\"']+)[\"']?\s*$",
    re.MULTILINE,
)

FrontmatterMutator = Callable[[dict], None]


class TaskNoteRepository:
    """
    Repository for task notes inside a vault.

    Only the configured task folder (recursively) is considered. Front matter
    is the only persistent store: the Todoist id index is rebuilt by scanning
    on every call rather than cached.
    """

    def __init__(self, vault_root: Path, config: SyncConfig) -> None:
        """
        Initialize repository.

        Args:
            vault_root: Root directory of the note vault
            config: Sync configuration (folders, tag, rename and archive policy)
        """
        self.vault_root = vault_root
        self.config = config

    @property
    def tasks_root(self) -> Path:
        return self.vault_root / self.config.tasks_folder

    @property
    def archive_root(self) -> Path:
        return self.vault_root / self.config.archive_folder

    def ensure_directory(self, folder: Path | None = None) -> None:
        """Create the task folder (or ``folder``) if it doesn't exist."""
        (folder or self.tasks_root).mkdir(parents=True, exist_ok=True)

    def is_task_path(self, path: Path) -> bool:
        """Whether ``path`` lies inside the task folder."""
        return path.resolve().is_relative_to(self.tasks_root.resolve())

    # --- Index ---

    def iter_task_files(self) -> Iterator[Path]:
        """Iterate over all .md files under the task folder."""
        if not self.tasks_root.exists():
            return
        yield from sorted(self.tasks_root.rglob("*.md"))

    def read_note(self, path: Path) -> TaskNote | None:
        """Parse a single task note, or None if it can't be read."""
        post = self._load_post(path)
        if post is None:
            return None
        return TaskNote.from_frontmatter(path, post.metadata, post.content)

    def index(self) -> dict[str, Path]:
        """Map Todoist id -> note path for every note in the task folder.

        When two notes claim the same id the first (in path order) wins.
        """
        index: dict[str, Path] = {}
        for path in self.iter_task_files():
            todoist_id = self._read_todoist_id(path)
            if not todoist_id:
                continue
            if todoist_id in index:
                logger.warning(
                    "Duplicate todoist_id %s in %s (already indexed: %s)",
                    todoist_id,
                    path,
                    index[todoist_id],
                )
                continue
            index[todoist_id] = path
        return index

    def list_synced_tasks(self) -> list[SyncedTaskEntry]:
        """All notes carrying a Todoist id."""
        return [SyncedTaskEntry(todoist_id=tid, path=path) for tid, path in self.index().items()]

    # --- Pull: materialize remote tasks ---

    def sync_items(
        self,
        items: Iterable[RemoteTask],
        project_name_by_id: dict[str, str],
        section_name_by_id: dict[str, str],
    ) -> UpsertResult:
        """Upsert every item, then rewrite parent/child links across the index."""
        self.ensure_directory()

        existing = self.index()
        combined = dict(existing)
        assignments: list[ParentAssignment] = []
        orphan_ids: list[str] = []
        result = UpsertResult()

        for item in items:
            upserted, path = self.upsert(
                item,
                project_name_by_id,
                section_name_by_id,
                existing_path=existing.get(item.id),
                check_index=False,
            )
            result.created += upserted.created
            result.updated += upserted.updated
            combined[item.id] = path

            if item.parent_id:
                assignments.append(ParentAssignment(item.id, item.parent_id))
            else:
                orphan_ids.append(item.id)

        self.apply_parent_links(combined, assignments, orphan_ids)
        self.apply_child_metadata(combined, assignments)

        logger.info("Materialized tasks: %d created, %d updated", result.created, result.updated)
        return result

    def upsert(
        self,
        item: RemoteTask,
        project_name_by_id: dict[str, str],
        section_name_by_id: dict[str, str],
        existing_path: Path | None = None,
        check_index: bool = True,
    ) -> tuple[UpsertResult, Path]:
        """Create or update the note for ``item``.

        Returns the counts and the note's (possibly renamed) path.
        """
        if existing_path is None and check_index:
            existing_path = self.index().get(item.id)

        if existing_path is None:
            return self._create_task_file(item, project_name_by_id, section_name_by_id)
        return self._update_task_file(existing_path, item, project_name_by_id, section_name_by_id)

    def rename_task_file_to_match_title(self, path: Path, title: str) -> Path:
        """Rename a note after its title if auto-rename is on; returns the new path."""
        if not self.config.auto_rename_task_files:
            return path

        desired = sanitize_file_name(title.strip())
        if not desired or path.stem == desired:
            return path

        target = unique_file_path_in_folder(path.parent, f"{desired}.md", current_path=path)
        if target == path:
            return path

        self._move_note(path, target)
        logger.info("Renamed %s -> %s", path.name, target.name)
        return target

    def apply_parent_links(
        self,
        index: dict[str, Path],
        assignments: list[ParentAssignment],
        orphan_ids: Iterable[str] = (),
    ) -> int:
        """Write ``parent_task`` into each child note.

        Notes listed in ``orphan_ids`` have no remote parent any more and get
        their link cleared. Unchanged values are not rewritten.
        """
        changed = 0
        for assignment in assignments:
            child = index.get(assignment.child_todoist_id)
            parent = index.get(assignment.parent_todoist_id)
            if child is None or parent is None:
                continue

            parent_link = to_wiki_link(self.vault_root, parent)
            post = self._load_post(child)
            if post is None or post.metadata.get(KEY_PARENT_TASK) == parent_link:
                continue

            self._write_frontmatter(child, post, _set_field(KEY_PARENT_TASK, parent_link))
            changed += 1

        for todoist_id in orphan_ids:
            path = index.get(todoist_id)
            if path is None:
                continue
            post = self._load_post(path)
            if post is None or not post.metadata.get(KEY_PARENT_TASK):
                continue
            self._write_frontmatter(path, post, _set_field(KEY_PARENT_TASK, ""))
            changed += 1

        return changed

    def apply_child_metadata(
        self,
        index: dict[str, Path],
        assignments: list[ParentAssignment],
    ) -> int:
        """Write sorted child links, count and has-children flag into every note."""
        child_links: dict[str, list[str]] = {}
        for assignment in assignments:
            parent = index.get(assignment.parent_todoist_id)
            child = index.get(assignment.child_todoist_id)
            if parent is None or child is None:
                continue
            links = child_links.setdefault(assignment.parent_todoist_id, [])
            link = to_wiki_link(self.vault_root, child)
            if link not in links:
                links.append(link)

        changed = 0
        for todoist_id, path in index.items():
            desired_links = sorted(child_links.get(todoist_id, []))
            desired_count = len(desired_links)
            desired_has_children = desired_count > 0

            post = self._load_post(path)
            if post is None:
                continue
            metadata = post.metadata
            current_has_children = to_optional_bool(metadata.get("todoist_has_children")) or False
            current_count = to_optional_int(metadata.get("todoist_child_task_count")) or 0
            current_links = sorted(to_string_list(metadata.get("todoist_child_tasks")))

            if (
                current_has_children == desired_has_children
                and current_count == desired_count
                and current_links == desired_links
            ):
                continue

            def mutate(data: dict) -> None:
                data["todoist_has_children"] = desired_has_children
                data["todoist_child_task_count"] = desired_count
                data["todoist_child_tasks"] = desired_links

            self._write_frontmatter(path, post, mutate)
            changed += 1

        return changed

    def apply_missing_remote_tasks(
        self,
        entries: list[SyncedTaskEntry],
        mode: ArchiveMode,
    ) -> int:
        """Handle notes whose Todoist task is gone; idempotent per mode.

        Returns the number of notes changed.
        """
        changed = 0
        for entry in entries:
            post = self._load_post(entry.path)
            if post is None:
                continue

            current_state = get_sync_state(post.metadata)
            current_status = get_task_status(post.metadata)

            if mode == ArchiveMode.NONE:
                if current_state == SyncState.MISSING_REMOTE.value:
                    continue

                def flag_missing(data: dict) -> None:
                    set_sync_state(data, SyncState.MISSING_REMOTE)
                    data[KEY_LAST_IMPORTED_AT] = iso_timestamp()

                self._write_frontmatter(entry.path, post, flag_missing)
                logger.debug("Flagged missing_remote: %s", entry.path.name)
                changed += 1
                continue

            target_state = (
                SyncState.ARCHIVED_REMOTE
                if mode == ArchiveMode.MOVE_TO_ARCHIVE_FOLDER
                else SyncState.COMPLETED_REMOTE
            )
            needs_frontmatter = (
                current_status != STATUS_DONE or current_state != target_state.value
            )
            needs_move = mode == ArchiveMode.MOVE_TO_ARCHIVE_FOLDER and not self._is_archived(
                entry.path
            )
            if not needs_frontmatter and not needs_move:
                continue

            if needs_frontmatter:

                def mark_done(data: dict) -> None:
                    set_task_status(data, STATUS_DONE)
                    set_sync_state(data, target_state)
                    data[KEY_LAST_IMPORTED_AT] = iso_timestamp()

                self._write_frontmatter(entry.path, post, mark_done)

            if needs_move:
                self.ensure_directory(self.archive_root)
                target = unique_file_path_in_folder(
                    self.archive_root, entry.path.name, current_path=entry.path
                )
                if target != entry.path:
                    self._move_note(entry.path, target)
                    logger.info("Archived %s -> %s", entry.path.name, target)
                    entry.path = target

            changed += 1

        return changed

    # --- Push: local changes going upstream ---

    def list_pending_local_creates(self) -> list[PendingLocalCreate]:
        """Sync-enabled notes that have no Todoist id yet."""
        pending: list[PendingLocalCreate] = []
        for path in self.iter_task_files():
            note = self.read_note(path)
            if note is None or not note.sync_enabled or note.todoist_id:
                continue
            if not note.title.strip():
                continue

            parent_path = self._resolve_parent_path(note)
            parent_id = None
            if parent_path is not None:
                parent_note = self.read_note(parent_path)
                parent_id = parent_note.todoist_id if parent_note else None

            pending.append(
                PendingLocalCreate(
                    note=note,
                    signature=note_sync_signature(note),
                    parent_id=parent_id,
                    parent_path=parent_path,
                )
            )
        return pending

    def mark_local_create_synced(self, path: Path, todoist_id: str, signature: str) -> None:
        """Record the id assigned by Todoist and the signature just pushed."""

        def mutate(data: dict) -> None:
            data[KEY_TODOIST_ID] = todoist_id
            set_sync_state(data, SyncState.SYNCED)
            data[KEY_SYNCED_SIGNATURE] = signature
            data[KEY_LAST_IMPORTED_AT] = iso_timestamp()

        self._update_frontmatter(path, mutate)

    def list_pending_local_updates(self) -> list[PendingLocalUpdate]:
        """``dirty_local`` notes with real changes since the last push.

        A dirty note whose signature still equals the last synced signature is
        a false positive: it is reverted to ``synced`` here and not returned.
        """
        pending: list[PendingLocalUpdate] = []
        for path in self.iter_task_files():
            note = self.read_note(path)
            if note is None or note.sync_state != SyncState.DIRTY_LOCAL.value:
                continue
            if not note.todoist_id or not note.title.strip():
                continue

            signature = note_sync_signature(note)
            if signature == note.last_synced_signature:
                self._update_frontmatter(path, _set_state(SyncState.SYNCED))
                logger.debug("Dirty flag without changes, reverted to synced: %s", path.name)
                continue

            pending.append(PendingLocalUpdate(note=note, signature=signature))
        return pending

    def mark_local_update_synced(self, path: Path, signature: str) -> None:
        """Record a successful push of local edits."""

        def mutate(data: dict) -> None:
            set_sync_state(data, SyncState.SYNCED)
            data[KEY_SYNCED_SIGNATURE] = signature
            data[KEY_LAST_IMPORTED_AT] = iso_timestamp()

        self._update_frontmatter(path, mutate)

    # --- Local edits ---

    def mark_note_dirty(self, path: Path) -> bool:
        """Flag a modified synced note as ``dirty_local``.

        Only applies to task-folder notes with sync enabled and a Todoist id
        that aren't already dirty or queued. Returns True if the note changed.
        """
        if path.suffix.lower() != ".md" or not path.exists() or not self.is_task_path(path):
            return False

        post = self._load_post(path)
        if post is None:
            return False
        metadata = post.metadata
        if not is_truthy(metadata.get(KEY_SYNC)) or not to_optional_id(metadata.get(KEY_TODOIST_ID)):
            return False
        if get_sync_state(metadata) in (
            SyncState.DIRTY_LOCAL.value,
            SyncState.QUEUED_LOCAL_CREATE.value,
        ):
            return False

        def mutate(data: dict) -> None:
            set_sync_state(data, SyncState.DIRTY_LOCAL)
            data[KEY_LOCAL_UPDATED_AT] = iso_timestamp()

        self._write_frontmatter(path, post, mutate)
        logger.debug("Marked dirty_local: %s", path.name)
        return True

    def detect_local_edits(self) -> int:
        """Flag synced notes whose content no longer matches the last sync.

        Returns the number of notes marked dirty.
        """
        marked = 0
        for path in self.iter_task_files():
            note = self.read_note(path)
            if note is None or not note.todoist_id or not note.sync_enabled:
                continue
            if note.sync_state != SyncState.SYNCED.value or not note.last_synced_signature:
                continue
            if note_sync_signature(note) != note.last_synced_signature and self.mark_note_dirty(
                path
            ):
                marked += 1
        if marked:
            logger.info("Detected %d locally edited task note(s)", marked)
        return marked

    def set_linked_task_status(
        self,
        link: str,
        is_done: bool,
        source_path: Path | None = None,
    ) -> Path | None:
        """Set a linked note's status (checkbox toggled on a linking line)."""
        target = resolve_link(self.vault_root, parse_wiki_link(link) or link, source_path)
        if target is None:
            return None

        def mutate(data: dict) -> None:
            set_task_status(data, STATUS_DONE if is_done else STATUS_OPEN)
            data[KEY_LOCAL_UPDATED_AT] = iso_timestamp()
            if to_optional_id(data.get(KEY_TODOIST_ID)):
                set_sync_state(data, SyncState.DIRTY_LOCAL)

        self._update_frontmatter(target, mutate)
        return target

    def create_local_task_note(self, task: LocalTaskNoteInput) -> Path:
        """Create a new task note from user input; returns its path."""
        self.ensure_directory()
        path = unique_file_path_in_folder(self.tasks_root, f"{task.title}.md")

        due_date = (task.due_date or "").strip()
        due_string = (task.due_string or "").strip()
        metadata: dict = {
            "task_status": STATUS_OPEN,
            "task_done": False,
            "created": format_created_date(),
            "modified": format_modified_date(),
            "tags": [normalize_tag(self.config.default_tag) or "tasks"],
            "links": [],
            "task_title": task.title,
        }
        parent_link = (task.parent_task_link or "").strip()
        if parent_link:
            if parse_wiki_link(parent_link) is None:
                parent_link = f"[[{parent_link}]]"
            metadata[KEY_PARENT_TASK] = parent_link
        metadata.update(
            {
                KEY_SYNC: task.todoist_sync,
                "todoist_project_name": (task.project_name or "").strip(),
                "todoist_section_name": (task.section_name or "").strip(),
                "todoist_due": due_date,
                "todoist_due_string": due_string,
                "todoist_is_recurring": bool(due_string),
                KEY_SYNC_STATUS: (
                    SyncState.QUEUED_LOCAL_CREATE if task.todoist_sync else SyncState.LOCAL_ONLY
                ).value,
                KEY_LOCAL_UPDATED_AT: iso_timestamp(),
            }
        )

        post = frontmatter.Post(task.description.strip())
        post.metadata = metadata
        self._write_post(path, post)
        logger.info("Created task note %s", path.name)
        return path

    def repair_malformed_signatures(self) -> int:
        """Blank malformed signature fields; returns the number of files fixed."""
        repaired = 0
        for path in self.iter_task_files():
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Failed to read %s: %s", path, e)
                continue
            fixed = repair_signature_frontmatter(content)
            if fixed != content:
                path.write_text(fixed, encoding="utf-8")
                logger.info("Repaired malformed signature in %s", path.name)
                repaired += 1
        return repaired

    # --- Private: create/update ---

    def _create_task_file(
        self,
        item: RemoteTask,
        project_name_by_id: dict[str, str],
        section_name_by_id: dict[str, str],
    ) -> tuple[UpsertResult, Path]:
        path = unique_task_file_path(self.tasks_root, item.content, item.id)

        metadata: dict = {
            "task_status": STATUS_DONE if item.checked else STATUS_OPEN,
            "task_done": item.checked,
            "created": format_created_date(),
            "modified": format_modified_date(),
            "tags": [normalize_tag(self.config.default_tag) or "tasks"],
            "links": [],
            "task_title": item.content,
            KEY_SYNC_STATUS: SyncState.SYNCED.value,
        }
        metadata.update(remote_frontmatter_fields(item, project_name_by_id, section_name_by_id))
        metadata.update(
            {
                KEY_IMPORTED_SIGNATURE: build_import_signature(
                    item, project_name_by_id, section_name_by_id
                ),
                KEY_SYNCED_SIGNATURE: remote_sync_signature(item),
                "todoist_has_children": False,
                "todoist_child_task_count": 0,
                "todoist_child_tasks": [],
                KEY_LAST_IMPORTED_AT: iso_timestamp(),
            }
        )

        post = frontmatter.Post((item.description or "").strip())
        post.metadata = metadata
        self._write_post(path, post)
        logger.debug("Created note for task %s: %s", item.id, path.name)
        return UpsertResult(created=1), path

    def _update_task_file(
        self,
        path: Path,
        item: RemoteTask,
        project_name_by_id: dict[str, str],
        section_name_by_id: dict[str, str],
    ) -> tuple[UpsertResult, Path]:
        post = self._load_post(path)
        if post is None:
            return UpsertResult(), path

        signature = build_import_signature(item, project_name_by_id, section_name_by_id)
        description = (item.description or "").strip()
        needs_backfill = not post.content.strip() and bool(description)

        if get_signature(post.metadata, KEY_IMPORTED_SIGNATURE) == signature and not needs_backfill:
            logger.debug("Unchanged, skipping: %s", path.name)
            return UpsertResult(), path

        def mutate(data: dict) -> None:
            set_task_title(data, item.content)
            set_task_status(data, STATUS_DONE if item.checked else STATUS_OPEN)
            data.update(remote_frontmatter_fields(item, project_name_by_id, section_name_by_id))
            data[KEY_IMPORTED_SIGNATURE] = signature
            data[KEY_SYNCED_SIGNATURE] = remote_sync_signature(item)
            set_sync_state(data, SyncState.SYNCED)
            data[KEY_LAST_IMPORTED_AT] = iso_timestamp()

        if needs_backfill:
            post.content = description
        self._write_frontmatter(path, post, mutate)
        logger.debug("Updated note for task %s: %s", item.id, path.name)

        path = self.rename_task_file_to_match_title(path, item.content)
        return UpsertResult(updated=1), path

    # --- Private: file access ---

    def _move_note(self, path: Path, target: Path) -> None:
        """Move a note and repoint links to it across the vault."""
        path.rename(target)
        rewritten = rewrite_links(self.vault_root, path, target)
        if rewritten:
            logger.debug("Updated links in %d note(s) after moving %s", rewritten, path.name)

    def _is_archived(self, path: Path) -> bool:
        return path.resolve().is_relative_to(self.archive_root.resolve())

    def _resolve_parent_path(self, note: TaskNote) -> Path | None:
        if not note.parent_link:
            return None
        return resolve_link(self.vault_root, note.parent_link, note.path)

    def _read_todoist_id(self, path: Path) -> str | None:
        post = self._load_post(path)
        if post is not None:
            todoist_id = to_optional_id(post.metadata.get(KEY_TODOIST_ID))
            if todoist_id:
                return todoist_id

        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return None
        match = TODOIST_ID_PATTERN.search(content)
        if match is None:
            return None
        return match.group(1).strip() or None

    def _load_post(self, path: Path) -> frontmatter.Post | None:
        try:
            return frontmatter.load(path)
        except Exception as e:
            logger.warning("Failed to parse task note %s: %s", path, e)
            return None

    def _write_post(self, path: Path, post: frontmatter.Post) -> None:
        # sort_keys=False preserves the key order users see
        with path.open("w", encoding="utf-8") as f:
            f.write(frontmatter.dumps(post, sort_keys=False))
            f.write("\n")

    def _write_frontmatter(
        self,
        path: Path,
        post: frontmatter.Post,
        mutate: FrontmatterMutator,
    ) -> None:
        """Merge computed fields into freshly read front matter and write back."""
        mutate(post.metadata)
        apply_standard_frontmatter(post.metadata, self.config.default_tag)
        self._write_post(path, post)

    def _update_frontmatter(self, path: Path, mutate: FrontmatterMutator) -> None:
        post = self._load_post(path)
        if post is None:
            return
        self._write_frontmatter(path, post, mutate)


def _set_field(key: str, value: object) -> FrontmatterMutator:
    def mutate(data: dict) -> None:
        data[key] = value

    return mutate


def _set_state(state: SyncState) -> FrontmatterMutator:
    def mutate(data: dict) -> None:
        set_sync_state(data, state)

    return mutate
