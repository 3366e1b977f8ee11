"""Task note domain model and front matter conventions."""

from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from ..utils.datetime import format_created_date, format_modified_date
from ..utils.links import parse_wiki_link

STATUS_OPEN = "open"
STATUS_DONE = "done"

# Front matter keys
KEY_TITLE = "task_title"
KEY_STATUS = "task_status"
KEY_DONE = "task_done"
KEY_SYNC = "todoist_sync"
KEY_SYNC_STATUS = "todoist_sync_status"
KEY_TODOIST_ID = "todoist_id"
KEY_IMPORTED_SIGNATURE = "todoist_last_imported_signature"
KEY_SYNCED_SIGNATURE = "todoist_last_synced_signature"
KEY_PARENT_TASK = "parent_task"
KEY_LOCAL_UPDATED_AT = "local_updated_at"
KEY_LAST_IMPORTED_AT = "todoist_last_imported_at"

LEGACY_SYNC_STATUS = "sync_status"


class SyncState(str, Enum):
    """Relationship between a note and its Todoist task."""

    LOCAL_ONLY = "local_only"  # Never synced, sync disabled
    QUEUED_LOCAL_CREATE = "queued_local_create"  # Waiting to be created remotely
    SYNCED = "synced"  # Matches remote
    DIRTY_LOCAL = "dirty_local"  # Local edits pending push
    MISSING_REMOTE = "missing_remote"  # Gone remotely, left in place
    ARCHIVED_REMOTE = "archived_remote"  # Gone remotely, done and moved
    COMPLETED_REMOTE = "completed_remote"  # Gone remotely, done in place


# --- Front matter readers ---


def is_truthy(value: Any) -> bool:
    """True for ``True`` and the string ``"true"``."""
    return value is True or value == "true"


def to_optional_string(value: Any) -> str | None:
    """Trimmed non-empty string or None; unquoted YAML dates come back as ISO."""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def to_optional_id(value: Any) -> str | None:
    """Identifier as string; YAML may hand back unquoted ids as ints."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    return to_optional_string(value)


def to_optional_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def to_optional_bool(value: Any) -> bool | None:
    if value is True or value == "true":
        return True
    if value is False or value == "false":
        return False
    return None


def to_string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, str)]


def get_task_title(metadata: dict, fallback: str = "") -> str:
    """Title from ``task_title``, then legacy ``title``, then ``fallback``."""
    for key in (KEY_TITLE, "title"):
        value = metadata.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return fallback


def get_task_status(metadata: dict) -> str:
    """Resolve open/done, honouring the boolean mirror and legacy keys."""
    done = to_optional_bool(metadata.get(KEY_DONE))
    if done is not None:
        return STATUS_DONE if done else STATUS_OPEN

    status = metadata.get(KEY_STATUS)
    if isinstance(status, str) and status.strip().lower() in (STATUS_OPEN, STATUS_DONE):
        return status.strip().lower()

    if is_truthy(metadata.get("done")):
        return STATUS_DONE
    legacy = metadata.get("status")
    if isinstance(legacy, str) and legacy.strip().lower() == STATUS_DONE:
        return STATUS_DONE
    return STATUS_OPEN


def get_sync_state(metadata: dict) -> str:
    """Raw sync state string (legacy ``sync_status`` as fallback)."""
    for key in (KEY_SYNC_STATUS, LEGACY_SYNC_STATUS):
        value = metadata.get(key)
        if isinstance(value, str):
            return value
    return ""


def get_signature(metadata: dict, key: str) -> str:
    value = metadata.get(key)
    return value if isinstance(value, str) else ""


# --- Front matter writers ---


def set_task_title(metadata: dict, title: str) -> None:
    metadata[KEY_TITLE] = title
    metadata.pop("title", None)


def set_task_status(metadata: dict, status: str) -> None:
    """Write status and its boolean mirror, dropping legacy keys."""
    metadata[KEY_STATUS] = status
    metadata[KEY_DONE] = status == STATUS_DONE
    metadata.pop("status", None)
    metadata.pop("done", None)


def set_sync_state(metadata: dict, state: SyncState) -> None:
    metadata[KEY_SYNC_STATUS] = state.value
    metadata.pop(LEGACY_SYNC_STATUS, None)


def normalize_tag(value: str | None) -> str | None:
    trimmed = (value or "").strip()
    if not trimmed:
        return None
    return trimmed.lstrip("#") or None


def normalize_tags(value: Any) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    tags = []
    for entry in value:
        tag = normalize_tag(entry) if isinstance(entry, str) else None
        if tag:
            tags.append(tag)
    return tags


def apply_standard_frontmatter(metadata: dict, default_tag: str | None) -> None:
    """Fields every task note carries; applied on each engine write.

    Sets ``created`` when missing, refreshes ``modified``, makes sure the
    default tag is present and ``links`` exists.
    """
    created = metadata.get("created")
    if not isinstance(created, (date, datetime)) and not (
        isinstance(created, str) and created.strip()
    ):
        metadata["created"] = format_created_date()
    metadata["modified"] = format_modified_date()

    tags = normalize_tags(metadata.get("tags"))
    tag = normalize_tag(default_tag)
    if tag and tag not in tags:
        tags.insert(0, tag)
    metadata["tags"] = tags

    if not isinstance(metadata.get("links"), list):
        metadata["links"] = []


def remote_frontmatter_fields(
    task: Any,
    project_name_by_id: dict[str, str],
    section_name_by_id: dict[str, str],
) -> dict[str, Any]:
    """Map a ``RemoteTask`` onto front matter values.

    This is the single place where optional remote attributes become
    empty-string sentinels.
    """
    return {
        KEY_SYNC: True,
        KEY_TODOIST_ID: task.id,
        "todoist_project_id": task.project_id,
        "todoist_project_name": project_name_by_id.get(task.project_id, "Unknown"),
        "todoist_section_id": task.section_id or "",
        "todoist_section_name": (
            section_name_by_id.get(task.section_id, "") if task.section_id else ""
        ),
        "todoist_priority": task.priority if task.priority is not None else 1,
        "todoist_due": task.due_date or "",
        "todoist_due_string": task.due_string or "",
        "todoist_is_recurring": task.is_recurring,
        "todoist_labels": list(task.labels),
        "todoist_parent_id": task.parent_id or "",
    }


class TaskNote(BaseModel):
    """A task note as read from disk."""

    path: Path
    title: str
    description: str = ""
    status: str = STATUS_OPEN
    sync_enabled: bool = False
    sync_state: str = ""
    todoist_id: str | None = None

    # Mirrored remote attributes
    project_id: str | None = None
    project_name: str | None = None
    section_id: str | None = None
    section_name: str | None = None
    priority: int | None = None
    due_date: str | None = None
    due_string: str | None = None
    is_recurring: bool = False
    labels: list[str] = Field(default_factory=list)
    parent_id: str | None = None
    parent_link: str | None = None

    # Fingerprints
    last_imported_signature: str = ""
    last_synced_signature: str = ""

    @property
    def is_done(self) -> bool:
        return self.status == STATUS_DONE

    @classmethod
    def from_frontmatter(cls, path: Path, metadata: dict, body: str) -> "TaskNote":
        """Create TaskNote from parsed front matter; optional fields read as None."""
        parent_link = to_optional_string(metadata.get(KEY_PARENT_TASK))
        return cls(
            path=path,
            title=get_task_title(metadata, path.stem),
            description=body.strip(),
            status=get_task_status(metadata),
            sync_enabled=is_truthy(metadata.get(KEY_SYNC)),
            sync_state=get_sync_state(metadata),
            todoist_id=to_optional_id(metadata.get(KEY_TODOIST_ID)),
            project_id=to_optional_id(metadata.get("todoist_project_id")),
            project_name=to_optional_string(metadata.get("todoist_project_name")),
            section_id=to_optional_id(metadata.get("todoist_section_id")),
            section_name=to_optional_string(metadata.get("todoist_section_name")),
            priority=to_optional_int(metadata.get("todoist_priority")),
            due_date=to_optional_string(metadata.get("todoist_due")),
            due_string=to_optional_string(metadata.get("todoist_due_string")),
            is_recurring=is_truthy(metadata.get("todoist_is_recurring")),
            labels=to_string_list(metadata.get("todoist_labels")),
            parent_id=to_optional_id(metadata.get("todoist_parent_id")),
            parent_link=parse_wiki_link(parent_link) if parent_link else None,
            last_imported_signature=get_signature(metadata, KEY_IMPORTED_SIGNATURE),
            last_synced_signature=get_signature(metadata, KEY_SYNCED_SIGNATURE),
        )


class LocalTaskNoteInput(BaseModel):
    """Fields collected when creating a task note locally."""

    title: str
    description: str = ""
    parent_task_link: str | None = None
    todoist_sync: bool = True
    project_name: str | None = None
    section_name: str | None = None
    due_date: str | None = None
    due_string: str | None = None
