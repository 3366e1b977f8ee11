"""Configuration model for todoist-notes.yml."""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

MIN_SYNC_INTERVAL_MINUTES = 1
MAX_SYNC_INTERVAL_MINUTES = 120
DEFAULT_SYNC_INTERVAL_MINUTES = 5


class ArchiveMode(str, Enum):
    """What happens to a note whose Todoist task disappeared."""

    NONE = "none"  # Keep in place, flag missing_remote
    MOVE_TO_ARCHIVE_FOLDER = "move-to-archive-folder"  # Mark done and move
    MARK_LOCAL_DONE = "mark-local-done"  # Mark done in place


class ImportProjectScope(str, Enum):
    """Which Todoist projects auto-import pulls from."""

    ALL_PROJECTS = "all-projects"
    ALLOW_LIST_BY_NAME = "allow-list-by-name"


def normalize_sync_interval(value: float | int | None) -> int:
    """Round and clamp a sync interval into the supported minute range."""
    if value is None:
        return DEFAULT_SYNC_INTERVAL_MINUTES
    try:
        minutes = round(float(value))
    except (TypeError, ValueError, OverflowError):
        return DEFAULT_SYNC_INTERVAL_MINUTES
    return min(MAX_SYNC_INTERVAL_MINUTES, max(MIN_SYNC_INTERVAL_MINUTES, minutes))


def _validate_vault_folder(value: str, name: str) -> str:
    """Normalize a folder to a vault-relative path that stays inside the vault.

    Leading and trailing slashes are dropped, so "/Tasks/" reads as "Tasks".
    """
    value = value.strip().strip("/")
    if not value:
        raise ValueError(f"{name} cannot be empty")
    path = Path(value)
    if ".." in path.parts:
        raise ValueError(f"{name} must be within the vault")
    return path.as_posix()


class SyncConfig(BaseModel):
    """Root configuration from todoist-notes.yml."""

    version: int = 1

    # Local notes
    tasks_folder: str = Field(default="Tasks", description="Folder holding task notes")
    default_tag: str = Field(default="tasks", description="Tag added to every task note")
    auto_rename_task_files: bool = Field(
        default=True,
        description="Rename notes when the Todoist title changes",
    )

    # Missing remote tasks
    archive_mode: ArchiveMode = ArchiveMode.MOVE_TO_ARCHIVE_FOLDER
    archive_folder: str = Field(default="Tasks/_archive")

    # Auto-import scope
    auto_import_enabled: bool = True
    auto_import_project_scope: ImportProjectScope = ImportProjectScope.ALLOW_LIST_BY_NAME
    auto_import_allowed_project_names: str = Field(
        default="",
        description="Comma separated project names (allow-list scope only)",
    )
    auto_import_required_label: str = Field(default="obsidian")
    auto_import_assigned_to_me_only: bool = True

    # Scheduled sync
    auto_sync_enabled: bool = True
    auto_sync_interval_minutes: int = DEFAULT_SYNC_INTERVAL_MINUTES
    show_scheduled_sync_notices: bool = False

    @field_validator("tasks_folder")
    @classmethod
    def validate_tasks_folder(cls, v: str) -> str:
        """Validate tasks_folder is a vault-relative path."""
        return _validate_vault_folder(v, "tasks_folder")

    @field_validator("archive_folder")
    @classmethod
    def validate_archive_folder(cls, v: str) -> str:
        """Validate archive_folder is a vault-relative path."""
        return _validate_vault_folder(v, "archive_folder")

    @field_validator("auto_sync_interval_minutes", mode="before")
    @classmethod
    def clamp_interval(cls, v: object) -> int:
        """Clamp the interval into 1..120 minutes."""
        return normalize_sync_interval(v)  # type: ignore[arg-type]

    @field_validator("default_tag")
    @classmethod
    def strip_tag_marker(cls, v: str) -> str:
        """Store the default tag without leading '#'."""
        return v.strip().lstrip("#")

    @property
    def allowed_project_names(self) -> set[str]:
        """Lowercased allow-list entries."""
        return {
            name.strip().lower()
            for name in self.auto_import_allowed_project_names.split(",")
            if name.strip()
        }

    @classmethod
    def default(cls) -> "SyncConfig":
        """Return default configuration."""
        return cls()
