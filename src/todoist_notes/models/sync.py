"""Sync bookkeeping data models."""

from dataclasses import dataclass, field
from pathlib import Path

from .task import TaskNote


@dataclass
class SyncedTaskEntry:
    """A note in the task folder that carries a Todoist id."""

    todoist_id: str
    path: Path


@dataclass(frozen=True)
class ParentAssignment:
    """Child/parent relation observed in the remote snapshot."""

    child_todoist_id: str
    parent_todoist_id: str


@dataclass
class UpsertResult:
    """Counts from materializing remote tasks locally."""

    created: int = 0
    updated: int = 0


@dataclass
class PendingLocalCreate:
    """A sync-enabled note without a Todoist id."""

    note: TaskNote
    signature: str  # Local sync signature at the time of listing
    parent_id: str | None = None  # Resolved from the parent_task link, if any
    parent_path: Path | None = None  # Note the parent_task link points at


@dataclass
class PendingLocalUpdate:
    """A ``dirty_local`` note whose content differs from the last push."""

    note: TaskNote
    signature: str

    @property
    def todoist_id(self) -> str:
        # Only notes with an id are listed as pending updates
        return self.note.todoist_id or ""


@dataclass
class SyncRunResult:
    """Outcome of one sync run.

    Counts reflect the steps that completed, also when ``ok`` is False.
    """

    ok: bool = True
    message: str = ""
    imported: int = 0  # Importable tasks including ancestors
    ancestors: int = 0
    created: int = 0  # Notes created from Todoist
    updated: int = 0  # Notes updated from Todoist
    pushed_creates: int = 0
    pushed_updates: int = 0
    missing_handled: int = 0
    linked_checklist_updates: int = 0
    repaired_signatures: int = 0
    queued: bool = False  # Coalesced into a follow-up run
    errors: list[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        """Whether the run failed."""
        return not self.ok

    def summary(self) -> str:
        """Human-readable summary of a successful run."""
        return (
            f"Synced {self.imported - self.ancestors} importable task(s) "
            f"(+{self.ancestors} ancestors): "
            f"{self.pushed_creates} created remotely, "
            f"{self.pushed_updates} updates pushed, "
            f"{self.created} created, "
            f"{self.updated} updated, "
            f"{self.missing_handled} missing handled, "
            f"{self.linked_checklist_updates} checklist lines refreshed."
        )
