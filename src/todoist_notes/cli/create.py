"""Commands that work on task notes locally."""

import logging
from pathlib import Path

from pydantic import ValidationError

from ..models import LocalTaskNoteInput
from ..repositories.task_notes import TaskNoteRepository
from ..services.config_service import ConfigService
from ..services.task_note_service import TaskNoteService
from ..utils.links import parse_wiki_link, resolve_link
from .output import detail, error, header, info, success

logger = logging.getLogger(__name__)


def _task_note_service(vault_root: Path) -> TaskNoteService:
    config = ConfigService(vault_root).get_config()
    return TaskNoteService(TaskNoteRepository(vault_root, config))


def run_create(
    vault_root: Path,
    title: str,
    description: str = "",
    parent: str | None = None,
    project: str | None = None,
    section: str | None = None,
    due: str | None = None,
    recur: str | None = None,
    sync: bool = True,
) -> int:
    """Create a task note.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    if not title.strip():
        error("Task title is empty.")
        return 1

    try:
        task = LocalTaskNoteInput(
            title=title.strip(),
            description=description,
            parent_task_link=parent,
            todoist_sync=sync,
            project_name=project,
            section_name=section,
            due_date=due,
            due_string=recur,
        )
        path = _task_note_service(vault_root).create_task_note(task)
    except (ValidationError, OSError) as e:
        error(f"Failed to create task note: {e}")
        return 1

    success(f"Created task note: {path}")
    if sync:
        info("It will be created in Todoist on the next sync")
    return 0


def _note_path(vault_root: Path, note: Path) -> Path:
    return note if note.is_absolute() else vault_root / note


def run_convert(vault_root: Path, note: Path, line_number: int) -> int:
    """Convert a checklist line in ``note`` to a task note.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    note_path = _note_path(vault_root, note)
    if not note_path.is_file():
        error(f"Note not found: {note_path}")
        return 1

    try:
        result = _task_note_service(vault_root).convert_checklist_line(note_path, line_number)
    except (OSError, UnicodeDecodeError) as e:
        error(f"Task conversion failed: {e}")
        return 1

    if not result.ok:
        error(result.message)
        return 1
    success(result.message)
    return 0


def run_toggle(vault_root: Path, link: str, done: bool, source: Path | None = None) -> int:
    """Mark the task note behind ``link`` done or open.

    ``source`` is the note containing the link, used to resolve relative links.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    source_path = _note_path(vault_root, source) if source is not None else None
    try:
        path = _task_note_service(vault_root).set_linked_task_status(link, done, source_path)
    except (OSError, UnicodeDecodeError) as e:
        error(f"Failed to update task note: {e}")
        return 1

    if path is None:
        error(f"Task note not found: {link}")
        return 1
    success(f"Marked {path.stem} as {'done' if done else 'open'}")
    return 0


def run_show(vault_root: Path, link: str) -> int:
    """Print the Todoist project, section and due date of a linked task note.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    path = resolve_link(vault_root, parse_wiki_link(link) or link.strip())
    if path is None:
        error(f"Task note not found: {link}")
        return 1

    summary = _task_note_service(vault_root).get_linked_task_meta_summary(link)
    header(path.stem)
    detail(str(path.relative_to(vault_root)))
    info(summary or "No project, section or due date")
    return 0
