"""Utilities for generating filesystem-safe note names."""

import re
from pathlib import Path

MAX_BASENAME_LENGTH = 80

_UNSAFE_CHARS = re.compile(r'[\\/:*?"<>|]')
_WHITESPACE = re.compile(r"\s+")


def sanitize_file_name(text: str) -> str:
    """
    Convert a task title to a filesystem-safe base name.

    Unlike a slug, case and spacing are preserved so the note name reads like
    the title.

    Example: 'Call "Bob" re: taxes?' -> "Call Bob re taxes"
    """
    text = _UNSAFE_CHARS.sub(" ", text)
    text = _WHITESPACE.sub(" ", text).strip()
    return text[:MAX_BASENAME_LENGTH].strip()


def unique_task_file_path(folder: Path, title: str, todoist_id: str) -> Path:
    """Path for a newly imported task note.

    Falls back to ``Task-<id>`` for titles that sanitize to nothing and appends
    the Todoist id when the preferred name is taken.
    """
    base = sanitize_file_name(title) or f"Task-{todoist_id}"
    candidate = folder / f"{base}.md"
    if not candidate.exists():
        return candidate
    return unique_file_path_in_folder(folder, f"{base}-{todoist_id}.md")


def unique_file_path_in_folder(
    folder: Path,
    preferred_name: str,
    current_path: Path | None = None,
) -> Path:
    """Find a free path for ``preferred_name`` inside ``folder``.

    Collisions are resolved with ``-2``, ``-3``, ... suffixes. A candidate equal
    to ``current_path`` counts as free, so renaming a note to its own name is a
    no-op.
    """
    stem = preferred_name[:-3] if preferred_name.lower().endswith(".md") else preferred_name
    base = sanitize_file_name(stem) or "Task"

    candidate = folder / f"{base}.md"
    if not candidate.exists() or _same_path(candidate, current_path):
        return candidate

    suffix = 2
    while True:
        candidate = folder / f"{base}-{suffix}.md"
        if not candidate.exists() or _same_path(candidate, current_path):
            return candidate
        suffix += 1


def _same_path(candidate: Path, current_path: Path | None) -> bool:
    if current_path is None:
        return False
    return candidate.resolve() == current_path.resolve()
