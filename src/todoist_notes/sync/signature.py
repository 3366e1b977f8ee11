"""Signatures: short digests over the fields that matter for sync.

Two signatures are persisted per note:

- ``todoist_last_imported_signature`` covers the remote task as last written
  locally, including display names, so an unchanged import can be skipped.
- ``todoist_last_synced_signature`` covers the local content last pushed or
  confirmed, so a note flagged dirty without a real change can be healed.
"""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..models import RemoteTask, TaskNote

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193
SIGNATURE_PATTERN = re.compile(r"^[0-9a-f]{8}$")

SIGNATURE_KEYS = (
    "todoist_last_imported_signature",
    "todoist_last_synced_signature",
)

_FRONTMATTER_BLOCK = re.compile(r"\A---\n.*?\n---", re.DOTALL)


def stable_hash(value: str) -> str:
    """32-bit FNV-1a over UTF-16 code units, as 8 lowercase hex digits."""
    digest = FNV_OFFSET_BASIS
    data = value.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(data), 2):
        digest ^= data[i] | (data[i + 1] << 8)
        digest = (digest * FNV_PRIME) & 0xFFFFFFFF
    return f"{digest:08x}"


def _hash_fields(fields: list) -> str:
    return stable_hash(json.dumps(fields, ensure_ascii=False, separators=(",", ":")))


def build_sync_signature(
    *,
    title: str,
    description: str,
    is_done: bool,
    is_recurring: bool,
    project_id: str | None = None,
    section_id: str | None = None,
    due_date: str | None = None,
    due_string: str | None = None,
) -> str:
    """Signature of the locally editable task state."""
    return _hash_fields(
        [
            title.strip(),
            description.strip(),
            1 if is_done else 0,
            1 if is_recurring else 0,
            (project_id or "").strip(),
            (section_id or "").strip(),
            (due_date or "").strip(),
            (due_string or "").strip(),
        ]
    )


def note_sync_signature(note: TaskNote) -> str:
    """Sync signature computed from a note on disk."""
    return build_sync_signature(
        title=note.title,
        description=note.description,
        is_done=note.is_done,
        is_recurring=note.is_recurring,
        project_id=note.project_id,
        section_id=note.section_id,
        due_date=note.due_date,
        due_string=note.due_string,
    )


def remote_sync_signature(task: RemoteTask) -> str:
    """Sync signature of a remote task, as it will look once written locally."""
    return build_sync_signature(
        title=task.content,
        description=task.description or "",
        is_done=task.checked,
        is_recurring=task.is_recurring,
        project_id=task.project_id,
        section_id=task.section_id,
        due_date=task.due_date,
        due_string=task.due_string,
    )


def build_import_signature(
    task: RemoteTask,
    project_name_by_id: dict[str, str],
    section_name_by_id: dict[str, str],
) -> str:
    """Signature of everything an import writes into front matter."""
    return _hash_fields(
        [
            task.content,
            task.description or "",
            1 if task.checked else 0,
            task.project_id,
            project_name_by_id.get(task.project_id, "Unknown"),
            task.section_id or "",
            section_name_by_id.get(task.section_id, "") if task.section_id else "",
            task.priority if task.priority is not None else 1,
            task.due_date or "",
            task.due_string or "",
            1 if task.is_recurring else 0,
            task.parent_id or "",
            "|".join(task.labels),
        ]
    )


def is_valid_signature(value: str) -> bool:
    return SIGNATURE_PATTERN.match(value) is not None


def _signature_line_pattern(key: str) -> re.Pattern[str]:
    return re.compile(
        rf"^\s*{re.escape(key)}:\s*(?:\"[0-9a-f]{{8}}\"|'[0-9a-f]{{8}}'|[0-9a-f]{{8}}|\"\"|'')?\s*$",
        re.IGNORECASE,
    )


_KEY_PATTERNS = {key: re.compile(rf"^\s*{re.escape(key)}:") for key in SIGNATURE_KEYS}
_VALID_LINE_PATTERNS = {key: _signature_line_pattern(key) for key in SIGNATURE_KEYS}


def repair_signature_frontmatter(content: str) -> str:
    """Blank out signature lines that don't hold a well-formed digest.

    Works on the raw text so values YAML cannot parse are repaired too. Returns
    ``content`` unchanged when nothing needed fixing.
    """
    match = _FRONTMATTER_BLOCK.match(content)
    if not match:
        return content

    original = match.group(0)
    changed = False
    fixed_lines = []
    for line in original.split("\n"):
        for key in SIGNATURE_KEYS:
            if _KEY_PATTERNS[key].match(line) and not _VALID_LINE_PATTERNS[key].match(line):
                line = f'{key}: ""'
                changed = True
                break
        fixed_lines.append(line)

    if not changed:
        return content
    return "\n".join(fixed_lines) + content[len(original) :]
