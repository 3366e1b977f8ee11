"""Creating task notes by hand or from checklist lines."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import frontmatter

from ..models import LocalTaskNoteInput
from ..models.task import is_truthy, to_optional_string
from ..sync.checklist import sync_linked_checklist_states
from ..utils.directives import format_due_for_display, parse_inline_task_directives
from ..utils.links import link_target, parse_wiki_link, resolve_link

if TYPE_CHECKING:
    from ..repositories.task_notes import TaskNoteRepository

logger = logging.getLogger(__name__)

UNCHECKED_TASK_LINE = re.compile(r"^(\s*[-*+]\s+\[\s\]\s+)(.+)$")

SUMMARY_SEPARATOR = " \u2022 "  # •

# Notes created this session whose meta is kept for link summaries
RECENT_META_LIMIT = 50


@dataclass
class ConversionResult:
    """Outcome of converting a checklist line."""

    ok: bool
    message: str
    path: Path | None = None


@dataclass
class TaskMeta:
    """Remote attributes shown next to a link to a task note."""

    project_name: str = ""
    section_name: str = ""
    due_date: str = ""
    due_string: str = ""
    is_recurring: bool = False


def build_meta_summary(
    project_name: str = "",
    section_name: str = "",
    due_date: str = "",
    due_string: str = "",
    is_recurring: bool = False,
) -> str:
    """One-line summary such as ``📁 Home • 🔁 every monday • 📅 tomorrow``."""
    parts: list[str] = []
    if project_name:
        parts.append(f"\U0001f4c1 {project_name}")
    if section_name:
        parts.append(f"\U0001f9ed {section_name}")
    if is_recurring:
        parts.append(f"\U0001f501 {due_string or 'recurring'}")
        if due_date:
            parts.append(f"\U0001f4c5 {format_due_for_display(due_date)}")
    else:
        due_raw = due_string or due_date
        if due_raw:
            parts.append(f"\U0001f4c5 {format_due_for_display(due_raw)}")
    return SUMMARY_SEPARATOR.join(parts)


def normalize_task_text(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


class TaskNoteService:
    """Task note creation on top of the repository."""

    def __init__(self, repository: TaskNoteRepository) -> None:
        self._repository = repository
        # Meta for notes created in this session, until the note itself has it
        self._recent_meta: dict[str, TaskMeta] = {}

    @property
    def vault_root(self) -> Path:
        return self._repository.vault_root

    def create_task_note(self, task: LocalTaskNoteInput) -> Path:
        """Create a task note and remember its meta for link summaries."""
        path = self._repository.create_local_task_note(task)
        due_string = (task.due_string or "").strip()
        self._recent_meta[link_target(self.vault_root, path)] = TaskMeta(
            project_name=(task.project_name or "").strip(),
            section_name=(task.section_name or "").strip(),
            due_date=(task.due_date or "").strip(),
            due_string=due_string,
            is_recurring=bool(due_string),
        )
        while len(self._recent_meta) > RECENT_META_LIMIT:
            self._recent_meta.pop(next(iter(self._recent_meta)))
        return path

    def convert_checklist_line(self, note_path: Path, line_number: int) -> ConversionResult:
        """Turn an unchecked checklist line into a linked task note.

        ``line_number`` is 1-based. Inline directives (``proj::``, ``sec::``,
        ``due::``, ``recur::``) are applied to the new note and removed from
        its title; the line keeps its checkbox and becomes a link.
        """
        lines = note_path.read_text(encoding="utf-8").split("\n")
        index = line_number - 1
        if index < 0 or index >= len(lines):
            return ConversionResult(False, f"Line {line_number} is out of range.")

        match = UNCHECKED_TASK_LINE.match(lines[index])
        if match is None:
            return ConversionResult(False, "Line is not an unchecked checklist task.")

        parsed = parse_inline_task_directives(normalize_task_text(match.group(2)))
        if not parsed.title:
            return ConversionResult(False, "Task title is empty.")

        path = self.create_task_note(
            LocalTaskNoteInput(
                title=parsed.title,
                todoist_sync=True,
                project_name=parsed.project_name,
                section_name=parsed.section_name,
                due_date=parsed.due_raw,
                due_string=parsed.recurrence_raw,
            )
        )

        target = link_target(self.vault_root, path)
        lines[index] = f"{match.group(1)}[[{target}|{parsed.title}]]"
        note_path.write_text("\n".join(lines), encoding="utf-8")

        logger.info("Converted checklist line %d of %s to %s", line_number, note_path, path.name)
        return ConversionResult(True, f"Converted task to note: {path.stem}", path)

    def set_linked_task_status(
        self,
        link: str,
        is_done: bool,
        source_path: Path | None = None,
    ) -> Path | None:
        """Mark the note behind ``link`` done or open.

        Checklist lines linking to the note are refreshed right away. Returns
        the note's path, or None if the link doesn't resolve.
        """
        path = self._repository.set_linked_task_status(link, is_done, source_path)
        if path is not None:
            sync_linked_checklist_states(self.vault_root)
        return path

    def get_linked_task_meta_summary(self, link: str, source_path: Path | None = None) -> str:
        """Summary of the remote attributes of the note ``link`` points at."""
        target = parse_wiki_link(link) or link.strip()
        path = resolve_link(self.vault_root, target, source_path)
        if path is not None:
            meta = self._read_meta(path)
            if meta is not None:
                summary = build_meta_summary(
                    meta.project_name,
                    meta.section_name,
                    meta.due_date,
                    meta.due_string,
                    meta.is_recurring,
                )
                if summary:
                    self._recent_meta.pop(target, None)
                    return summary

        recent = self._recent_meta.get(target)
        if recent is None:
            return ""
        return build_meta_summary(
            recent.project_name,
            recent.section_name,
            recent.due_date,
            recent.due_string,
            recent.is_recurring,
        )

    def _read_meta(self, path: Path) -> TaskMeta | None:
        try:
            post = frontmatter.load(path)
        except Exception as e:
            logger.warning("Failed to parse linked note %s: %s", path, e)
            return None
        if not post.metadata:
            return None
        metadata = post.metadata
        return TaskMeta(
            project_name=to_optional_string(metadata.get("todoist_project_name")) or "",
            section_name=to_optional_string(metadata.get("todoist_section_name")) or "",
            due_date=to_optional_string(metadata.get("todoist_due")) or "",
            due_string=to_optional_string(metadata.get("todoist_due_string")) or "",
            is_recurring=is_truthy(metadata.get("todoist_is_recurring")),
        )
