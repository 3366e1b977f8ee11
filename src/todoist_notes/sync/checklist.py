"""Keep checklist lines that link to task notes in step with the notes."""

from __future__ import annotations

import logging
import re
from pathlib import Path

import frontmatter

from ..models.task import STATUS_DONE, get_task_status
from ..utils.links import iter_vault_notes, resolve_link

logger = logging.getLogger(__name__)

# "- [ ] [[Tasks/Pay rent|Pay rent]]" with nothing else on the line
LINKED_CHECKLIST_LINE = re.compile(
    r"^(\s*[-*+]\s+)\[([ xX])\]\s+\[\[([^\]|]+)(?:\|([^\]]+))?\]\](\s*)$"
)


def sync_linked_checklist_states(vault_root: Path) -> int:
    """Rewrite checkbox marks to match the linked note's status.

    The linked note is authoritative. Only lines whose mark differs are
    touched. Returns the number of changed lines.
    """
    status_cache: dict[Path, str | None] = {}
    changed_lines = 0

    for path in iter_vault_notes(vault_root):
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read %s: %s", path, e)
            continue

        lines = content.split("\n")
        file_changed = False

        for i, line in enumerate(lines):
            match = LINKED_CHECKLIST_LINE.match(line)
            if match is None:
                continue

            prefix, mark, target, alias, trailing = match.groups()
            if not target.strip():
                continue

            linked = resolve_link(vault_root, target.strip(), path)
            if linked is None:
                continue
            if linked not in status_cache:
                status_cache[linked] = _linked_task_status(linked)
            status = status_cache[linked]
            if status is None:
                continue

            should_be_checked = status == STATUS_DONE
            if (mark.lower() == "x") == should_be_checked:
                continue

            link = f"[[{target}|{alias}]]" if alias else f"[[{target}]]"
            lines[i] = f"{prefix}[{'x' if should_be_checked else ' '}] {link}{trailing}"
            file_changed = True
            changed_lines += 1

        if file_changed:
            path.write_text("\n".join(lines), encoding="utf-8")
            logger.debug("Refreshed linked checklist lines in %s", path.name)

    return changed_lines


def _linked_task_status(path: Path) -> str | None:
    """Status of a linked note, or None when it has no front matter."""
    try:
        post = frontmatter.load(path)
    except Exception as e:
        logger.warning("Failed to parse linked note %s: %s", path, e)
        return None
    if not post.metadata:
        return None
    return get_task_status(post.metadata)
