"""Wiki-link helpers for notes addressed relative to the vault root."""

import logging
import re
from collections.abc import Iterator
from pathlib import Path

logger = logging.getLogger(__name__)

WIKI_LINK_PATTERN = re.compile(r"^\[\[([^\]|]+)(?:\|([^\]]+))?\]\]$")


def vault_relative(vault_root: Path, path: Path) -> str:
    """POSIX path of ``path`` relative to the vault root."""
    return path.relative_to(vault_root).as_posix()


def link_target(vault_root: Path, path: Path) -> str:
    """Link target for a note: vault-relative path without the .md suffix."""
    relative = vault_relative(vault_root, path)
    if relative.lower().endswith(".md"):
        relative = relative[:-3]
    return relative


def to_wiki_link(vault_root: Path, path: Path, alias: str | None = None) -> str:
    """Render ``[[target]]`` or ``[[target|alias]]`` for a note."""
    target = link_target(vault_root, path)
    if alias and alias.strip():
        return f"[[{target}|{alias.strip()}]]"
    return f"[[{target}]]"


def parse_wiki_link(value: str) -> str | None:
    """Extract the target from a ``[[target|alias]]`` string, if it is one."""
    match = WIKI_LINK_PATTERN.match(value.strip())
    if not match:
        return None
    return match.group(1).strip()


def resolve_link(vault_root: Path, target: str, source_path: Path | None = None) -> Path | None:
    """Resolve a wiki-link target to a Markdown file inside the vault.

    Lookup order: exact vault-relative path, path relative to the linking
    note's folder, then the first note (in sorted order) whose path ends with
    the target.
    """
    target = target.split("#", 1)[0].strip()
    if not target:
        return None

    filename = target if target.lower().endswith(".md") else f"{target}.md"

    candidates = [vault_root / filename]
    if source_path is not None:
        candidates.append(source_path.parent / filename)
    for candidate in candidates:
        if candidate.is_file():
            return candidate

    suffix = "/" + filename.lower()
    for path in sorted(vault_root.rglob("*.md")):
        relative = "/" + vault_relative(vault_root, path).lower()
        if relative.endswith(suffix):
            return path
    return None


def iter_vault_notes(vault_root: Path) -> Iterator[Path]:
    """All Markdown files in the vault, skipping hidden folders."""
    for path in sorted(vault_root.rglob("*.md")):
        relative = path.relative_to(vault_root)
        if any(part.startswith(".") for part in relative.parts[:-1]):
            continue
        yield path


def rewrite_links(vault_root: Path, old_path: Path, new_path: Path) -> int:
    """Point every wiki link to ``old_path`` at ``new_path`` after a move.

    Both the full vault-relative form (``[[Tasks/Buy milk|...]]``) and, when
    the file name changed, the bare name form (``[[Buy milk]]``) are
    rewritten, in front matter and body alike. Returns the number of files
    changed.
    """
    replacements = {link_target(vault_root, old_path): link_target(vault_root, new_path)}
    if old_path.stem != new_path.stem:
        replacements.setdefault(old_path.stem, new_path.stem)

    # Longest target first so "Tasks/A" wins over "A"
    alternatives = sorted(replacements, key=len, reverse=True)
    pattern = re.compile(
        r"\[\[(" + "|".join(re.escape(target) for target in alternatives) + r")(?=[\]|#])"
    )

    changed = 0
    for path in iter_vault_notes(vault_root):
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read %s: %s", path, e)
            continue

        updated = pattern.sub(lambda m: f"[[{replacements[m.group(1)]}", content)
        if updated != content:
            path.write_text(updated, encoding="utf-8")
            logger.debug("Rewrote links to %s in %s", new_path.name, path.name)
            changed += 1
    return changed
