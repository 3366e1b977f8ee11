"""Inline ``key::value`` directives used when converting checklist lines."""

import re
from dataclasses import dataclass
from datetime import date, datetime

DIRECTIVE_PATTERN = re.compile(
    r"\b(proj|project|sec|section|due|recur|recurrence)::(?:\"([^\"]+)\"|(\S+))",
    re.IGNORECASE,
)
ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass
class ParsedTaskDirectives:
    """Title plus any directives found in a checklist line."""

    title: str
    project_name: str | None = None
    section_name: str | None = None
    due_raw: str | None = None
    recurrence_raw: str | None = None


def parse_inline_task_directives(raw_text: str) -> ParsedTaskDirectives:
    """Split directives out of ``raw_text``.

    Example:
        >>> parsed = parse_inline_task_directives('Pay rent proj::Home due::2024-06-01')
        >>> parsed.title, parsed.project_name, parsed.due_raw
        ('Pay rent', 'Home', '2024-06-01')
    """
    parsed = ParsedTaskDirectives(title="")

    for match in DIRECTIVE_PATTERN.finditer(raw_text):
        directive = match.group(1).lower()
        value = (match.group(2) or match.group(3) or "").strip()
        if not value:
            continue
        if directive in ("proj", "project"):
            parsed.project_name = value
        elif directive in ("sec", "section"):
            parsed.section_name = value
        elif directive == "due":
            parsed.due_raw = value
        else:
            parsed.recurrence_raw = value

    cleaned = DIRECTIVE_PATTERN.sub(" ", raw_text)
    parsed.title = re.sub(r"\s+", " ", cleaned).strip()
    return parsed


def resolve_due(due_raw: str | None) -> tuple[str | None, str | None]:
    """Classify a due value as ``(due_date, due_string)``.

    ``YYYY-MM-DD`` values are sent to Todoist as a date; anything else is
    free text for Todoist's natural-language parser.
    """
    due = (due_raw or "").strip()
    if not due:
        return None, None
    if ISO_DATE_PATTERN.match(due):
        return due, None
    return None, due


def format_due_for_display(due_raw: str, today: date | None = None) -> str:
    """Human-friendly due label: today/tomorrow/yesterday or ``Jun 1, 2024``."""
    trimmed = due_raw.strip()
    if not trimmed:
        return ""

    if ISO_DATE_PATTERN.match(trimmed):
        try:
            target = datetime.strptime(trimmed, "%Y-%m-%d").date()
        except ValueError:
            return trimmed
        today = today or date.today()
        delta = (target - today).days
        if delta == 0:
            return "today"
        if delta == 1:
            return "tomorrow"
        if delta == -1:
            return "yesterday"
        return f"{target.strftime('%b')} {target.day}, {target.year}"

    return trimmed
