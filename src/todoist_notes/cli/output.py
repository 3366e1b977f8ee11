"""Terminal output helpers for CLI commands."""

import sys

from ..models import SyncRunResult

GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
RED = "\033[31m"
DIM = "\033[2m"
RESET = "\033[0m"
CHECK = "\u2713"
BULLET = "\u2022"
CROSS = "\u2717"


def _supports_color() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _colorize(text: str, color: str) -> str:
    if _supports_color():
        return f"{color}{text}{RESET}"
    return text


def success(message: str) -> None:
    """Print success message with green checkmark."""
    print(f"{_colorize(CHECK, GREEN)} {message}")


def info(message: str) -> None:
    """Print info message with yellow bullet."""
    print(f"{_colorize(BULLET, YELLOW)} {message}")


def header(message: str) -> None:
    print(_colorize(message, BLUE))


def error(message: str) -> None:
    """Print error message with red cross."""
    print(f"{_colorize(CROSS, RED)} {message}")


def detail(message: str) -> None:
    """Indented, dimmed secondary line."""
    print(f"  {_colorize(message, DIM)}")


def sync_result(result: SyncRunResult) -> None:
    """Report a sync run: the message plus non-zero housekeeping counts."""
    if not result.ok:
        error(result.message)
        return
    if result.queued:
        info(result.message)
        return

    success(result.message)
    if result.repaired_signatures:
        detail(f"Repaired {result.repaired_signatures} malformed signature(s)")
