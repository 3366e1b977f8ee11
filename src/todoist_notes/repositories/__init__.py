"""Repository layer for data access."""

from .task_notes import TaskNoteRepository

__all__ = [
    "TaskNoteRepository",
]
