"""Todoist sync API client."""

from .client import (
    TodoistAuthError,
    TodoistClient,
    TodoistClientError,
    TodoistCommandError,
    build_due_object,
)

__all__ = [
    "TodoistAuthError",
    "TodoistClient",
    "TodoistClientError",
    "TodoistCommandError",
    "build_due_object",
]
