"""Bidirectional sync between Markdown task notes and Todoist."""

__version__ = "0.1.0"
