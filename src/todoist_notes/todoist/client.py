"""Todoist sync API client."""

from __future__ import annotations

import json
import logging
import os
import time
import uuid
from typing import Any

import httpx

from ..models import (
    CreateTaskInput,
    ProjectSectionLookup,
    RemoteDue,
    RemoteProject,
    RemoteSection,
    RemoteTask,
    SyncSnapshot,
    UpdateTaskInput,
)

logger = logging.getLogger(__name__)

SYNC_URL = "https://api.todoist.com/api/v1/sync"
DEFAULT_TOKEN_ENV_VAR = "TODOIST_API_TOKEN"
AUTH_FAILED_MESSAGE = "Todoist authentication failed. Check your token."


class TodoistClientError(Exception):
    """Base exception for Todoist client errors."""

    pass


class TodoistAuthError(TodoistClientError):
    """Authentication failed or no token configured."""

    pass


class TodoistCommandError(TodoistClientError):
    """A command in a batch was not acknowledged with ``ok``."""

    def __init__(self, stage: str, status: Any = None) -> None:
        self.stage = stage
        self.status = status
        super().__init__(f"Todoist {stage} command failed.")


class TodoistClient:
    """Client for the Todoist sync endpoint.

    Reads are resource-type requests with ``sync_token=*``; writes are batches
    of typed commands, each acknowledged independently in ``sync_status``.
    """

    def __init__(self, token: str, sync_url: str = SYNC_URL, timeout: float = 30.0):
        """Initialize the Todoist client.

        Args:
            token: Todoist API token
            sync_url: Sync endpoint URL
            timeout: Transport timeout in seconds
        """
        self.token = token
        self.sync_url = sync_url
        self._client = httpx.Client(
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> TodoistClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    @classmethod
    def from_environment(cls, env_var: str = DEFAULT_TOKEN_ENV_VAR) -> TodoistClient:
        """Create a client from the token stored in ``env_var``.

        Raises:
            TodoistAuthError: If the variable is unset or blank
        """
        token = (os.environ.get(env_var) or "").strip()
        if not token:
            logger.error("No Todoist token in %s", env_var)
            raise TodoistAuthError("No todoist API token is configured.")
        logger.debug("Using token from %s environment variable", env_var)
        return cls(token)

    # --- Public API ---

    def test_connection(self) -> tuple[bool, str]:
        """Check the token against the user endpoint. Returns ``(ok, message)``; never raises."""
        try:
            self._sync(["user"], operation="connection check")
        except TodoistAuthError:
            return False, AUTH_FAILED_MESSAGE
        except TodoistClientError as e:
            return False, str(e)
        return True, "Todoist connection successful."

    def fetch_sync_snapshot(self) -> SyncSnapshot:
        """Fetch user, projects, sections and items."""
        payload = self._sync(["user", "projects", "sections", "items"], operation="sync")
        user = payload.get("user") or {}
        user_id = user.get("id") if isinstance(user, dict) else None
        snapshot = SyncSnapshot(
            user_id=None if user_id is None else str(user_id),
            items=normalize_items(payload.get("items") or []),
            projects=normalize_projects(payload.get("projects") or []),
            sections=normalize_sections(payload.get("sections") or []),
        )
        logger.info(
            "Fetched snapshot: %d items, %d projects, %d sections",
            len(snapshot.items),
            len(snapshot.projects),
            len(snapshot.sections),
        )
        return snapshot

    def fetch_project_section_lookup(self) -> ProjectSectionLookup:
        """Fetch projects and sections only."""
        payload = self._sync(["projects", "sections"], operation="project lookup")
        return ProjectSectionLookup(
            projects=normalize_projects(payload.get("projects") or []),
            sections=normalize_sections(payload.get("sections") or []),
        )

    def create_task(self, task: CreateTaskInput) -> str:
        """Create a task and return its Todoist id.

        Raises:
            TodoistCommandError: The command was not acknowledged
            TodoistClientError: The response carried no id for the temp id
        """
        args: dict[str, Any] = {"content": task.content}
        if task.description and task.description.strip():
            args["description"] = task.description.strip()
        if task.project_id:
            args["project_id"] = task.project_id
        if task.section_id:
            args["section_id"] = task.section_id
        if task.parent_id:
            args["parent_id"] = task.parent_id
        if task.priority is not None:
            args["priority"] = task.priority
        if task.labels:
            args["labels"] = task.labels
        due = build_due_object(task.due_date, task.due_string)
        if due:
            args["due"] = due

        temp_id = _new_uuid()
        command = {"type": "item_add", "uuid": _new_uuid(), "temp_id": temp_id, "args": args}

        payload = self._send_commands([(command, "create")], operation="create task")

        mapped_id = (payload.get("temp_id_mapping") or {}).get(temp_id)
        if not mapped_id:
            raise TodoistClientError("Todoist create task response did not include a task ID.")
        logger.info("Created Todoist task %s", mapped_id)
        return str(mapped_id)

    def close_task(self, task_id: str) -> None:
        """Mark a task completed."""
        command = {"type": "item_close", "uuid": _new_uuid(), "args": {"id": task_id}}
        self._send_commands([(command, "close")], operation="close task")
        logger.info("Closed Todoist task %s", task_id)

    def update_task(self, task: UpdateTaskInput) -> None:
        """Push content/metadata, then set completion, in one batch.

        Completing a recurring task must not carry a due payload: Todoist
        would treat it as a reschedule instead of advancing the recurrence.
        """
        recurring_completion = task.is_done and task.is_recurring
        args: dict[str, Any] = {
            "id": task.id,
            "content": task.content,
            "description": task.description or "",
        }
        if task.project_id:
            args["project_id"] = task.project_id
        if task.section_id:
            args["section_id"] = task.section_id
        if not recurring_completion:
            due = build_due_object(task.due_date, task.due_string)
            if due:
                args["due"] = due
            elif task.clear_due:
                args["due"] = None

        update_command = {"type": "item_update", "uuid": _new_uuid(), "args": args}
        status_stage = "close" if task.is_done else "uncomplete"
        status_command = {
            "type": "item_close" if task.is_done else "item_uncomplete",
            "uuid": _new_uuid(),
            "args": {"id": task.id},
        }

        self._send_commands(
            [(update_command, "update"), (status_command, status_stage)],
            operation="update task",
        )
        logger.info("Updated Todoist task %s (%s)", task.id, status_stage)

    # --- Internal: transport ---

    def _sync(self, resource_types: list[str], operation: str) -> dict[str, Any]:
        return self._post(
            {"sync_token": "*", "resource_types": json.dumps(resource_types)},
            operation,
        )

    def _send_commands(
        self,
        batch: list[tuple[dict[str, Any], str]],
        operation: str,
    ) -> dict[str, Any]:
        """Post ``(command, stage)`` pairs and check each acknowledgement in order."""
        payload = self._post(
            {
                "sync_token": "*",
                "resource_types": json.dumps(["items"]),
                "commands": json.dumps([command for command, _ in batch]),
            },
            operation,
        )
        sync_status = payload.get("sync_status") or {}
        for command, stage in batch:
            status = sync_status.get(command["uuid"])
            if status != "ok":
                logger.error("Todoist %s command not acknowledged: %s", stage, status)
                raise TodoistCommandError(stage, status)
        return payload

    def _post(self, data: dict[str, str], operation: str) -> dict[str, Any]:
        """POST a form-encoded body to the sync endpoint.

        Raises:
            TodoistAuthError: 401/403 response
            TodoistClientError: Network failure, other non-200 status, bad JSON
        """
        logger.debug("Todoist %s: fields=%s", operation, sorted(data))

        start_time = time.monotonic()
        try:
            response = self._client.post(self.sync_url, data=data)
        except httpx.RequestError as e:
            elapsed_ms = (time.monotonic() - start_time) * 1000
            logger.error("Todoist %s failed after %.0fms: %s", operation, elapsed_ms, e)
            raise TodoistClientError(f"Todoist {operation} request failed: {e}") from e

        elapsed_ms = (time.monotonic() - start_time) * 1000

        if response.status_code in (401, 403):
            logger.error(
                "Todoist %s: %d Unauthorized (%.0fms)",
                operation,
                response.status_code,
                elapsed_ms,
            )
            raise TodoistAuthError(AUTH_FAILED_MESSAGE)
        if response.status_code != 200:
            logger.error(
                "Todoist %s: HTTP %d (%.0fms)", operation, response.status_code, elapsed_ms
            )
            raise TodoistClientError(
                f"Todoist {operation} failed with status {response.status_code}."
            )

        try:
            payload = response.json()
        except ValueError as e:
            logger.error("Todoist %s: Invalid JSON response (%.0fms)", operation, elapsed_ms)
            raise TodoistClientError(f"Invalid JSON response: {e}") from e

        logger.info("Todoist %s: 200 OK (%.0fms)", operation, elapsed_ms)
        return payload if isinstance(payload, dict) else {}


def build_due_object(due_date: str | None, due_string: str | None) -> dict[str, str] | None:
    """Due payload with only the non-empty parts, or None when both are empty."""
    date = (due_date or "").strip()
    string = (due_string or "").strip()
    if not date and not string:
        return None
    due: dict[str, str] = {}
    if date:
        due["date"] = date
    if string:
        due["string"] = string
    return due


def _new_uuid() -> str:
    return str(uuid.uuid4())


# --- Response normalization ---


def _to_id(value: Any) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip():
        return value
    if isinstance(value, int):
        return str(value)
    return None


def _to_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _to_due(value: Any) -> RemoteDue | None:
    if not isinstance(value, dict):
        return None
    fields: dict[str, Any] = {
        key: value.get(key) if isinstance(value.get(key), str) else None
        for key in ("date", "string", "datetime", "timezone", "lang")
    }
    recurring = value.get("is_recurring")
    fields["is_recurring"] = recurring if isinstance(recurring, bool) else None
    if all(v is None for v in fields.values()):
        return None
    return RemoteDue(**fields)


def normalize_items(raw_items: list[dict[str, Any]]) -> list[RemoteTask]:
    """Convert raw items, dropping entries without id, content or project."""
    items: list[RemoteTask] = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        item_id = _to_id(raw.get("id"))
        content = _to_text(raw.get("content"))
        project_id = _to_id(raw.get("project_id"))
        if not item_id or not content or not project_id:
            continue

        description = raw.get("description")
        priority = raw.get("priority")
        if isinstance(priority, bool) or not isinstance(priority, int):
            priority = None
        labels = raw.get("labels")
        if not isinstance(labels, list):
            labels = []

        items.append(
            RemoteTask(
                id=item_id,
                content=content,
                description=description if isinstance(description, str) else None,
                project_id=project_id,
                section_id=_to_id(raw.get("section_id")),
                parent_id=_to_id(raw.get("parent_id")),
                priority=priority,
                due=_to_due(raw.get("due")),
                labels=[label for label in labels if isinstance(label, str)],
                checked=bool(raw.get("checked")),
                is_deleted=bool(raw.get("is_deleted")),
                responsible_uid=_to_id(raw.get("responsible_uid")),
            )
        )
    return items


def normalize_projects(raw_projects: list[dict[str, Any]]) -> list[RemoteProject]:
    projects = []
    for raw in raw_projects:
        if not isinstance(raw, dict):
            continue
        project_id = _to_id(raw.get("id"))
        name = _to_text(raw.get("name"))
        if project_id and name:
            projects.append(RemoteProject(id=project_id, name=name))
    return projects


def normalize_sections(raw_sections: list[dict[str, Any]]) -> list[RemoteSection]:
    sections = []
    for raw in raw_sections:
        if not isinstance(raw, dict):
            continue
        section_id = _to_id(raw.get("id"))
        name = _to_text(raw.get("name"))
        project_id = _to_id(raw.get("project_id"))
        if section_id and name and project_id:
            sections.append(RemoteSection(id=section_id, name=name, project_id=project_id))
    return sections
