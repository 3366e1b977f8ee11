"""Sync, watch and connection commands."""

import logging
from pathlib import Path

from ..services.config_service import ConfigService
from ..services.lookup_service import LookupService
from ..services.sync_runner import SyncRunner
from ..todoist.client import TodoistClientError
from .output import detail, error, header, info, success, sync_result

logger = logging.getLogger(__name__)


def _load_config_service(vault_root: Path) -> ConfigService:
    config_service = ConfigService(vault_root)
    config_service.get_config()
    if config_service.has_config_error:
        error(config_service.config_error or "Invalid configuration")
        info("Falling back to default settings")
    return config_service


def run_test_connection(vault_root: Path, token_env_var: str) -> int:
    """Check the Todoist token.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    runner = SyncRunner(ConfigService(vault_root), token_env_var)
    header("Checking Todoist connection...")
    ok, message = runner.test_connection()
    if ok:
        success(message)
        return 0
    error(message)
    if "token" in message.lower():
        info(f"Set the {token_env_var} environment variable to your Todoist API token")
    return 1


def run_sync(vault_root: Path, token_env_var: str) -> int:
    """Run one sync pass.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    runner = SyncRunner(_load_config_service(vault_root), token_env_var)

    marked = runner.detect_local_edits()
    if marked:
        info(f"Detected {marked} locally edited task note(s)")

    header("Syncing with Todoist...")
    result = runner.request_sync()
    sync_result(result)
    return 0 if result.ok else 1


def run_watch(vault_root: Path, token_env_var: str, iterations: int | None = None) -> int:
    """Sync on the configured interval until interrupted.

    Returns:
        Exit code (0 when stopped, 1 when scheduled sync is disabled)
    """
    config_service = _load_config_service(vault_root)
    config = config_service.get_config()
    if not config.auto_sync_enabled:
        error("Scheduled sync is disabled")
        info("Set 'auto_sync_enabled: true' in todoist-notes.yml")
        return 1

    runner = SyncRunner(config_service, token_env_var)
    header(f"Syncing every {config.auto_sync_interval_minutes} minute(s), Ctrl+C to stop")
    try:
        runs = runner.run_scheduled(iterations=iterations, on_result=sync_result)
    except KeyboardInterrupt:
        print()
        info("Stopped")
        return 0

    logger.info("Scheduled sync stopped after %d run(s)", runs)
    return 0


def run_projects(vault_root: Path, token_env_var: str) -> int:
    """List Todoist projects and their sections.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    lookup_service = LookupService(token_env_var)
    try:
        lookup = lookup_service.get_lookup(force_refresh=True)
    except TodoistClientError as e:
        error(str(e))
        return 1

    if not lookup.projects:
        info("No projects found (is a token configured?)")
        return 0

    sections_by_project: dict[str, list[str]] = {}
    for section in lookup.sections:
        sections_by_project.setdefault(section.project_id, []).append(section.name)

    for project in sorted(lookup.projects, key=lambda p: p.name.lower()):
        header(project.name)
        detail(f"id: {project.id}")
        for name in sections_by_project.get(project.id, []):
            info(name)
    return 0
