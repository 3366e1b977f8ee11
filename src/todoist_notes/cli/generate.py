"""Generate command for creating a default todoist-notes.yml."""

import logging
from pathlib import Path

import yaml

from ..models import SyncConfig
from ..services.config_service import ConfigService
from .output import error, info, success

logger = logging.getLogger(__name__)

CONFIG_HEADER = """\
# todoist-notes configuration
#
# tasks_folder / archive_folder: vault-relative folders for task notes
# default_tag: tag added to every task note (without '#')
#
# archive_mode: what happens when a synced task disappears from Todoist
#   - none: keep the note in place, flag it missing_remote
#   - move-to-archive-folder: mark done and move into archive_folder
#   - mark-local-done: mark done in place
#
# Auto-import (all rules must pass):
#   auto_import_project_scope: all-projects | allow-list-by-name
#   auto_import_allowed_project_names: comma separated, empty admits every project
#   auto_import_required_label: only tasks with this label (empty: any)
#   auto_import_assigned_to_me_only: skip tasks assigned to someone else
#
# Scheduled sync (`todoist-notes watch`):
#   auto_sync_interval_minutes: 1..120
#
# The API token is read from the TODOIST_API_TOKEN environment variable
# (override the variable name with TODOIST_NOTES_TOKEN_ENV_VAR).

"""


def generate_config_yaml() -> str:
    """Render the default SyncConfig as commented YAML."""
    config_dict = SyncConfig.default().model_dump(mode="json")
    yaml_content = yaml.dump(config_dict, default_flow_style=False, sort_keys=False)
    return CONFIG_HEADER + yaml_content


def run_generate(vault_root: Path) -> int:
    """
    Write the default configuration and create the task folder.

    Args:
        vault_root: Vault root where todoist-notes.yml will be created

    Returns:
        Exit code (0 = something created, 1 = nothing to do or error)
    """
    config_path = vault_root / ConfigService.CONFIG_FILE
    created = False

    if config_path.exists():
        info(f"Config exists: {config_path}")
    else:
        try:
            vault_root.mkdir(parents=True, exist_ok=True)
            config_path.write_text(generate_config_yaml(), encoding="utf-8")
        except OSError as e:
            error(f"Failed to write {config_path}: {e}")
            return 1
        success(f"Generated config: {config_path}")
        created = True

    config_service = ConfigService(vault_root)
    config = config_service.get_config()
    if config_service.has_config_error:
        error(config_service.config_error or "Invalid configuration")
        return 1

    tasks_dir = vault_root / config.tasks_folder
    if tasks_dir.exists():
        info(f"Directory exists: {tasks_dir}/")
    else:
        tasks_dir.mkdir(parents=True)
        success(f"Created directory: {tasks_dir}/")
        created = True

    if not created:
        info("Nothing to do")
        return 1
    return 0
