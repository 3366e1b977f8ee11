"""Configuration service for loading todoist-notes.yml."""

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..models import SyncConfig

logger = logging.getLogger(__name__)


class ConfigService:
    """Service for loading and caching sync configuration."""

    CONFIG_FILE = "todoist-notes.yml"

    def __init__(self, vault_root: Path) -> None:
        """Initialize the config service.

        Args:
            vault_root: Path to the vault root
        """
        self.vault_root = vault_root
        self._config: SyncConfig | None = None
        self._config_error: str | None = None

    @property
    def config_path(self) -> Path:
        return self.vault_root / self.CONFIG_FILE

    @property
    def has_config_error(self) -> bool:
        """Check if there was an error loading config."""
        return self._config_error is not None

    @property
    def config_error(self) -> str | None:
        """Get the config error message if any."""
        return self._config_error

    def get_config(self) -> SyncConfig:
        """Get configuration, loading from file if not cached."""
        if self._config is None:
            self._config = self._load_config()
        return self._config

    def reload(self) -> None:
        """Clear cached configuration, forcing reload on next access."""
        self._config = None
        self._config_error = None

    def _load_config(self) -> SyncConfig:
        """Load configuration from file or return default."""
        self._config_error = None

        if not self.config_path.exists():
            logger.debug("No %s found, using defaults", self.CONFIG_FILE)
            return SyncConfig.default()

        try:
            with open(self.config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f)

            if data is None:
                self._config_error = f"{self.CONFIG_FILE} is empty"
                logger.warning(self._config_error)
                return SyncConfig.default()

            if not isinstance(data, dict):
                self._config_error = f"{self.CONFIG_FILE} must contain a mapping"
                logger.warning(self._config_error)
                return SyncConfig.default()

            config = SyncConfig(**data)
            logger.info(
                "Loaded %s (tasks_folder=%s, archive_mode=%s)",
                self.CONFIG_FILE,
                config.tasks_folder,
                config.archive_mode.value,
            )
            return config

        except yaml.YAMLError as e:
            self._config_error = f"Invalid YAML in {self.CONFIG_FILE}: {e}"
            logger.warning(self._config_error)
            return SyncConfig.default()

        except ValidationError as e:
            self._config_error = f"Invalid {self.CONFIG_FILE}: {e}"
            logger.warning(self._config_error)
            return SyncConfig.default()

        except OSError as e:
            self._config_error = f"Error loading {self.CONFIG_FILE}: {e}"
            logger.warning(self._config_error)
            return SyncConfig.default()
