"""Application settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from ..todoist.client import DEFAULT_TOKEN_ENV_VAR


class Settings(BaseSettings):
    """Application settings."""

    vault_root: Path = Field(
        default=Path(),
        description="Path to the vault containing todoist-notes.yml",
    )

    verbose: int = Field(
        default=0,
        description="Verbosity level (0=off, 1=INFO, 2+=DEBUG)",
    )

    log_file: Path | None = Field(
        default=None,
        description="Optional path to write logs to file",
    )

    token_env_var: str = Field(
        default=DEFAULT_TOKEN_ENV_VAR,
        description="Environment variable holding the Todoist API token",
    )

    model_config = {
        "env_prefix": "TODOIST_NOTES_",
    }
