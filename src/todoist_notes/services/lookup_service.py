"""Cached project/section lookup for resolving names to ids."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from ..models import ProjectSectionLookup
from ..todoist.client import DEFAULT_TOKEN_ENV_VAR, TodoistAuthError, TodoistClient

logger = logging.getLogger(__name__)

LOOKUP_TTL_SECONDS = 5 * 60


class LookupService:
    """Projects and sections from Todoist, cached for a few minutes."""

    def __init__(
        self,
        token_env_var: str = DEFAULT_TOKEN_ENV_VAR,
        client_factory: Callable[[str], TodoistClient] = TodoistClient.from_environment,
        ttl: float = LOOKUP_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._token_env_var = token_env_var
        self._client_factory = client_factory
        self._ttl = ttl
        self._clock = clock
        self._cached: ProjectSectionLookup | None = None
        self._expires_at = 0.0

    def get_lookup(self, force_refresh: bool = False) -> ProjectSectionLookup:
        """Cached lookup; an empty one when no token is configured."""
        now = self._clock()
        if not force_refresh and self._cached is not None and self._expires_at > now:
            return self._cached

        try:
            client = self._client_factory(self._token_env_var)
        except TodoistAuthError:
            logger.debug("No token, returning empty project/section lookup")
            return ProjectSectionLookup()

        with client:
            lookup = client.fetch_project_section_lookup()

        self._cached = lookup
        self._expires_at = now + self._ttl
        logger.debug(
            "Cached lookup: %d projects, %d sections", len(lookup.projects), len(lookup.sections)
        )
        return lookup

    def invalidate(self) -> None:
        self._cached = None
        self._expires_at = 0.0
