"""Run sync passes one at a time, coalescing overlapping requests."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from ..models import SyncRunResult
from ..repositories.task_notes import TaskNoteRepository
from ..sync.engine import SyncEngine
from ..todoist.client import DEFAULT_TOKEN_ENV_VAR, TodoistAuthError, TodoistClient
from ..utils.datetime import now_utc

if TYPE_CHECKING:
    from .config_service import ConfigService

logger = logging.getLogger(__name__)

QUEUED_MESSAGE = "Sync already running. Queued another run."

ClientFactory = Callable[[str], TodoistClient]


class SyncRunner:
    """Serializes sync runs for a vault.

    At most one run is active; requests arriving meanwhile collapse into a
    single follow-up run that starts as soon as the active one finishes.
    Dirty tracking is ignored while a run is active, since the run's own
    writes would otherwise flag notes as locally edited.
    """

    def __init__(
        self,
        config_service: ConfigService,
        token_env_var: str = DEFAULT_TOKEN_ENV_VAR,
        client_factory: ClientFactory = TodoistClient.from_environment,
    ) -> None:
        """Initialize the runner.

        Args:
            config_service: Provides the vault root and sync configuration
            token_env_var: Environment variable holding the API token
            client_factory: Builds a client from ``token_env_var``
        """
        self._config_service = config_service
        self._token_env_var = token_env_var
        self._client_factory = client_factory

        self._lock = threading.Lock()
        self._running = False
        self._queued = False

        self.last_sync_message = "No sync run yet."
        self.last_sync_at: datetime | None = None
        self.last_connection_message = "No check run yet."
        self.last_connection_at: datetime | None = None

    @property
    def vault_root(self) -> Path:
        return self._config_service.vault_root

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    def repository(self) -> TaskNoteRepository:
        return TaskNoteRepository(self.vault_root, self._config_service.get_config())

    # --- Sync ---

    def request_sync(self) -> SyncRunResult:
        """Run a sync now, or queue one follow-up if a run is active.

        The caller that started the active run also executes the follow-up
        and gets the result of the last run.
        """
        with self._lock:
            if self._running:
                self._queued = True
                logger.info("Sync already running, queued a follow-up run")
                return SyncRunResult(message=QUEUED_MESSAGE, queued=True)
            self._running = True

        try:
            result = self._run_once()
            while self._continue_with_queued():
                logger.info("Starting queued sync run")
                result = self._run_once()
        except Exception:
            with self._lock:
                self._running = False
                self._queued = False
            raise
        return result

    def run_scheduled(
        self,
        iterations: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
        on_result: Callable[[SyncRunResult], None] | None = None,
    ) -> int:
        """Sync every configured interval until ``iterations`` runs are done.

        Failures are always passed to ``on_result``; successes only when
        scheduled sync notices are enabled. Stops when auto sync is disabled.
        Returns the number of runs.
        """
        runs = 0
        while iterations is None or runs < iterations:
            self._config_service.reload()
            config = self._config_service.get_config()
            if not config.auto_sync_enabled:
                logger.info("Scheduled sync is disabled")
                break

            sleep(config.auto_sync_interval_minutes * 60)

            self.detect_local_edits()
            result = self.request_sync()
            runs += 1
            if on_result is not None and (not result.ok or config.show_scheduled_sync_notices):
                on_result(result)
        return runs

    # --- Connection ---

    def test_connection(self) -> tuple[bool, str]:
        """Check the token against Todoist and remember the outcome."""
        try:
            client = self._client_factory(self._token_env_var)
        except TodoistAuthError as e:
            self._record_connection(str(e))
            return False, str(e)

        with client:
            ok, message = client.test_connection()
        self._record_connection(message)
        return ok, message

    # --- Local edits ---

    def notify_modified(self, path: Path) -> bool:
        """Change notification for a note; marks it dirty unless a run is active."""
        if self.is_running:
            logger.debug("Ignoring change during sync: %s", path)
            return False
        return self.repository().mark_note_dirty(path)

    def detect_local_edits(self) -> int:
        """Scan for edited notes unless a run is active."""
        if self.is_running:
            return 0
        return self.repository().detect_local_edits()

    # --- Internal ---

    def _continue_with_queued(self) -> bool:
        with self._lock:
            if self._queued:
                self._queued = False
                return True
            self._running = False
            return False

    def _run_once(self) -> SyncRunResult:
        self._config_service.reload()
        config = self._config_service.get_config()

        try:
            client = self._client_factory(self._token_env_var)
        except TodoistAuthError as e:
            result = SyncRunResult(ok=False, message=str(e), errors=[str(e)])
            self._record_sync(result.message)
            return result

        start_time = time.monotonic()
        with client:
            engine = SyncEngine(TaskNoteRepository(self.vault_root, config), client, config)
            result = engine.run_import_sync()
        elapsed_ms = (time.monotonic() - start_time) * 1000

        logger.info("Sync run finished in %.0fms (ok=%s)", elapsed_ms, result.ok)
        self._record_sync(result.message)
        return result

    def _record_sync(self, message: str) -> None:
        self.last_sync_message = message
        self.last_sync_at = now_utc()

    def _record_connection(self, message: str) -> None:
        self.last_connection_message = message
        self.last_connection_at = now_utc()
