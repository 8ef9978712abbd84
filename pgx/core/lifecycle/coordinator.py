"""Lifecycle coordinator for a PostgreSQL server bound to a data directory.

Independent pgx invocations share no memory. They agree on a server's state
through two sources:

1. The engine manager's liveness check, which alone decides running versus
   not running (and therefore guards against double starts).
2. The sidecar endpoint record, which only supplies connection details for
   display and is written strictly after the engine confirms it started.

A stale record left by an unclean exit is ignored when the engine reports
the server stopped and overwritten by the next successful start.
"""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from pgx.core.lifecycle.handle import EngineHandle
from pgx.core.lifecycle.signal_watcher import ShutdownReason, SignalWatcher
from pgx.domain.entities import (
    DEFAULT_DATABASE,
    DEFAULT_SUPERUSER,
    EndpointRecord,
    EngineConfig,
    EngineStatus,
    RunState,
)
from pgx.domain.exceptions import (
    AlreadyRunningError,
    CredentialMissingError,
    NoRecordError,
    NotRunningError,
    SetupFailedError,
    StartFailedError,
)
from pgx.ports.engine import EngineManager
from pgx.ports.progress import StepProgress
from pgx.ports.state_store import StateStore

logger = logging.getLogger(__name__)


def generate_credential() -> str:
    """Generate a URL-safe superuser password for a new cluster."""
    return secrets.token_urlsafe(24)


@dataclass
class StartRequest:
    """Request to start a server.

    Attributes:
        data_dir: Cluster data directory (service identity).
        host: Address to listen on.
        port: Port to listen on, 0 to pick a free one.
        daemon: Return right after start and leave the server running.
    """

    data_dir: Path
    host: str = "localhost"
    port: int = 0
    daemon: bool = False


@dataclass
class StartResponse:
    """Outcome of a start.

    Attributes:
        record: Endpoint record that was persisted.
        url: Canonical connection URL that was emitted.
        detached: True if the server was left running (daemon mode).
        shutdown: Why a foreground wait ended (None in daemon mode).
        stopped: True if this invocation stopped the server on shutdown.
    """

    record: EndpointRecord
    url: str
    detached: bool = False
    shutdown: ShutdownReason | None = None
    stopped: bool = False


@dataclass
class StatusResponse:
    """Outcome of a status query.

    Attributes:
        running: Whether the engine reports the server as running.
        record: Endpoint record, when running and available.
        url: Connection URL built from the record, if any.
    """

    running: bool
    record: EndpointRecord | None = None
    url: str | None = None


@dataclass
class StopResponse:
    """Outcome of a stop.

    Attributes:
        was_running: False if the stop was a no-op.
    """

    was_running: bool


class LifecycleCoordinator:
    """Start, stop and query a server from independent invocations."""

    def __init__(
        self,
        engine: EngineManager,
        store: StateStore,
        version: str = "18",
        superuser: str = DEFAULT_SUPERUSER,
        database: str = DEFAULT_DATABASE,
        poll_interval: float = 0.25,
        watcher_factory: Callable[[], SignalWatcher] = SignalWatcher,
        credential_factory: Callable[[], str] = generate_credential,
    ) -> None:
        """Initialize lifecycle coordinator.

        Args:
            engine: Engine manager that owns the server process.
            store: Sidecar store for endpoint records and credentials.
            version: Pinned PostgreSQL major version.
            superuser: Role name used in connection URLs.
            database: Database name used in connection URLs.
            poll_interval: Seconds between liveness probes in foreground mode.
            watcher_factory: Builds the signal watcher for foreground mode.
            credential_factory: Generates passwords for new clusters.
        """
        self.engine = engine
        self.store = store
        self.version = version
        self.superuser = superuser
        self.database = database
        self.poll_interval = poll_interval
        self.watcher_factory = watcher_factory
        self.credential_factory = credential_factory

    def _url(self, record: EndpointRecord) -> str:
        return record.url(self.superuser, self.database)

    def run_state(self, data_dir: Path) -> RunState:
        """Derive the run state from the engine plus the sidecar record."""
        if self.engine.status(data_dir) is not EngineStatus.RUNNING:
            return RunState.not_running()
        return RunState.running_with(self.store.read(data_dir))

    def _resolve_credential(self, data_dir: Path) -> tuple[str, bool]:
        """Find the password to start with.

        Returns:
            Tuple of (credential, freshly_generated)

        Raises:
            CredentialMissingError: If the cluster is initialized but its
                password was never stored
        """
        stored = self.store.read_credential(data_dir)
        if stored is not None:
            return stored, False

        if self.engine.is_initialized(data_dir):
            raise CredentialMissingError(
                f"Missing managed password file for initialized data directory "
                f"{data_dir}",
                hint="Reset the postgres password and write it to the "
                "password file next to the data directory",
            )

        return self.credential_factory(), True

    def start(
        self,
        request: StartRequest,
        on_ready: Callable[[str], None] | None = None,
        progress: StepProgress | None = None,
    ) -> StartResponse:
        """Start a server and, in foreground mode, supervise it until shutdown.

        Steps:
        1. Refuse if the engine reports a server already running.
        2. Prepare binaries and the data directory.
        3. Start the server.
        4. Persist the endpoint record and credential file.
        5. Emit the connection URL through on_ready.
        6. Daemon: detach and return. Foreground: wait for SIGINT/SIGTERM,
           then stop the server exactly once.

        Args:
            request: Start parameters.
            on_ready: Receives the connection URL once the record is saved.
            progress: Optional step progress reporter.

        Returns:
            StartResponse describing what happened.

        Raises:
            AlreadyRunningError: If a server is running for the data directory.
            CredentialMissingError: If the stored password is missing.
            SetupFailedError: If preparing binaries or data fails.
            StartFailedError: If the server fails to start.
            PersistenceFailedError: If sidecar state cannot be written.
        """
        data_dir = request.data_dir

        if self.engine.status(data_dir) is EngineStatus.RUNNING:
            raise AlreadyRunningError(
                f"Server already running for {data_dir}",
                hint="Run 'pgx url' to connect or 'pgx stop' to stop it",
            )

        try:
            data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SetupFailedError(
                f"Failed to create data directory {data_dir}: {e}"
            ) from e

        credential, generated = self._resolve_credential(data_dir)

        if progress:
            progress.on_step(f"Preparing PostgreSQL {self.version}...")
        self.engine.setup(data_dir, self.version, credential)
        if generated:
            # An initialized cluster must never lose its password
            self.store.write_credential(data_dir, credential)

        config = EngineConfig(
            data_dir=data_dir,
            host=request.host,
            port=request.port,
            version=self.version,
            credential=credential,
        )

        with EngineHandle(self.engine, data_dir) as handle:
            if progress:
                progress.on_step("Starting PostgreSQL...")
            endpoint = handle.start(config)
            if not endpoint.credential.strip():
                raise StartFailedError("Database started with an empty password")

            record = EndpointRecord.from_endpoint(endpoint)
            self.store.write(data_dir, record)
            self.store.write_credential(data_dir, record.credential)
            url = self._url(record)
            logger.info(f"PostgreSQL running on {record.host}:{record.port}")

            if progress:
                progress.on_complete()

            if request.daemon:
                if on_ready:
                    on_ready(url)
                handle.detach()
                return StartResponse(record=record, url=url, detached=True)

            with self.watcher_factory() as watcher:
                if on_ready:
                    on_ready(url)
                reason = watcher.wait(
                    still_running=lambda: self.engine.status(data_dir)
                    is EngineStatus.RUNNING,
                    poll_interval=self.poll_interval,
                )
                stopped = False
                if reason is ShutdownReason.SIGNAL and watcher.token.consume():
                    handle.stop()
                    stopped = True
                else:
                    handle.detach()

        return StartResponse(record=record, url=url, shutdown=reason, stopped=stopped)

    def status(self, data_dir: Path) -> StatusResponse:
        """Report whether the server is running and, if known, its URL.

        A running server without a record is reported as running without
        connection details. A stopped server is reported as not running
        whatever record is on disk.
        """
        state = self.run_state(data_dir)
        if not state.running:
            return StatusResponse(running=False)
        if state.record is None:
            logger.debug(f"Server running for {data_dir} but no endpoint record")
            return StatusResponse(running=True)
        return StatusResponse(
            running=True, record=state.record, url=self._url(state.record)
        )

    def url(self, data_dir: Path) -> str:
        """Return the connection URL of a running server.

        Raises:
            NotRunningError: If no server is running.
            NoRecordError: If running but no endpoint record is available.
        """
        state = self.run_state(data_dir)
        if not state.running:
            raise NotRunningError(
                f"No server running for {data_dir}",
                hint="Run 'pgx start --data-dir ...' first",
            )
        if state.record is None:
            raise NoRecordError(
                f"Server running for {data_dir} but its connection details are missing",
                hint="Restart it with 'pgx stop' then 'pgx start' to record them",
            )
        return self._url(state.record)

    def stop(self, data_dir: Path) -> StopResponse:
        """Stop the server; a no-op when it is not running.

        The endpoint record is kept; it is ignored until the next start
        overwrites it.

        Raises:
            StopFailedError: If the engine fails to stop a running server.
        """
        if self.engine.status(data_dir) is not EngineStatus.RUNNING:
            logger.debug(f"No server running for {data_dir}")
            return StopResponse(was_running=False)

        self.engine.stop(data_dir)
        logger.info(f"Stopped server for {data_dir}")
        return StopResponse(was_running=True)
