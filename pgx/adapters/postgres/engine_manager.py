"""PostgreSQL engine manager using subprocess calls to initdb and pg_ctl.

Binaries are not downloaded; they are located on disk. Liveness is read from
the cluster's postmaster.pid and checked against the process table with
psutil, so probing a data directory never spawns a process.
"""

import contextlib
import logging
import os
import re
import shlex
import shutil
import socket
import subprocess
import tempfile
from pathlib import Path

import psutil

from pgx.adapters.sidecar.state_store import log_file_path
from pgx.domain.entities import Endpoint, EngineConfig, EngineStatus
from pgx.domain.exceptions import (
    PgxDomainError,
    SetupFailedError,
    StartFailedError,
    StopFailedError,
)

logger = logging.getLogger(__name__)

PID_FILE = "postmaster.pid"
VERSION_FILE = "PG_VERSION"

_VERSION_RE = re.compile(r"\(PostgreSQL\)\s+(\d+)")

# Conventional install locations, checked after bin_dir and PATH
_BIN_DIR_TEMPLATES = (
    "/usr/lib/postgresql/{major}/bin",
    "/usr/pgsql-{major}/bin",
    "/opt/homebrew/opt/postgresql@{major}/bin",
    "/usr/local/opt/postgresql@{major}/bin",
    "/usr/local/pgsql/bin",
)


def pick_free_port(host: str) -> int:
    """Ask the OS for a free TCP port on host.

    The port is released before the server binds it, so another process
    could take it in between; pg_ctl then fails and the error surfaces.

    Works for IPv4 and IPv6 hosts alike; the first address host resolves to
    decides the socket family.
    """
    family, kind, proto, _, address = socket.getaddrinfo(
        host, 0, type=socket.SOCK_STREAM
    )[0]
    with socket.socket(family, kind, proto) as sock:
        sock.bind(address)
        return sock.getsockname()[1]


def parse_major_version(output: str) -> str | None:
    """Extract the major version from ``postgres --version`` output.

    Args:
        output: e.g. "postgres (PostgreSQL) 18.0 (Debian 18.0-1)"

    Returns:
        Major version string ("18") or None if not recognized
    """
    match = _VERSION_RE.search(output)
    return match.group(1) if match else None


class PgCtlEngineManager:
    """Engine manager backed by locally installed PostgreSQL binaries."""

    def __init__(
        self,
        version: str = "18",
        bin_dir: Path | None = None,
        stop_mode: str = "fast",
        timeout: int = 60,
        superuser: str = "postgres",
    ) -> None:
        """Initialize engine manager.

        Args:
            version: Default PostgreSQL major version for stop/lookup
            bin_dir: Directory holding the binaries (None = search)
            stop_mode: pg_ctl shutdown mode
            timeout: Seconds pg_ctl waits for start/stop
            superuser: Bootstrap superuser name for initdb
        """
        self.version = version
        self.bin_dir = bin_dir
        self.stop_mode = stop_mode
        self.timeout = timeout
        self.superuser = superuser
        self._resolved: dict[str, Path] = {}

    # ------------------------------------------------------------------
    # Binary discovery
    # ------------------------------------------------------------------

    def _candidate_bin_dirs(self, major: str) -> list[Path]:
        """List directories that may hold binaries, in lookup order."""
        if self.bin_dir is not None:
            return [self.bin_dir]

        candidates: list[Path] = []
        on_path = shutil.which("pg_ctl")
        if on_path:
            candidates.append(Path(on_path).resolve().parent)
        for template in _BIN_DIR_TEMPLATES:
            path = Path(template.format(major=major))
            if path not in candidates:
                candidates.append(path)
        return candidates

    def _binary(self, bin_dir: Path, name: str) -> Path | None:
        found = shutil.which(name, path=str(bin_dir))
        return Path(found) if found else None

    def _installed_major(self, bin_dir: Path) -> str | None:
        """Report the major version of the postgres binary in bin_dir."""
        postgres = self._binary(bin_dir, "postgres")
        if postgres is None:
            return None
        try:
            result = subprocess.run(
                [str(postgres), "--version"],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            logger.debug(f"Failed to run {postgres} --version: {e}")
            return None
        return parse_major_version(result.stdout)

    def find_bin_dir(self, major: str, error_cls: type[PgxDomainError]) -> Path:
        """Locate a binary directory whose postgres matches the major version.

        Args:
            major: Required PostgreSQL major version
            error_cls: Domain error to raise when nothing matches

        Returns:
            Directory containing postgres, initdb and pg_ctl

        Raises:
            error_cls: If no matching installation is found
        """
        if major in self._resolved:
            return self._resolved[major]

        seen: list[str] = []
        for bin_dir in self._candidate_bin_dirs(major):
            if self._binary(bin_dir, "pg_ctl") is None:
                continue
            installed = self._installed_major(bin_dir)
            seen.append(f"{bin_dir} (PostgreSQL {installed or 'unknown'})")
            if installed == major:
                logger.debug(f"Using PostgreSQL {major} binaries from {bin_dir}")
                self._resolved[major] = bin_dir
                return bin_dir

        detail = f"; found {', '.join(seen)}" if seen else ""
        raise error_cls(
            f"PostgreSQL {major} binaries not found{detail}",
            hint="Install PostgreSQL "
            f"{major} or set engine.bin_dir in the pgx config file",
        )

    def _major_for(self, data_dir: Path) -> str:
        """Major version recorded in an initialized data directory."""
        version_file = data_dir / VERSION_FILE
        with contextlib.suppress(OSError):
            recorded = version_file.read_text(encoding="utf-8").strip()
            if recorded.isdigit():
                return recorded
        return self.version

    # ------------------------------------------------------------------
    # Subprocess helpers
    # ------------------------------------------------------------------

    def _run(
        self,
        cmd: list[str],
        error_cls: type[PgxDomainError],
        action: str,
        new_session: bool = False,
    ) -> subprocess.CompletedProcess:
        """Run a PostgreSQL tool and convert failures to domain errors.

        Args:
            cmd: Command and arguments
            error_cls: Domain error to raise on failure
            action: Short description used in the error message
            new_session: Run in a new session so the spawned server does not
                receive signals aimed at the terminal's process group

        Returns:
            Completed process on exit code 0

        Raises:
            error_cls: If the tool cannot be run or exits non-zero
        """
        logger.debug(f"Running: {shlex.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                start_new_session=new_session,
            )
        except OSError as e:
            raise error_cls(f"Failed to {action}: {e}") from e

        if result.returncode != 0:
            output = (result.stderr or result.stdout).strip()
            message = f"Failed to {action} (exit code {result.returncode})"
            if output:
                message += f": {output}"
            raise error_cls(message)
        return result

    # ------------------------------------------------------------------
    # EngineManager protocol
    # ------------------------------------------------------------------

    def is_initialized(self, data_dir: Path) -> bool:
        return (data_dir / VERSION_FILE).exists()

    def setup(self, data_dir: Path, version: str, credential: str) -> None:
        """Verify binaries and initialize the cluster if needed.

        Args:
            data_dir: Cluster data directory
            version: Pinned PostgreSQL major version
            credential: Superuser password for a new cluster

        Raises:
            SetupFailedError: If binaries are missing, the data directory
                holds a cluster of another version, or initdb fails
        """
        bin_dir = self.find_bin_dir(version, SetupFailedError)

        if self.is_initialized(data_dir):
            recorded = self._major_for(data_dir)
            if recorded != version:
                raise SetupFailedError(
                    f"Data directory {data_dir} was initialized by PostgreSQL "
                    f"{recorded}, not {version}",
                    hint="Use a fresh data directory or set engine.version",
                )
            logger.debug(f"Data directory {data_dir} already initialized")
            return

        data_dir.mkdir(parents=True, exist_ok=True)
        if any(data_dir.iterdir()):
            raise SetupFailedError(
                f"Data directory {data_dir} is not empty and holds no cluster",
                hint="Point --data-dir at an empty or missing directory",
            )

        initdb = self._binary(bin_dir, "initdb")
        if initdb is None:
            raise SetupFailedError(f"initdb not found in {bin_dir}")

        logger.info(f"Initializing PostgreSQL {version} cluster in {data_dir}")
        fd, pwfile = tempfile.mkstemp(prefix=".pgx-initdb-", dir=data_dir.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(credential + "\n")
            self._run(
                [
                    str(initdb),
                    "-D",
                    str(data_dir),
                    "-U",
                    self.superuser,
                    "--auth=scram-sha-256",
                    f"--pwfile={pwfile}",
                    "-E",
                    "UTF8",
                ],
                SetupFailedError,
                "initialize data directory",
            )
        finally:
            with contextlib.suppress(OSError):
                os.unlink(pwfile)

    def start(self, config: EngineConfig) -> Endpoint:
        """Start the server with pg_ctl and wait for it to accept connections.

        Raises:
            StartFailedError: If pg_ctl fails or times out
        """
        bin_dir = self.find_bin_dir(config.version, StartFailedError)
        pg_ctl = self._binary(bin_dir, "pg_ctl")
        if pg_ctl is None:
            raise StartFailedError(f"pg_ctl not found in {bin_dir}")

        try:
            port = config.port or pick_free_port(config.host)
        except OSError as e:
            raise StartFailedError(
                f"Failed to find a free port on {config.host}: {e}"
            ) from e

        # Unix sockets are disabled; the server is reached over TCP only
        server_options = shlex.join(["-h", config.host, "-p", str(port), "-k", ""])
        log_file = log_file_path(config.data_dir)

        logger.info(f"Starting PostgreSQL on {config.host}:{port}")
        try:
            self._run(
                [
                    str(pg_ctl),
                    "start",
                    "-D",
                    str(config.data_dir),
                    "-l",
                    str(log_file),
                    "-w",
                    "-t",
                    str(self.timeout),
                    "-o",
                    server_options,
                ],
                StartFailedError,
                "start PostgreSQL",
                new_session=True,
            )
        except StartFailedError as e:
            e.hint = e.hint or f"Check the server log at {log_file}"
            raise

        return Endpoint(host=config.host, port=port, credential=config.credential)

    def stop(self, data_dir: Path) -> None:
        """Stop the server with pg_ctl; no-op if it is not running.

        Raises:
            StopFailedError: If pg_ctl fails to stop a running server
        """
        if self.status(data_dir) is EngineStatus.STOPPED:
            logger.debug(f"No server running for {data_dir}")
            return

        bin_dir = self.find_bin_dir(self._major_for(data_dir), StopFailedError)
        pg_ctl = self._binary(bin_dir, "pg_ctl")
        if pg_ctl is None:
            raise StopFailedError(f"pg_ctl not found in {bin_dir}")

        logger.info(f"Stopping PostgreSQL for {data_dir} ({self.stop_mode} mode)")
        self._run(
            [
                str(pg_ctl),
                "stop",
                "-D",
                str(data_dir),
                "-m",
                self.stop_mode,
                "-w",
                "-t",
                str(self.timeout),
            ],
            StopFailedError,
            "stop PostgreSQL",
        )

    def read_pid(self, data_dir: Path) -> int | None:
        """Read the postmaster PID from postmaster.pid.

        Returns:
            PID if the file exists and its first line is a valid PID, else None
        """
        pid_file = data_dir / PID_FILE
        if not pid_file.exists():
            return None

        try:
            first_line = pid_file.read_text(encoding="utf-8").splitlines()[0]
            return int(first_line.strip())
        except (OSError, IndexError, ValueError):
            return None

    def status(self, data_dir: Path) -> EngineStatus:
        """Report whether a postmaster is alive for the data directory.

        A postmaster.pid left behind by an unclean exit is recognized as
        stale when its PID is gone, a zombie, or reused by a process that
        is not a postgres server.
        """
        pid = self.read_pid(data_dir)
        if pid is None:
            return EngineStatus.STOPPED

        try:
            process = psutil.Process(pid)
            if process.status() == psutil.STATUS_ZOMBIE:
                return EngineStatus.STOPPED
            name = process.name()
        except psutil.NoSuchProcess:
            logger.debug(f"Stale {PID_FILE} in {data_dir} (process {pid} not found)")
            return EngineStatus.STOPPED
        except psutil.AccessDenied:
            # Exists but belongs to someone else; trust the PID file
            return EngineStatus.RUNNING

        if "postgres" not in name.lower():
            logger.debug(f"Stale {PID_FILE} in {data_dir} (PID {pid} is {name})")
            return EngineStatus.STOPPED
        return EngineStatus.RUNNING
