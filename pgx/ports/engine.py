"""Port interface for the PostgreSQL engine manager.

Defines the four capabilities the lifecycle coordinator consumes. How
binaries are found, how the cluster is initialized and how the server
process is started or stopped are left to implementations.
"""

from pathlib import Path
from typing import Protocol

from pgx.domain.entities import Endpoint, EngineConfig, EngineStatus


class EngineManager(Protocol):
    """Protocol for preparing, starting, stopping and probing a server."""

    def setup(self, data_dir: Path, version: str, credential: str) -> None:
        """Prepare binaries and initialize the data directory if needed.

        Idempotent: a no-op when binaries are available and the data
        directory is already initialized.

        Args:
            data_dir: Cluster data directory
            version: Pinned PostgreSQL major version
            credential: Superuser password, used only when initializing

        Raises:
            SetupFailedError: If binaries are missing or initialization fails
        """
        ...

    def start(self, config: EngineConfig) -> Endpoint:
        """Start the server and wait until it accepts connections.

        Args:
            config: Data directory, address, version and credential

        Returns:
            Endpoint the server is reachable at

        Raises:
            StartFailedError: If the server fails to start
        """
        ...

    def stop(self, data_dir: Path) -> None:
        """Stop the server for a data directory.

        Stopping a server that is not running is not an error.

        Raises:
            StopFailedError: If the server is running and cannot be stopped
        """
        ...

    def status(self, data_dir: Path) -> EngineStatus:
        """Report whether a server is running for the data directory."""
        ...

    def is_initialized(self, data_dir: Path) -> bool:
        """Check whether the data directory holds an initialized cluster."""
        ...
