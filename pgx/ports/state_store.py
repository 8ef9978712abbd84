"""Port interface for sidecar state persistence.

Defines the storage contract for endpoint records and credential files.
"""

from pathlib import Path
from typing import Protocol

from pgx.domain.entities import EndpointRecord


class StateStore(Protocol):
    """Protocol for durable, non-locking per-data-directory state."""

    def write(self, data_dir: Path, record: EndpointRecord) -> None:
        """Atomically replace the endpoint record for a data directory.

        Raises:
            PersistenceFailedError: If the record cannot be written
        """
        ...

    def read(self, data_dir: Path) -> EndpointRecord | None:
        """Read the endpoint record, or None if absent or unreadable."""
        ...

    def write_credential(self, data_dir: Path, secret: str) -> None:
        """Create or replace the owner-only credential file.

        Raises:
            PersistenceFailedError: If the file cannot be written
        """
        ...

    def read_credential(self, data_dir: Path) -> str | None:
        """Read the stored credential, or None if absent or empty."""
        ...
