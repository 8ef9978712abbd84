"""Sidecar state store for endpoint records and credential files.

Records live next to the data directory rather than inside it, because
initdb requires the data directory to be empty before initialization:

    <parent>/<name>.pgx-state.json   endpoint record (host, port, credential)
    <parent>/<name>.pgx-password     superuser password, owner-only
    <parent>/<name>.pgx.log          server log written by the engine adapter

Every write replaces the whole file through a temporary sibling and
``os.replace``, so readers see either the old or the new content. There is
no locking; a record that cannot be parsed is treated as absent.
"""

import contextlib
import json
import logging
import os
import tempfile
from pathlib import Path

from pgx.domain.entities import EndpointRecord
from pgx.domain.exceptions import PersistenceFailedError

logger = logging.getLogger(__name__)

STATE_SUFFIX = "pgx-state.json"
CREDENTIAL_SUFFIX = "pgx-password"
LOG_SUFFIX = "pgx.log"

_FALLBACK_NAME = "pgx-data"


def sidecar_path(data_dir: Path, suffix: str) -> Path:
    """Build the path of a sidecar file for a data directory.

    Args:
        data_dir: Cluster data directory
        suffix: File suffix appended after the directory name

    Returns:
        Sibling path ``<parent>/<name>.<suffix>``
    """
    name = data_dir.name or _FALLBACK_NAME
    return data_dir.parent / f"{name}.{suffix}"


def state_file_path(data_dir: Path) -> Path:
    return sidecar_path(data_dir, STATE_SUFFIX)


def credential_file_path(data_dir: Path) -> Path:
    return sidecar_path(data_dir, CREDENTIAL_SUFFIX)


def log_file_path(data_dir: Path) -> Path:
    return sidecar_path(data_dir, LOG_SUFFIX)


def _atomic_write(path: Path, content: str, mode: int | None = None) -> None:
    """Write content to path by replacing it with a fully written temp file.

    Args:
        path: Destination file
        content: Text to write
        mode: Permission bits applied to the temp file before the replace

    Raises:
        OSError: If any filesystem step fails
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None and os.name == "posix":
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp_path.unlink()
        raise


class SidecarStateStore:
    """Filesystem state store keyed by data directory path."""

    def write(self, data_dir: Path, record: EndpointRecord) -> None:
        """Replace the endpoint record for a data directory.

        Args:
            data_dir: Cluster data directory
            record: Record to persist

        Raises:
            PersistenceFailedError: If the record cannot be written
        """
        path = state_file_path(data_dir)
        data = {
            "host": record.host,
            "port": record.port,
            "credential": record.credential,
        }
        try:
            # The record embeds the credential, so keep it owner-only too
            _atomic_write(path, json.dumps(data, indent=2) + "\n", mode=0o600)
        except OSError as e:
            raise PersistenceFailedError(
                f"Failed to write state file {path}: {e}",
                hint="Check permissions on the data directory's parent",
            ) from e
        logger.debug(f"Wrote endpoint record to {path}")

    def read(self, data_dir: Path) -> EndpointRecord | None:
        """Read the endpoint record for a data directory.

        Records written by older versions carry only host and port; the
        credential is then taken from the credential file.

        Args:
            data_dir: Cluster data directory

        Returns:
            EndpointRecord, or None if missing, unreadable or malformed
        """
        path = state_file_path(data_dir)
        if not path.exists():
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable state file {path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed state file {path}")
            return None

        credential = data.get("credential") or self.read_credential(data_dir)
        if not credential:
            logger.debug(f"State file {path} has no credential")
            return None

        try:
            return EndpointRecord(
                host=data["host"], port=data["port"], credential=credential
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed state file {path}: {e}")
            return None

    def write_credential(self, data_dir: Path, secret: str) -> None:
        """Create or replace the credential file with owner-only permissions.

        Args:
            data_dir: Cluster data directory
            secret: Superuser password

        Raises:
            PersistenceFailedError: If the file cannot be written
        """
        path = credential_file_path(data_dir)
        try:
            _atomic_write(path, secret + "\n", mode=0o600)
        except OSError as e:
            raise PersistenceFailedError(
                f"Failed to write password file {path}: {e}",
                hint="Check permissions on the data directory's parent",
            ) from e
        logger.debug(f"Wrote password file {path}")

    def read_credential(self, data_dir: Path) -> str | None:
        """Read the stored credential.

        Returns:
            Password with surrounding whitespace removed, or None if the
            file is missing, unreadable or empty
        """
        path = credential_file_path(data_dir)
        if not path.exists():
            return None

        try:
            secret = path.read_text(encoding="utf-8").strip()
        except OSError as e:
            logger.warning(f"Failed to read password file {path}: {e}")
            return None

        return secret or None
