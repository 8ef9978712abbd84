"""Explicit ownership of a server started by this process.

An EngineHandle owns the server from a successful start until it is either
stopped or detached. Leaving the handle's ``with`` block while it still owns
the server stops it, which covers errors after start (such as a failed
state write). Daemon mode detaches the handle so the server outlives the
invoking process.
"""

import logging
from pathlib import Path

from pgx.domain.entities import Endpoint, EngineConfig
from pgx.domain.exceptions import PgxDomainError
from pgx.ports.engine import EngineManager

logger = logging.getLogger(__name__)


class EngineHandle:
    """Owned reference to a running server."""

    def __init__(self, engine: EngineManager, data_dir: Path) -> None:
        self._engine = engine
        self.data_dir = data_dir
        self._owned = False

    @property
    def owned(self) -> bool:
        return self._owned

    def start(self, config: EngineConfig) -> Endpoint:
        """Start the server and take ownership of it."""
        endpoint = self._engine.start(config)
        self._owned = True
        return endpoint

    def stop(self) -> None:
        """Stop the owned server and release ownership."""
        if not self._owned:
            return
        self._owned = False
        self._engine.stop(self.data_dir)

    def detach(self) -> None:
        """Release ownership without stopping the server."""
        if self._owned:
            logger.debug(f"Detached from server for {self.data_dir}")
        self._owned = False

    def __enter__(self) -> "EngineHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._owned:
            return
        if exc_type is None:
            self.stop()
            return

        logger.warning(f"Stopping server for {self.data_dir} after failed start")
        try:
            self.stop()
        except PgxDomainError as e:
            # The original exception is the one worth surfacing
            logger.error(f"Failed to stop server: {e.message}")
