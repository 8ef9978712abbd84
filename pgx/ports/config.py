"""Configuration provider port.

Defines the interface for loading and accessing application configuration.
"""

from pathlib import Path
from typing import Protocol

from pgx.domain.config import PgxConfig


class ConfigProvider(Protocol):
    """Protocol for loading and providing configuration."""

    def load(self, path: Path | None = None) -> PgxConfig:
        """Load configuration.

        Args:
            path: Explicit config.toml path. None means the default location.

        Returns:
            PgxConfig instance with loaded or default values

        Note:
            Implementations should gracefully fall back to defaults
            if config file is missing or invalid.
        """
        ...
