"""TOML-based configuration provider.

Loads configuration from the global config.toml over built-in defaults.

Config loading priority (highest to lowest):
1. Explicit path passed to load() or PGX_CONFIG
2. Global: ~/.config/pgx/config.toml (user defaults)
3. Built-in defaults
"""

import logging
from pathlib import Path

from pgx.domain.config import PgxConfig
from pgx.shared.config_io import get_global_config_path, load_config

logger = logging.getLogger(__name__)


class TomlConfigProvider:
    """Configuration provider that loads from TOML files.

    Gracefully handles missing or invalid configs with warnings.
    """

    def load(self, path: Path | None = None) -> PgxConfig:
        """Load configuration with fallback to defaults.

        Args:
            path: Explicit config.toml path (default: global config path)

        Returns:
            PgxConfig instance with file values or defaults
        """
        config_path = path or get_global_config_path()

        if not config_path.exists():
            logger.debug("No config file at %s, using defaults", config_path)
            return PgxConfig.default()

        try:
            config = load_config(config_path)
            logger.debug("Loaded config from %s", config_path)
        except (FileNotFoundError, ValueError) as e:
            logger.warning(
                "Failed to parse config at %s: %s. Using default configuration.",
                config_path,
                e,
            )
            return PgxConfig.default()

        return config
