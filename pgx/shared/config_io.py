"""Configuration I/O utilities for reading and writing TOML config files.

This module handles serialization/deserialization of PgxConfig to/from TOML format.
"""

import os
import platform
import tomllib  # Built-in Python 3.11+
from dataclasses import asdict
from pathlib import Path
from typing import Any

import tomli_w

from pgx.domain.config import PgxConfig

CONFIG_ENV_VAR = "PGX_CONFIG"


def get_global_config_path() -> Path:
    """Get the path to the global config file.

    The location is platform-dependent:
    - PGX_CONFIG, when set, wins everywhere
    - Linux/macOS: $XDG_CONFIG_HOME/pgx/config.toml or ~/.config/pgx/config.toml
    - Windows: %APPDATA%/pgx/config.toml

    Returns:
        Path to the global config file (may not exist)
    """
    override = os.environ.get(CONFIG_ENV_VAR, "")
    if override:
        return Path(override)

    if platform.system() == "Windows":
        appdata = os.environ.get("APPDATA", "")
        if appdata:
            return Path(appdata) / "pgx" / "config.toml"
        return Path.home() / ".config" / "pgx" / "config.toml"
    else:
        xdg_config = os.environ.get("XDG_CONFIG_HOME", "")
        if xdg_config:
            return Path(xdg_config) / "pgx" / "config.toml"
        return Path.home() / ".config" / "pgx" / "config.toml"


def load_config_data(path: Path) -> dict[str, Any]:
    """Load raw TOML data from a config file.

    Args:
        path: Path to config.toml file

    Returns:
        Dictionary with parsed TOML data

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is malformed
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in config file: {e}") from e


def load_config(path: Path) -> PgxConfig:
    """Load configuration from a TOML file over built-in defaults.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is malformed or holds invalid values
    """
    return PgxConfig.from_partial(PgxConfig.default(), load_config_data(path))


def config_to_data(config: PgxConfig) -> dict[str, Any]:
    """Convert a PgxConfig into plain TOML-serializable data."""
    return asdict(config)


def dump_config(config: PgxConfig) -> str:
    """Render a PgxConfig as TOML text."""
    return tomli_w.dumps(config_to_data(config))


def save_config(config: PgxConfig, path: Path) -> None:
    """Save configuration to a TOML file.

    Args:
        config: PgxConfig to save
        path: Destination path for config.toml
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as f:
        tomli_w.dump(config_to_data(config), f)
