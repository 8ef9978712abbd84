"""Config domain models for pgx.

Configuration is stored in config.toml under the user's config directory
and holds defaults for the engine, the listening address and the foreground
shutdown wait. This module defines the domain models that represent
validated configuration state.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Literal


@dataclass(frozen=True)
class EngineSettings:
    """Configuration for the PostgreSQL engine.

    Attributes:
        version: Pinned PostgreSQL major version (e.g., "18")
        bin_dir: Directory holding postgres/initdb/pg_ctl. Empty means search
                 PATH and the conventional install locations.
        stop_mode: pg_ctl shutdown mode - "smart", "fast" (default) or "immediate"
        timeout: Seconds pg_ctl waits for start/stop to complete

    Raises:
        ValueError: If version is not a positive integer string or timeout
                   is not positive.
    """

    version: str = "18"
    bin_dir: str = ""
    stop_mode: Literal["smart", "fast", "immediate"] = "fast"
    timeout: int = 60

    def __post_init__(self) -> None:
        """Validate engine settings after initialization."""
        # TOML allows version = 18 as well as version = "18"
        object.__setattr__(self, "version", str(self.version))
        if not self.version.isdigit() or int(self.version) <= 0:
            raise ValueError(
                f"version must be a PostgreSQL major version, got {self.version!r}"
            )
        if self.stop_mode not in ("smart", "fast", "immediate"):
            raise ValueError(
                f"stop_mode must be smart, fast or immediate, got {self.stop_mode!r}"
            )
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")


@dataclass(frozen=True)
class ServerSettings:
    """Configuration for the server's listening address and URL.

    Attributes:
        host: Address to listen on (default: localhost)
        port: Port to listen on; 0 picks a free port at start time
        superuser: Role name used in the connection URL
        database: Database name used in the connection URL

    Raises:
        ValueError: If host is empty or port is out of range.
    """

    host: str = "localhost"
    port: int = 0
    superuser: str = "postgres"
    database: str = "postgres"

    def __post_init__(self) -> None:
        """Validate server settings after initialization."""
        if not self.host:
            raise ValueError("host must not be empty")
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port must be between 0 and 65535, got {self.port}")


@dataclass(frozen=True)
class ShutdownSettings:
    """Configuration for the foreground wait.

    Attributes:
        poll_interval: Seconds between engine liveness checks while waiting
                       for a shutdown signal (default: 0.25)

    Raises:
        ValueError: If poll_interval is not positive.
    """

    poll_interval: float = 0.25

    def __post_init__(self) -> None:
        """Validate shutdown settings after initialization."""
        if self.poll_interval <= 0:
            raise ValueError(
                f"poll_interval must be positive, got {self.poll_interval}"
            )


@dataclass(frozen=True)
class PgxConfig:
    """Complete pgx configuration.

    Attributes:
        engine: Engine binaries and pg_ctl behavior
        server: Listening address and URL components
        shutdown: Foreground shutdown wait behavior
    """

    engine: EngineSettings = field(default_factory=EngineSettings)
    server: ServerSettings = field(default_factory=ServerSettings)
    shutdown: ShutdownSettings = field(default_factory=ShutdownSettings)

    @staticmethod
    def default() -> "PgxConfig":
        """Create a config with all default values."""
        return PgxConfig(
            engine=EngineSettings(),
            server=ServerSettings(),
            shutdown=ShutdownSettings(),
        )

    @staticmethod
    def from_partial(base: "PgxConfig", data: dict[str, Any]) -> "PgxConfig":
        """Overlay partial config data onto an existing config.

        Keys present in ``data`` replace the corresponding values in ``base``;
        missing sections and keys keep their base values. Each section is
        rebuilt through its dataclass so validation runs at every step.

        Args:
            base: Config to overlay onto
            data: Raw config data (e.g., parsed TOML)

        Returns:
            New PgxConfig with overrides applied

        Raises:
            ValueError: If a section is not a table, a key is unknown, or a
                       value fails validation.
        """
        sections: dict[str, Any] = {}
        for section_field in fields(base):
            name = section_field.name
            current = getattr(base, name)
            overrides = data.get(name)
            if overrides is None:
                continue
            if not isinstance(overrides, dict):
                raise ValueError(f"[{name}] must be a table")

            known = {f.name for f in fields(current)}
            unknown = set(overrides) - known
            if unknown:
                raise ValueError(
                    f"Unknown keys in [{name}]: {', '.join(sorted(unknown))}"
                )
            try:
                sections[name] = replace(current, **overrides)
            except TypeError as e:
                raise ValueError(f"Invalid value in [{name}]: {e}") from e

        unknown_sections = set(data) - {f.name for f in fields(base)}
        if unknown_sections:
            raise ValueError(
                f"Unknown config sections: {', '.join(sorted(unknown_sections))}"
            )

        return replace(base, **sections)
