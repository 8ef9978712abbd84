"""Factory classes for coordinator and adapter instantiation.

This module centralizes the creation of the lifecycle coordinator and its
dependencies, keeping the CLI layer free from direct adapter imports.

The factories use lazy imports so commands that only read config do not
load the engine adapter and its dependencies.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pgx.core.lifecycle.coordinator import LifecycleCoordinator
    from pgx.domain.config import PgxConfig
    from pgx.ports.config import ConfigProvider
    from pgx.ports.engine import EngineManager
    from pgx.ports.state_store import StateStore


class ConfigFactory:
    """Factory for creating configuration providers."""

    def create_config_provider(self) -> ConfigProvider:
        """Create the TOML config provider.

        Returns:
            TomlConfigProvider instance.
        """
        from pgx.adapters.config.toml_config_provider import TomlConfigProvider

        return TomlConfigProvider()


class EngineFactory:
    """Factory for creating engine managers.

    Args:
        config: PgxConfig with engine settings.
    """

    def __init__(self, config: PgxConfig) -> None:
        """Initialize factory with configuration.

        Args:
            config: Configuration containing engine settings.
        """
        self._config = config

    def create_engine_manager(self) -> EngineManager:
        """Create the pg_ctl-based engine manager.

        Returns:
            PgCtlEngineManager configured from the engine section.
        """
        from pgx.adapters.postgres.engine_manager import PgCtlEngineManager

        engine = self._config.engine
        return PgCtlEngineManager(
            version=engine.version,
            bin_dir=Path(engine.bin_dir).expanduser() if engine.bin_dir else None,
            stop_mode=engine.stop_mode,
            timeout=engine.timeout,
            superuser=self._config.server.superuser,
        )


class CoordinatorFactory:
    """Factory for creating the lifecycle coordinator.

    Args:
        config: PgxConfig with engine, server and shutdown settings.
    """

    def __init__(self, config: PgxConfig) -> None:
        """Initialize factory with configuration.

        Args:
            config: Complete pgx configuration.
        """
        self._config = config

    def create_state_store(self) -> StateStore:
        from pgx.adapters.sidecar.state_store import SidecarStateStore

        return SidecarStateStore()

    def create_coordinator(
        self, engine: EngineManager | None = None
    ) -> LifecycleCoordinator:
        """Create a coordinator wired to the configured adapters.

        Args:
            engine: Engine manager to use (default: from EngineFactory).

        Returns:
            Configured LifecycleCoordinator.
        """
        from pgx.core.lifecycle.coordinator import LifecycleCoordinator

        if engine is None:
            engine = EngineFactory(self._config).create_engine_manager()

        return LifecycleCoordinator(
            engine=engine,
            store=self.create_state_store(),
            version=self._config.engine.version,
            superuser=self._config.server.superuser,
            database=self._config.server.database,
            poll_interval=self._config.shutdown.poll_interval,
        )
