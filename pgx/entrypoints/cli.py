"""pgx CLI entrypoint.

Command-line interface for running a local PostgreSQL server from a data
directory. Each command is a separate process; they coordinate through the
sidecar files next to the data directory and the server's own PID file.
"""

from __future__ import annotations

import functools
import logging
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

if TYPE_CHECKING:
    from pgx.core.lifecycle.coordinator import LifecycleCoordinator
    from pgx.domain.config import PgxConfig

from pgx.core.errors import PgxCliError, config_exists_error, data_dir_required_error
from pgx.domain.exceptions import PgxDomainError
from pgx.version import __version__

DATA_DIR_ENV_VAR = "PGX_DATA_DIR"
LOG_LEVEL_ENV_VAR = "PGX_LOG_LEVEL"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

NO_DETAILS_MESSAGE = "connection details unavailable (missing state or password metadata)"


def handle_cli_errors(command_name: str):
    """Decorator to handle common CLI errors.

    Domain errors become PgxCliError with their hint; anything unexpected is
    reported with the command name, and a traceback in verbose mode.
    PgxCliError exceptions are re-raised to use their built-in formatting.

    Args:
        command_name: Name of the command for error messages.

    Returns:
        Decorated function with error handling.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except (PgxCliError, click.exceptions.Exit, click.Abort):
                raise
            except PgxDomainError as e:
                raise PgxCliError(e.message, hint=e.hint) from e
            except Exception as e:
                ctx = click.get_current_context()
                if (ctx.obj or {}).get("verbose", False):
                    import traceback

                    traceback.print_exc()
                raise PgxCliError(
                    f"Unexpected error in {command_name}: {e}",
                    hint="Run with --verbose for more details",
                ) from e

        return wrapper

    return decorator


def _configure_logging(verbose: bool, quiet: bool) -> None:
    """Send log records to stderr so stdout carries only results.

    Third-party loggers stay at WARNING; the pgx logger is INFO by default,
    DEBUG with --verbose, WARNING with --quiet, or PGX_LOG_LEVEL if set.
    """
    logging.basicConfig(level=logging.WARNING, format=LOG_FORMAT, stream=sys.stderr)

    level_name = os.environ.get(LOG_LEVEL_ENV_VAR, "").upper()
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    elif level_name in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        level = getattr(logging, level_name)
    else:
        level = logging.INFO
    logging.getLogger("pgx").setLevel(level)


def _load_config() -> PgxConfig:
    """Load configuration from the global config file or defaults."""
    from pgx.adapters.factory import ConfigFactory

    return ConfigFactory().create_config_provider().load()


def _create_coordinator(config: PgxConfig) -> LifecycleCoordinator:
    """Create a lifecycle coordinator wired to the configured adapters."""
    from pgx.adapters.factory import CoordinatorFactory

    return CoordinatorFactory(config).create_coordinator()


def resolve_data_dir(data_dir: Path | None) -> Path:
    """Pick the data directory for a command.

    PGX_DATA_DIR takes precedence over --data-dir when both are given.

    Args:
        data_dir: Value of --data-dir, if given.

    Returns:
        Absolute data directory path.

    Raises:
        PgxCliError: If neither source provides a data directory.
    """
    override = os.environ.get(DATA_DIR_ENV_VAR, "")
    if override:
        return Path(override).expanduser().resolve()
    if data_dir is None:
        data_dir_required_error(DATA_DIR_ENV_VAR)
    return data_dir.expanduser().resolve()


def data_dir_option(func):
    """Attach the shared --data-dir option."""
    return click.option(
        "--data-dir",
        "data_dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help=f"PostgreSQL data directory ({DATA_DIR_ENV_VAR} overrides this).",
    )(func)


@click.group()
@click.version_option(version=__version__, prog_name="pgx")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output.",
)
@click.option(
    "--quiet",
    "-q",
    is_flag=True,
    help="Suppress non-essential output.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, quiet: bool) -> None:
    """pgx - Run a local PostgreSQL server from a data directory.

    Start it in one shell, then query, connect to and stop it from others.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose, quiet)


@cli.command()
@data_dir_option
@click.option(
    "--port",
    type=click.IntRange(0, 65535),
    default=None,
    help="Port to listen on (0 picks a free port; default from config).",
)
@click.option(
    "--host",
    type=str,
    default=None,
    help="Address to listen on (default from config, usually localhost).",
)
@click.option(
    "--daemon",
    "-d",
    is_flag=True,
    help="Leave the server running and return immediately.",
)
@click.pass_context
@handle_cli_errors("start")
def start(
    ctx: click.Context,
    data_dir: Path | None,
    port: int | None,
    host: str | None,
    daemon: bool,
) -> None:
    """Start PostgreSQL and print its connection URL.

    Without --daemon the command blocks until interrupted (Ctrl-C or
    SIGTERM), then stops the server. With --daemon it returns as soon as
    the server is up and the server keeps running.
    """
    from pgx.core.lifecycle.coordinator import StartRequest
    from pgx.core.lifecycle.signal_watcher import ShutdownReason
    from pgx.core.progress import progress_context

    identity = resolve_data_dir(data_dir)
    config = _load_config()
    coordinator = _create_coordinator(config)

    request = StartRequest(
        data_dir=identity,
        host=host if host is not None else config.server.host,
        port=port if port is not None else config.server.port,
        daemon=daemon,
    )

    def on_ready(url: str) -> None:
        click.echo(url)

    with progress_context(quiet_mode=ctx.obj.get("quiet", False)) as progress:
        response = coordinator.start(request, on_ready=on_ready, progress=progress)

    if response.detached:
        return
    if response.shutdown is ShutdownReason.SIGNAL:
        click.echo("PostgreSQL stopped cleanly.")
    else:
        click.echo("PostgreSQL is no longer running.")


@cli.command()
@data_dir_option
@handle_cli_errors("stop")
def stop(data_dir: Path | None) -> None:
    """Stop the server for a data directory (no-op if not running)."""
    identity = resolve_data_dir(data_dir)
    coordinator = _create_coordinator(_load_config())

    response = coordinator.stop(identity)
    if response.was_running:
        click.echo("stopped")
    else:
        click.echo("not running")


@cli.command()
@data_dir_option
@handle_cli_errors("status")
def status(data_dir: Path | None) -> None:
    """Show whether the server is running and how to connect to it."""
    identity = resolve_data_dir(data_dir)
    coordinator = _create_coordinator(_load_config())

    response = coordinator.status(identity)
    if not response.running:
        click.echo("not running")
        return

    click.echo("running")
    click.echo(response.url or NO_DETAILS_MESSAGE)


@cli.command()
@data_dir_option
@handle_cli_errors("url")
def url(data_dir: Path | None) -> None:
    """Print the connection URL of a running server."""
    identity = resolve_data_dir(data_dir)
    coordinator = _create_coordinator(_load_config())

    click.echo(coordinator.url(identity))


# Configuration management commands
@cli.group()
def config() -> None:
    """Manage the pgx configuration file.

    Settings cover the PostgreSQL version and binaries, the default listen
    address, and the foreground shutdown wait.
    """
    pass


@config.command(name="show")
@handle_cli_errors("config show")
def config_show() -> None:
    """Show the config file location and effective settings as TOML."""
    from pgx.shared.config_io import dump_config, get_global_config_path

    path = get_global_config_path()
    status_text = "exists" if path.exists() else "not found, using defaults"
    click.echo(f"# {path} ({status_text})")
    click.echo(dump_config(_load_config()), nl=False)


@config.command(name="path")
@handle_cli_errors("config path")
def config_path() -> None:
    """Print the config file path for use in scripts."""
    from pgx.shared.config_io import get_global_config_path

    click.echo(get_global_config_path())


@config.command(name="init")
@click.option("--force", "-f", is_flag=True, help="Overwrite an existing file.")
@handle_cli_errors("config init")
def config_init(force: bool) -> None:
    """Write a config file with the default settings."""
    from pgx.domain.config import PgxConfig
    from pgx.shared.config_io import get_global_config_path, save_config

    path = get_global_config_path()
    if path.exists() and not force:
        config_exists_error(str(path))

    save_config(PgxConfig.default(), path)
    click.echo(f"✓ Wrote default config to {path}")


def main() -> int:
    """Main entrypoint for the CLI."""
    try:
        cli(obj={})
        return 0
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
