"""CLI error handling with actionable hints.

Provides consistent error formatting and common error factory functions
for all pgx CLI commands.
"""

from typing import NoReturn

import click


class PgxCliError(click.ClickException):
    """CLI error with actionable hint for users.

    Provides consistent error formatting across all pgx commands with
    optional hints that guide users toward resolving the issue.

    Attributes:
        message: The primary error message.
        hint: Optional actionable suggestion for the user.

    Example:
        raise PgxCliError(
            "No server running for /srv/pgdata",
            hint="Run 'pgx start --data-dir /srv/pgdata' first"
        )
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        """Initialize the error with message and optional hint.

        Args:
            message: The primary error message.
            hint: Optional actionable suggestion for the user.
        """
        super().__init__(message)
        self.hint = hint

    def format_message(self) -> str:
        """Format the error message with hint if present.

        Returns:
            Formatted error message, with hint on a new line if provided.
        """
        msg = self.message
        if self.hint:
            msg += f"\nHint: {self.hint}"
        return msg


def data_dir_required_error(env_var: str) -> NoReturn:
    """Raise error when no data directory was given.

    Args:
        env_var: Name of the environment override.

    Raises:
        PgxCliError: Always raises with usage hint.
    """
    raise PgxCliError(
        "No data directory given",
        hint=f"Pass --data-dir PATH or set {env_var}",
    )


def config_exists_error(path: str) -> NoReturn:
    """Raise error when a config file would be overwritten.

    Args:
        path: The existing config file.

    Raises:
        PgxCliError: Always raises with overwrite hint.
    """
    raise PgxCliError(
        f"Config file already exists: {path}",
        hint="Use --force to overwrite it",
    )
