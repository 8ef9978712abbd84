"""Domain exceptions for pgx lifecycle operations.

These exceptions represent lifecycle rule violations and engine failures.
They should be caught at the application boundary (CLI) and converted
to appropriate user-facing error messages.
"""


class PgxDomainError(Exception):
    """Base exception for all domain errors.

    Attributes:
        message: User-facing error message.
        hint: Optional actionable suggestion.
    """

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class AlreadyRunningError(PgxDomainError):
    """Raised when starting a data directory whose server is already running."""

    pass


class NotRunningError(PgxDomainError):
    """Raised when an operation needs a running server and there is none."""

    pass


class NoRecordError(PgxDomainError):
    """Raised when the server is running but no endpoint record is available."""

    pass


class SetupFailedError(PgxDomainError):
    """Raised when the engine fails to prepare binaries or the data directory."""

    pass


class StartFailedError(PgxDomainError):
    """Raised when the engine fails to start the server."""

    pass


class StopFailedError(PgxDomainError):
    """Raised when the engine fails to stop the server."""

    pass


class PersistenceFailedError(PgxDomainError):
    """Raised when sidecar state cannot be written."""

    pass


class CredentialMissingError(PgxDomainError):
    """Raised when an initialized data directory has no stored password."""

    pass
