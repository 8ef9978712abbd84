"""Progress reporting protocol for lifecycle operations.

Defines the callback interface for reporting steps while a server is being
prepared and started.
"""

from typing import Protocol


class StepProgress(Protocol):
    """Protocol for step-wise progress callbacks.

    Implementations can use this to provide visual feedback while binaries
    are checked and the server starts, without the coordinator depending on
    a specific UI library.
    """

    def on_step(self, description: str) -> None:
        """Called when a new step begins.

        Args:
            description: Human-readable description of the step.
        """
        ...

    def on_complete(self) -> None:
        """Called once the server is up, before the connection URL is shown."""
        ...
