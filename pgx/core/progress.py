"""Progress reporting utilities for CLI commands.

Provides a Rich spinner on stderr so stdout carries only command results.
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

logger = logging.getLogger(__name__)


class RichStepProgress:
    """Rich-based step callback that shows a spinner with the current step."""

    def __init__(self, progress: Progress) -> None:
        """Initialize with a Rich Progress instance.

        Args:
            progress: Rich Progress instance to use for display.
        """
        self.progress = progress
        self.task_id: int | None = None

    def on_step(self, description: str) -> None:
        """Show description next to the spinner."""
        logger.debug(description)
        if self.task_id is None:
            self.task_id = self.progress.add_task(description, total=None)
        else:
            self.progress.update(self.task_id, description=description)

    def on_complete(self) -> None:
        """Hide the spinner.

        A foreground start keeps running after this, so the live display is
        stopped here rather than when the context manager exits.
        """
        if self.task_id is not None:
            self.progress.remove_task(self.task_id)
            self.task_id = None
        self.progress.stop()


@contextmanager
def progress_context(
    quiet_mode: bool = False,
) -> Generator[RichStepProgress | None, None, None]:
    """Context manager for creating a step spinner.

    Args:
        quiet_mode: If True, returns None (no progress reporting).

    Yields:
        RichStepProgress if not quiet, None otherwise.
    """
    if quiet_mode:
        yield None
    else:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=Console(stderr=True),
            transient=True,
        ) as progress:
            yield RichStepProgress(progress)
