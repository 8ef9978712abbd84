"""Signal watcher for foreground servers.

Turns SIGINT and SIGTERM into a single-shot shutdown token. The first signal
sets the token and switches both signals to SIG_IGN, so a second Ctrl-C
cannot interrupt the shutdown sequence. Previous handlers are restored when
the watcher's context exits.
"""

import logging
import signal
import threading
from collections.abc import Callable
from enum import Enum
from types import FrameType

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class ShutdownReason(str, Enum):
    """Why a foreground wait ended."""

    SIGNAL = "signal"
    ENGINE_STOPPED = "engine_stopped"


class ShutdownToken:
    """Cancellation token that fires once and can be consumed once."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._consumed = False
        self.signum: int | None = None

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    def trigger(self, signum: int) -> bool:
        """Fire the token.

        Returns:
            True for the call that fired it, False for every later call
        """
        with self._lock:
            if self._event.is_set():
                return False
            self.signum = signum
            self._event.set()
            return True

    def consume(self) -> bool:
        """Claim the right to run the shutdown sequence.

        Returns:
            True exactly once, and only after the token has fired
        """
        with self._lock:
            if not self._event.is_set() or self._consumed:
                return False
            self._consumed = True
            return True

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)


class SignalWatcher:
    """Context manager that routes shutdown signals into a ShutdownToken.

    Must be entered from the main thread, as Python only installs signal
    handlers there.
    """

    def __init__(self, signals: tuple[signal.Signals, ...] = SHUTDOWN_SIGNALS) -> None:
        self.signals = signals
        self.token = ShutdownToken()
        self._previous: dict[signal.Signals, Callable | int | None] = {}

    def __enter__(self) -> "SignalWatcher":
        for sig in self.signals:
            self._previous[sig] = signal.getsignal(sig)
            signal.signal(sig, self._handle)
        logger.debug("Shutdown signal handlers installed")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        for sig, previous in self._previous.items():
            signal.signal(sig, previous if previous is not None else signal.SIG_DFL)
        self._previous.clear()
        logger.debug("Shutdown signal handlers restored")

    def _handle(self, signum: int, frame: FrameType | None) -> None:
        if not self.token.trigger(signum):
            return
        logger.info(f"Received {signal.Signals(signum).name}, shutting down...")
        for sig in self.signals:
            signal.signal(sig, signal.SIG_IGN)

    def wait(
        self,
        still_running: Callable[[], bool] | None = None,
        poll_interval: float = 0.25,
    ) -> ShutdownReason:
        """Block until a shutdown signal arrives or the server goes away.

        Args:
            still_running: Liveness probe polled between waits; returning
                False ends the wait without a signal
            poll_interval: Seconds between liveness probes

        Returns:
            Reason the wait ended
        """
        while not self.token.wait(poll_interval):
            if still_running is not None and not still_running():
                # A signal that landed during the probe still asks for shutdown
                if self.token.is_set:
                    return ShutdownReason.SIGNAL
                logger.info("Server is no longer running")
                return ShutdownReason.ENGINE_STOPPED
        return ShutdownReason.SIGNAL
