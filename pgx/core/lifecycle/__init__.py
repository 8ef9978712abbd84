"""Server lifecycle coordination.

- coordinator.py: start/stop/status/url operations
- handle.py: explicit ownership of a started server (stop or detach)
- signal_watcher.py: SIGINT/SIGTERM to single-shot shutdown token
"""

from pgx.core.lifecycle.coordinator import (
    LifecycleCoordinator,
    StartRequest,
    StartResponse,
    StatusResponse,
    StopResponse,
)
from pgx.core.lifecycle.handle import EngineHandle
from pgx.core.lifecycle.signal_watcher import ShutdownReason, SignalWatcher

__all__ = [
    "EngineHandle",
    "LifecycleCoordinator",
    "ShutdownReason",
    "SignalWatcher",
    "StartRequest",
    "StartResponse",
    "StatusResponse",
    "StopResponse",
]
