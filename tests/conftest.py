"""Pytest configuration and shared fixtures."""

import signal
from collections.abc import Callable
from pathlib import Path

import pytest

from pgx.adapters.sidecar.state_store import SidecarStateStore
from pgx.core.lifecycle.coordinator import LifecycleCoordinator
from tests.fixtures import FakeEngineManager

TEST_CREDENTIAL = "s3cret-Token_42"

# ============================================================================
# Environment Isolation
# ============================================================================
# pgx reads PGX_DATA_DIR, PGX_CONFIG and PGX_LOG_LEVEL. Tests must never see
# the developer's own settings or config file.


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Point PGX_CONFIG at a missing file and clear other pgx variables.

    Returns:
        The (nonexistent) config path tests may create.
    """
    config_path = tmp_path / "xdg" / "pgx" / "config.toml"
    monkeypatch.setenv("PGX_CONFIG", str(config_path))
    monkeypatch.delenv("PGX_DATA_DIR", raising=False)
    monkeypatch.delenv("PGX_LOG_LEVEL", raising=False)
    return config_path


# ============================================================================
# Coordinator Fixtures
# ============================================================================


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Data directory path that does not exist yet."""
    return tmp_path / "cluster" / "pgdata"


@pytest.fixture
def fake_engine() -> FakeEngineManager:
    return FakeEngineManager()


@pytest.fixture
def store() -> SidecarStateStore:
    return SidecarStateStore()


@pytest.fixture
def make_coordinator(
    fake_engine: FakeEngineManager, store: SidecarStateStore
) -> Callable[..., LifecycleCoordinator]:
    """Build coordinators sharing one fake engine, like separate invocations."""

    def _make(**kwargs) -> LifecycleCoordinator:
        kwargs.setdefault("poll_interval", 0.01)
        kwargs.setdefault("credential_factory", lambda: TEST_CREDENTIAL)
        return LifecycleCoordinator(engine=fake_engine, store=store, **kwargs)

    return _make


@pytest.fixture
def coordinator(make_coordinator) -> LifecycleCoordinator:
    return make_coordinator()


def raise_signal_once_running(
    engine: FakeEngineManager,
    sig: signal.Signals = signal.SIGINT,
    times: int = 1,
) -> Callable[[Path], None]:
    """Build an on_status hook that delivers sig once the server is up.

    The hook runs inside the foreground wait loop, on the main thread, so
    the signal reaches the installed handler synchronously.

    Args:
        engine: Fake engine whose running servers are checked.
        sig: Signal to raise.
        times: How many times to raise it back to back.
    """
    fired = False

    def hook(data_dir: Path) -> None:
        nonlocal fired
        if fired or data_dir not in engine.running:
            return
        fired = True
        for _ in range(times):
            signal.raise_signal(sig)

    return hook


def crash_then_signal(
    engine: FakeEngineManager, sig: signal.Signals = signal.SIGINT
) -> Callable[[Path], None]:
    """Build an on_status hook where the server dies just before sig arrives.

    The liveness probe that runs the hook then sees the server gone while
    the shutdown token is already set.
    """
    fired = False

    def hook(data_dir: Path) -> None:
        nonlocal fired
        if fired or data_dir not in engine.running:
            return
        fired = True
        engine.crash(data_dir)
        signal.raise_signal(sig)

    return hook
