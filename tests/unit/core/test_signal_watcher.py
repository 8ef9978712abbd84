"""Tests for SignalWatcher and ShutdownToken."""

import signal
import sys
import threading

import pytest

from pgx.core.lifecycle.signal_watcher import (
    ShutdownReason,
    ShutdownToken,
    SignalWatcher,
)

posix_only = pytest.mark.skipif(
    sys.platform == "win32", reason="relies on POSIX signal delivery"
)


class TestShutdownToken:
    """Tests for the single-shot token."""

    def test_starts_unset(self):
        token = ShutdownToken()

        assert token.is_set is False
        assert token.consume() is False

    def test_first_trigger_wins(self):
        token = ShutdownToken()

        assert token.trigger(signal.SIGINT) is True
        assert token.trigger(signal.SIGTERM) is False
        assert token.signum == signal.SIGINT

    def test_consume_succeeds_once(self):
        token = ShutdownToken()
        token.trigger(signal.SIGTERM)

        assert token.consume() is True
        assert token.consume() is False

    def test_concurrent_consumers_get_one_winner(self):
        token = ShutdownToken()
        token.trigger(signal.SIGINT)
        results: list[bool] = []
        lock = threading.Lock()

        def worker():
            won = token.consume()
            with lock:
                results.append(won)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1

    def test_wait_times_out_when_unset(self):
        assert ShutdownToken().wait(0.01) is False


@posix_only
class TestSignalWatcher:
    """Tests for handler installation and signal routing."""

    def test_sigint_sets_token(self):
        with SignalWatcher() as watcher:
            signal.raise_signal(signal.SIGINT)

            assert watcher.token.is_set
            assert watcher.token.signum == signal.SIGINT

    def test_sigterm_sets_token(self):
        with SignalWatcher() as watcher:
            signal.raise_signal(signal.SIGTERM)

            assert watcher.token.signum == signal.SIGTERM

    def test_signals_ignored_after_first(self):
        with SignalWatcher() as watcher:
            signal.raise_signal(signal.SIGINT)

            assert signal.getsignal(signal.SIGINT) is signal.SIG_IGN
            assert signal.getsignal(signal.SIGTERM) is signal.SIG_IGN
            signal.raise_signal(signal.SIGTERM)
            assert watcher.token.signum == signal.SIGINT

    def test_previous_handlers_restored(self):
        before_int = signal.getsignal(signal.SIGINT)
        before_term = signal.getsignal(signal.SIGTERM)

        with SignalWatcher():
            signal.raise_signal(signal.SIGINT)

        assert signal.getsignal(signal.SIGINT) is before_int
        assert signal.getsignal(signal.SIGTERM) is before_term

    def test_wait_returns_signal_reason(self):
        with SignalWatcher() as watcher:
            signal.raise_signal(signal.SIGTERM)

            assert watcher.wait(poll_interval=0.01) is ShutdownReason.SIGNAL

    def test_wait_returns_when_probe_reports_stopped(self):
        probes: list[int] = []

        def still_running() -> bool:
            probes.append(1)
            return len(probes) < 3

        with SignalWatcher() as watcher:
            reason = watcher.wait(still_running=still_running, poll_interval=0.01)

        assert reason is ShutdownReason.ENGINE_STOPPED
        assert len(probes) == 3
        assert watcher.token.is_set is False

    def test_signal_during_wait_ends_it(self):
        def still_running() -> bool:
            signal.raise_signal(signal.SIGINT)
            return True

        with SignalWatcher() as watcher:
            reason = watcher.wait(still_running=still_running, poll_interval=0.01)

        assert reason is ShutdownReason.SIGNAL

    def test_signal_during_failed_probe_wins(self):
        """A server gone at the same time as a signal still reports SIGNAL."""

        def still_running() -> bool:
            signal.raise_signal(signal.SIGTERM)
            return False

        with SignalWatcher() as watcher:
            reason = watcher.wait(still_running=still_running, poll_interval=0.01)

        assert reason is ShutdownReason.SIGNAL
        assert watcher.token.consume() is True
