"""Unit tests for listener lifecycle state tracking."""

import threading

from listener.domain.errors import BindError
from listener.lifecycle.state import ListenerLifecycle, ListenerState


class TestListenerLifecycle:
    """Tests for ListenerLifecycle transitions."""

    def test_initial_state(self):
        """Lifecycle starts in STARTING and is not settled."""
        lifecycle = ListenerLifecycle("plaintext:80")
        assert lifecycle.state is ListenerState.STARTING
        assert not lifecycle.should_stop()
        assert not lifecycle.wait_settled(timeout=0)

    def test_mark_accepting_settles(self):
        """STARTING moves to ACCEPTING and wakes waiters."""
        lifecycle = ListenerLifecycle("plaintext:80")
        lifecycle.mark_accepting()
        assert lifecycle.state is ListenerState.ACCEPTING
        assert lifecycle.wait_settled(timeout=0)
        assert lifecycle.failure is None

    def test_mark_failed_records_error(self):
        """A startup failure is terminal and remembered."""
        lifecycle = ListenerLifecycle("tls:443")
        error = BindError("in use")
        lifecycle.mark_failed(error)
        assert lifecycle.state is ListenerState.SHUTTING_DOWN
        assert lifecycle.failure is error
        assert lifecycle.should_stop()

    def test_mark_accepting_after_shutdown_is_ignored(self):
        """A late startup success cannot revive a stopped listener."""
        lifecycle = ListenerLifecycle("tls:443")
        lifecycle.begin_shutdown()
        lifecycle.mark_accepting()
        assert lifecycle.state is ListenerState.SHUTTING_DOWN

    def test_begin_shutdown_only_once(self):
        """The first shutdown request wins."""
        lifecycle = ListenerLifecycle("plaintext:80")
        lifecycle.mark_accepting()
        assert lifecycle.begin_shutdown() is True
        assert lifecycle.begin_shutdown() is False

    def test_wait_settled_wakes_other_threads(self):
        """Threads waiting for startup are released on success."""
        lifecycle = ListenerLifecycle("plaintext:80")
        woke = threading.Event()

        def waiter():
            if lifecycle.wait_settled(timeout=5):
                woke.set()

        thread = threading.Thread(target=waiter)
        thread.start()
        lifecycle.mark_accepting()
        thread.join(timeout=5)
        assert woke.is_set()
