"""Listener lifecycle state management."""

import logging
import threading
from enum import Enum
from typing import Optional

from listener.domain.connection_scope import ConnectionLoggerAdapter

LIFECYCLE_LOGGER = ConnectionLoggerAdapter(logging.getLogger("listener.lifecycle"), {})


class ListenerState(Enum):
    """States of one listener. STARTING failures are terminal."""

    STARTING = "starting"
    ACCEPTING = "accepting"
    SHUTTING_DOWN = "shutting_down"


class ListenerLifecycle:
    """Thread-safe holder for a listener's state and its startup outcome."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._state = ListenerState.STARTING
        self._settled = threading.Event()
        self._failure: Optional[BaseException] = None

    @property
    def state(self) -> ListenerState:
        with self._lock:
            return self._state

    @property
    def failure(self) -> Optional[BaseException]:
        """Return the error that aborted startup, if any."""
        with self._lock:
            return self._failure

    def mark_accepting(self) -> None:
        """Move STARTING to ACCEPTING once every startup step succeeded."""
        with self._lock:
            if self._state is not ListenerState.STARTING:
                return
            self._state = ListenerState.ACCEPTING
        self._settled.set()
        LIFECYCLE_LOGGER.debug(
            "Listener accepting",
            extra={"event": "state_changed", "listener": self.name, "state": "accepting"},
        )

    def mark_failed(self, error: BaseException) -> None:
        """Record a terminal startup failure."""
        with self._lock:
            self._failure = error
            self._state = ListenerState.SHUTTING_DOWN
        self._settled.set()

    def begin_shutdown(self) -> bool:
        """Move to SHUTTING_DOWN. Returns False when already there."""
        with self._lock:
            if self._state is ListenerState.SHUTTING_DOWN:
                return False
            self._state = ListenerState.SHUTTING_DOWN
        self._settled.set()
        LIFECYCLE_LOGGER.info(
            "Listener shutting down",
            extra={
                "event": "state_changed",
                "listener": self.name,
                "state": "shutting_down",
            },
        )
        return True

    def should_stop(self) -> bool:
        return self.state is ListenerState.SHUTTING_DOWN

    def wait_settled(self, timeout: Optional[float] = None) -> bool:
        """Block until startup either succeeded or failed."""
        return self._settled.wait(timeout)
