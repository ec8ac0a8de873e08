"""Supervisor running the plaintext and TLS listeners side by side."""

import logging
import sys
import threading
from typing import Iterable, Optional, TextIO

from listener.bootstrap.config import ListenerConfig
from listener.domain.connection_scope import ConnectionLoggerAdapter
from listener.domain.errors import StartupError
from listener.lifecycle.state import ListenerState
from listener.pipeline.io import DEFAULT_BUFFER_SIZE
from listener.transport.accept_loop import Listener

SUPERVISOR_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("listener.supervisor"), {}
)

EXIT_OK = 0
EXIT_STARTUP_FAILURE = 1


class ServiceSupervisor:
    """Starts every listener on its own thread and waits for all of them.

    Startup is independent per listener: one listener failing to start is
    reported without touching the others.
    """

    def __init__(
        self,
        configs: Iterable[ListenerConfig],
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        socket_timeout: Optional[float] = None,
        verbose: bool = False,
        error_stream: Optional[TextIO] = None,
    ) -> None:
        self.listeners = [
            Listener(
                config,
                buffer_size=buffer_size,
                socket_timeout=socket_timeout,
                verbose=verbose,
            )
            for config in configs
        ]
        self._error_stream = error_stream
        self._threads: list[threading.Thread] = []
        self._lock = threading.Lock()

    def _report_failure(self, listener: Listener, error: StartupError) -> None:
        stream = self._error_stream if self._error_stream is not None else sys.stderr
        print(f"Error running listener {listener.name}: {error}", file=stream)

    def _run_listener(self, listener: Listener) -> None:
        try:
            listener.start()
        except StartupError as error:
            self._report_failure(listener, error)
            return
        listener.serve_forever()

    def start(self) -> None:
        """Launch one thread per listener without waiting for them."""
        with self._lock:
            if self._threads:
                return
            for listener in self.listeners:
                thread = threading.Thread(
                    target=self._run_listener,
                    args=(listener,),
                    name=f"listener-{listener.name}",
                    daemon=True,
                )
                self._threads.append(thread)
                thread.start()

    def wait_started(self, timeout: Optional[float] = None) -> bool:
        """Block until every listener is either accepting or has failed."""
        return all(
            listener.lifecycle.wait_settled(timeout) for listener in self.listeners
        )

    def wait(self) -> int:
        """Join every listener thread and return the process exit status."""
        for thread in list(self._threads):
            thread.join()
        return self.exit_status()

    def run(self) -> int:
        """Start all listeners and block until each one has terminated."""
        self.start()
        return self.wait()

    def failures(self) -> list[tuple[Listener, BaseException]]:
        return [
            (listener, listener.lifecycle.failure)
            for listener in self.listeners
            if listener.lifecycle.failure is not None
        ]

    def exit_status(self) -> int:
        return EXIT_STARTUP_FAILURE if self.failures() else EXIT_OK

    def running(self) -> list[Listener]:
        return [
            listener
            for listener in self.listeners
            if listener.state is ListenerState.ACCEPTING
        ]

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop every listener that is still accepting."""
        SUPERVISOR_LOGGER.info(
            "Stopping listeners", extra={"event": "supervisor_stopping"}
        )
        for listener in self.listeners:
            listener.shutdown(timeout)
