"""Listener loop: startup, connection acceptance and per-connection dispatch."""

import logging
import socket
import threading
from typing import Any, Optional

from listener.bootstrap.config import ListenerConfig
from listener.bootstrap.socket_factory import open_listening_socket, resolve_address
from listener.bootstrap.tls import TLSContext
from listener.domain.connection_scope import ConnectionLoggerAdapter
from listener.domain.errors import AcceptError, StartupError
from listener.lifecycle.state import ListenerLifecycle, ListenerState
from listener.pipeline.io import DEFAULT_BUFFER_SIZE
from listener.transport.context import WorkerContext
from listener.transport.worker import format_peer, serve_connection

ACCEPT_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("listener.transport.accept"), {}
)

ACCEPT_POLL_INTERVAL = 0.5


class Listener:
    """One listening socket and its accept loop.

    The listener is plaintext unless ``config`` carries a certificate/key
    pair, in which case every accepted connection goes through a TLS
    handshake before the handler runs.
    """

    def __init__(
        self,
        config: ListenerConfig,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        socket_timeout: Optional[float] = None,
        verbose: bool = False,
        name: Optional[str] = None,
    ) -> None:
        self.config = config
        self.buffer_size = buffer_size
        self.socket_timeout = socket_timeout
        self.verbose = verbose
        self.name = name or f"{config.scheme}:{config.port}"
        self.lifecycle = ListenerLifecycle(self.name)
        self._socket: Optional[socket.socket] = None
        self._context: Optional[WorkerContext] = None
        self._serving = threading.Event()
        self._stopped = threading.Event()

    @property
    def state(self) -> ListenerState:
        return self.lifecycle.state

    @property
    def bound_address(self) -> Any:
        """Return the local address of the listening socket."""
        if self._socket is None:
            raise RuntimeError(f"Listener {self.name} has no listening socket")
        return self._socket.getsockname()

    def start(self) -> None:
        """Resolve, validate TLS material and open the listening socket.

        Any failure is terminal for this listener and is re-raised; nothing
        is retried.
        """
        tls_context: Optional[TLSContext] = None
        try:
            resolved = resolve_address(self.config.address, self.config.port)
            if self.config.encrypted:
                tls_context = TLSContext.build(
                    self.config.cert_path, self.config.key_path
                )
            listening_socket = open_listening_socket(resolved)
        except StartupError as error:
            self.lifecycle.mark_failed(error)
            ACCEPT_LOGGER.critical(
                "Listener startup failed",
                extra={
                    "event": "listener_start_failed",
                    "listener": self.name,
                    "address": self.config.address,
                    "port": self.config.port,
                    "error_type": type(error).__name__,
                    "error_kind": error.kind.value,
                    "error": str(error),
                },
            )
            raise

        listening_socket.settimeout(ACCEPT_POLL_INTERVAL)
        self._socket = listening_socket
        self._context = WorkerContext(
            tls_context=tls_context,
            buffer_size=self.buffer_size,
            socket_timeout=self.socket_timeout,
            verbose=self.verbose,
            listener_name=self.name,
        )
        self.lifecycle.mark_accepting()
        ACCEPT_LOGGER.info(
            "Listener accepting connections",
            extra={
                "event": "listener_accepting",
                "listener": self.name,
                "address": format_peer(self.bound_address),
                "family": resolved.family.name,
                "port": self.config.port,
                "tls": tls_context is not None,
                "backlog": socket.SOMAXCONN,
            },
        )

    def serve_forever(self) -> None:
        """Accept connections until the listener is shut down."""
        if self.lifecycle.should_stop():
            self._close_socket()
            self._stopped.set()
            return
        if self.state is not ListenerState.ACCEPTING or self._socket is None:
            raise RuntimeError(f"Listener {self.name} is not accepting")
        self._serving.set()
        try:
            while True:
                try:
                    client_socket, client_address = self._socket.accept()
                except socket.timeout:
                    if self.lifecycle.should_stop():
                        break
                    continue
                except OSError as error:
                    if self.lifecycle.should_stop():
                        break
                    self._log_accept_error(error)
                    continue
                self._dispatch(client_socket, client_address)
        finally:
            self._close_socket()
            self._stopped.set()

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop accepting; used on forced termination only."""
        if not self.lifecycle.begin_shutdown():
            return
        if self._serving.is_set():
            self._stopped.wait(timeout)
        else:
            self._close_socket()

    def _dispatch(self, client_socket: socket.socket, client_address: Any) -> None:
        # Fire-and-forget: the thread is never joined and nothing bounds the
        # number of live connection threads.
        thread = threading.Thread(
            target=serve_connection,
            args=(client_socket, client_address, self._context),
            name=f"{self.name}-connection",
            daemon=True,
        )
        try:
            thread.start()
        except RuntimeError as error:
            client_socket.close()
            self._log_accept_error(error, client_address)
            return
        if self.verbose:
            ACCEPT_LOGGER.debug(
                "Client connection accepted",
                extra={
                    "event": "client_accepted",
                    "listener": self.name,
                    "client": format_peer(client_address),
                },
            )

    def _log_accept_error(
        self, error: Exception, client_address: Optional[Any] = None
    ) -> None:
        extra = {
            "event": "accept_error",
            "listener": self.name,
            "error_type": type(error).__name__,
            "error_kind": AcceptError.kind.value,
            "errno": getattr(error, "errno", None),
        }
        if client_address is not None:
            extra["client"] = format_peer(client_address)
        ACCEPT_LOGGER.error("Socket accept failed", extra=extra)

    def _close_socket(self) -> None:
        if self._socket is not None:
            self._socket.close()
