"""Worker thread logic for handling individual client connections."""

import logging
import socket
import ssl
import time
from typing import Any

from listener.domain.connection_scope import ConnectionLoggerAdapter, connection_scope
from listener.domain.errors import ConnectionFailure
from listener.domain.response_builders import build_response
from listener.pipeline.io import read_request, send_response
from listener.transport.context import WorkerContext

WORKER_LOGGER = ConnectionLoggerAdapter(
    logging.getLogger("listener.transport.worker"), {}
)

TLS_SHUTDOWN_TIMEOUT = 1.0


def format_peer(client_address: Any) -> str:
    """Render an IPv4 or IPv6 peer address as ``host:port``."""
    if isinstance(client_address, tuple) and len(client_address) >= 2:
        return f"{client_address[0]}:{client_address[1]}"
    return str(client_address)


def _log_failure(context: WorkerContext, error: ConnectionFailure) -> None:
    if not context.verbose:
        return
    WORKER_LOGGER.warning(
        "Connection abandoned",
        extra={
            "event": "connection_error",
            "error_type": type(error).__name__,
            "error_kind": error.kind.value,
            "error": str(error),
        },
    )


def handle_connection(stream: socket.socket, context: WorkerContext) -> bool:
    """Read once, answer once. Returns True when a response was written.

    Never raises: read failures, empty reads and write failures all end the
    exchange quietly and the caller still closes the stream.
    """
    try:
        payload = read_request(stream, context.buffer_size)
    except ConnectionFailure as error:
        _log_failure(context, error)
        return False
    if payload is None:
        if context.verbose:
            WORKER_LOGGER.debug(
                "Client closed without sending data", extra={"event": "empty_read"}
            )
        return False

    received_at = time.time()
    response = build_response(payload, received_at)
    try:
        send_response(stream, response)
    except ConnectionFailure as error:
        _log_failure(context, error)
        return False

    if context.verbose:
        WORKER_LOGGER.info(
            "Request answered",
            extra={
                "event": "request_complete",
                "bytes_in": len(payload),
                "bytes_out": len(response),
                "duration_ms": round((time.time() - received_at) * 1000, 3),
            },
        )
    return True


def close_connection(stream: socket.socket, context: WorkerContext) -> None:
    """Send the TLS close notification when encrypted, then shut down and close."""
    if isinstance(stream, ssl.SSLSocket):
        try:
            stream.settimeout(TLS_SHUTDOWN_TIMEOUT)
            stream.unwrap()
        except (OSError, ValueError) as error:
            if context.verbose:
                WORKER_LOGGER.debug(
                    "TLS shutdown incomplete",
                    extra={"event": "tls_shutdown_incomplete", "error": str(error)},
                )
    try:
        stream.shutdown(socket.SHUT_WR)
    except OSError:
        pass
    stream.close()


def serve_connection(
    client_socket: socket.socket,
    client_address: Any,
    context: WorkerContext,
) -> None:
    """Run handshake (when encrypted), handler and teardown for one connection."""
    with connection_scope(context.listener_name, format_peer(client_address)):
        stream = client_socket
        try:
            if context.socket_timeout:
                client_socket.settimeout(context.socket_timeout)
            if context.verbose:
                WORKER_LOGGER.debug(
                    "Connection processing started",
                    extra={
                        "event": "connection_started",
                        "tls": context.tls_context is not None,
                    },
                )
            if context.tls_context is not None:
                stream = context.tls_context.begin_handshake(client_socket)
            handle_connection(stream, context)
        except ConnectionFailure as error:
            _log_failure(context, error)
        except Exception as error:  # pylint: disable=broad-except
            WORKER_LOGGER.error(
                "Unexpected error in worker",
                extra={
                    "event": "worker_error",
                    "error_type": type(error).__name__,
                    "error": str(error),
                },
                exc_info=True,
            )
        finally:
            close_connection(stream, context)
            if context.verbose:
                WORKER_LOGGER.debug("Socket closed", extra={"event": "socket_closed"})
