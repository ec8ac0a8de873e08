"""Bounded read and full write over an accepted stream."""

import logging
import socket
from typing import Optional

from listener.domain.connection_scope import ConnectionLoggerAdapter
from listener.domain.errors import ReadError, WriteError

IO_LOGGER = ConnectionLoggerAdapter(logging.getLogger("listener.io"), {})

DEFAULT_BUFFER_SIZE = 1024


def read_request(
    stream: socket.socket, buffer_size: int = DEFAULT_BUFFER_SIZE
) -> Optional[bytes]:
    """Perform exactly one read of at most ``buffer_size`` bytes.

    Returns None when the peer closed without sending anything. Raises
    ``ReadError`` when the read itself fails.
    """
    try:
        data = stream.recv(buffer_size)
    except (OSError, ValueError) as error:
        raise ReadError(f"Failed to read request: {error}") from error
    if not data:
        return None
    return data


def send_response(stream: socket.socket, payload: bytes) -> int:
    """Write every byte of ``payload``, looping over partial sends."""
    view = memoryview(payload)
    total_sent = 0
    while total_sent < len(payload):
        try:
            sent = stream.send(view[total_sent:])
        except (OSError, ValueError) as error:
            raise WriteError(
                f"Failed to write response after {total_sent} bytes: {error}"
            ) from error
        if sent <= 0:
            raise WriteError(f"Connection stopped accepting data after {total_sent} bytes")
        total_sent += sent
    IO_LOGGER.debug(
        "Sent response",
        extra={"event": "response_sent", "bytes_out": total_sent},
    )
    return total_sent
