"""Address resolution and listening socket creation."""

import logging
import socket
from dataclasses import dataclass
from typing import Any, Optional, Union

from listener.domain.connection_scope import ConnectionLoggerAdapter
from listener.domain.errors import (
    BindError,
    ListenError,
    ResolutionError,
    SocketCreateError,
    SocketOptionError,
)

SOCKET_LOGGER = ConnectionLoggerAdapter(logging.getLogger("listener.socket"), {})

WILDCARD_HOSTS = {"", "*", "any"}


@dataclass(frozen=True)
class ResolvedAddress:
    """A concrete bind address together with the socket family it requires."""

    family: socket.AddressFamily
    sockaddr: tuple[Any, ...]

    @property
    def is_ipv6(self) -> bool:
        return self.family == socket.AF_INET6


def resolve_address(host: Optional[str], port: Union[int, str]) -> ResolvedAddress:
    """Resolve ``host``/``port`` for a passive stream socket.

    The first entry returned by ``getaddrinfo`` wins and fixes the socket
    family for the rest of the listener's life.
    """
    lookup_host = None if host is None or host.lower() in WILDCARD_HOSTS else host
    try:
        results = socket.getaddrinfo(
            lookup_host,
            port,
            socket.AF_UNSPEC,
            socket.SOCK_STREAM,
            0,
            socket.AI_PASSIVE,
        )
    except (socket.gaierror, UnicodeError, TypeError, ValueError) as error:
        raise ResolutionError(
            f"Failed to get address information for {host!r} port {port!r}: {error}"
        ) from error
    if not results:
        raise ResolutionError(
            f"Failed to get address information for {host!r} port {port!r}"
        )
    family, _, _, _, sockaddr = results[0]
    return ResolvedAddress(family=family, sockaddr=sockaddr)


def create_socket(family: socket.AddressFamily) -> socket.socket:
    """Open a stream socket of the given family."""
    try:
        return socket.socket(family, socket.SOCK_STREAM)
    except OSError as error:
        raise SocketCreateError(f"Failed to create socket: {error}") from error


def enable_address_reuse(sock: socket.socket) -> None:
    """Allow rebinding the address immediately after a restart."""
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    except OSError as error:
        raise SocketOptionError(f"Failed to set socket options: {error}") from error


def enable_dual_stack(sock: socket.socket) -> bool:
    """Accept IPv4-mapped peers on an IPv6 socket where the platform allows it."""
    if not socket.has_dualstack_ipv6():
        return False
    try:
        sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
    except OSError as error:
        SOCKET_LOGGER.warning(
            "Dual-stack mode unavailable",
            extra={"event": "dual_stack_unavailable", "error": str(error)},
        )
        return False
    return True


def bind_socket(sock: socket.socket, sockaddr: tuple[Any, ...]) -> None:
    """Attach the socket to the resolved address."""
    try:
        sock.bind(sockaddr)
    except OSError as error:
        raise BindError(f"Failed to bind socket to {sockaddr!r}: {error}") from error


def listen_on_socket(sock: socket.socket, backlog: int = socket.SOMAXCONN) -> None:
    """Mark the socket passive with the platform's maximum backlog."""
    try:
        sock.listen(backlog)
    except OSError as error:
        raise ListenError(f"Failed to listen on socket: {error}") from error


def open_listening_socket(resolved: ResolvedAddress) -> socket.socket:
    """Run create, reuse, bind and listen once, in order, without retries."""
    sock = create_socket(resolved.family)
    try:
        enable_address_reuse(sock)
        if resolved.is_ipv6:
            enable_dual_stack(sock)
        bind_socket(sock, resolved.sockaddr)
        listen_on_socket(sock)
    except Exception:
        sock.close()
        raise
    return sock
