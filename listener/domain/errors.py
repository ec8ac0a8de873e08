"""Error taxonomy for listener startup and per-connection failures."""

from enum import Enum


class ErrorKind(Enum):
    """Classifies how far a failure is allowed to propagate."""

    STARTUP_FATAL = "startup_fatal"
    CONNECTION_RECOVERABLE = "connection_recoverable"


class ListenerError(Exception):
    """Base class for every failure raised by the listener core."""

    kind: ErrorKind = ErrorKind.STARTUP_FATAL

    @property
    def is_fatal(self) -> bool:
        """Return True when the error must abort listener startup."""
        return self.kind is ErrorKind.STARTUP_FATAL


class StartupError(ListenerError):
    """Failure that aborts the startup of a single listener."""

    kind = ErrorKind.STARTUP_FATAL


class ConnectionFailure(ListenerError):
    """Failure confined to one accepted connection."""

    kind = ErrorKind.CONNECTION_RECOVERABLE


class ResolutionError(StartupError):
    """The host/port pair could not be resolved."""


class SocketCreateError(StartupError):
    """The operating system refused to create the listening socket."""


class SocketOptionError(StartupError):
    """A socket option could not be applied."""


class BindError(StartupError):
    """The socket could not be bound to the resolved address."""


class ListenError(StartupError):
    """The socket could not be marked as passive."""


class CertificateLoadError(StartupError):
    """The certificate file is missing or malformed."""


class KeyLoadError(StartupError):
    """The private key file is missing or malformed."""


class KeyMismatchError(StartupError):
    """The private key does not belong to the certificate."""


class AcceptError(ConnectionFailure):
    """accept() failed for a pending connection."""


class HandshakeError(ConnectionFailure):
    """TLS negotiation with a client failed."""


class ReadError(ConnectionFailure):
    """Reading the request bytes failed."""


class WriteError(ConnectionFailure):
    """Writing the response failed before every byte was sent."""
