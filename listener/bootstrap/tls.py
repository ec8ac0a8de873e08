"""Server-side TLS context built from one certificate/key pair."""

import logging
import socket
import ssl

from listener.domain.connection_scope import ConnectionLoggerAdapter
from listener.domain.errors import (
    CertificateLoadError,
    HandshakeError,
    KeyLoadError,
    KeyMismatchError,
)

TLS_LOGGER = ConnectionLoggerAdapter(logging.getLogger("listener.tls"), {})

MISMATCH_REASONS = {"KEY_VALUES_MISMATCH", "KEY_TYPE_MISMATCH"}


def _is_key_mismatch(error: ssl.SSLError) -> bool:
    return error.reason in MISMATCH_REASONS


def _check_certificate(cert_path: str) -> None:
    """Parse the certificate on its own so load failures are told apart from key failures."""
    probe = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    try:
        probe.load_verify_locations(cafile=cert_path)
    except FileNotFoundError as error:
        raise CertificateLoadError(
            f"Certificate file not found: {cert_path}"
        ) from error
    except (ssl.SSLError, OSError, ValueError) as error:
        raise CertificateLoadError(
            f"Failed to load server certificate {cert_path}: {error}"
        ) from error


def _check_key_file(key_path: str) -> None:
    try:
        with open(key_path, "rb") as key_file:
            contents = key_file.read()
    except OSError as error:
        raise KeyLoadError(f"Failed to read private key {key_path}: {error}") from error
    if b"PRIVATE KEY-----" not in contents:
        raise KeyLoadError(f"No PEM private key found in {key_path}")


class TLSContext:
    """Validated TLS configuration shared read-only by every handshake."""

    def __init__(self, ssl_context: ssl.SSLContext, cert_path: str, key_path: str):
        self._ssl_context = ssl_context
        self.cert_path = cert_path
        self.key_path = key_path

    @property
    def ssl_context(self) -> ssl.SSLContext:
        return self._ssl_context

    @classmethod
    def build(cls, cert_path: str, key_path: str) -> "TLSContext":
        """Load the certificate and key and verify that they belong together.

        Raises ``CertificateLoadError``, ``KeyLoadError`` or
        ``KeyMismatchError``; each one is fatal to starting the listener.
        """
        _check_certificate(cert_path)
        _check_key_file(key_path)

        ssl_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        try:
            ssl_context.load_cert_chain(certfile=cert_path, keyfile=key_path)
        except ssl.SSLError as error:
            if _is_key_mismatch(error):
                raise KeyMismatchError(
                    "Server private key does not match the certificate public key"
                ) from error
            raise KeyLoadError(
                f"Failed to load server private key {key_path}: {error}"
            ) from error
        except OSError as error:
            raise KeyLoadError(
                f"Failed to load server private key {key_path}: {error}"
            ) from error

        TLS_LOGGER.debug(
            "TLS context ready",
            extra={"event": "tls_context_ready", "tls": True},
        )
        return cls(ssl_context, cert_path, key_path)

    def begin_handshake(self, client_socket: socket.socket) -> ssl.SSLSocket:
        """Negotiate a new session over an accepted socket.

        On failure the raw socket is left to the caller, which closes it.
        """
        try:
            tls_socket = self._ssl_context.wrap_socket(
                client_socket, server_side=True, do_handshake_on_connect=False
            )
        except (ssl.SSLError, OSError, ValueError) as error:
            raise HandshakeError(f"Failed to start TLS session: {error}") from error
        try:
            tls_socket.do_handshake()
        except (ssl.SSLError, OSError, ValueError) as error:
            tls_socket.close()
            raise HandshakeError(f"TLS handshake failed: {error}") from error
        return tls_socket
