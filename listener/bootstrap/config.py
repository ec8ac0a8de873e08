"""Listener configuration and CLI argument parsing."""

import argparse
import os
from dataclasses import dataclass
from typing import Optional

APP_NAME = "dual-listener"
VERSION = "1.0.0"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value else default


MIN_PORT = 1
MAX_PORT = 65535

# Kept as strings: argparse applies type= only to string defaults.
DEFAULT_ADDRESS = "::"
DEFAULT_PORT = "80"
DEFAULT_TLS_PORT = "443"
DEFAULT_CERT_FILE = "ssl/server.crt"
DEFAULT_KEY_FILE = "ssl/server.key"
DEFAULT_BUFFER_SIZE = "1024"
DEFAULT_SOCKET_TIMEOUT = "0"


@dataclass(frozen=True)
class ListenerConfig:
    """Immutable startup parameters for one listener."""

    address: str
    port: int
    cert_path: Optional[str] = None
    key_path: Optional[str] = None

    def __post_init__(self) -> None:
        if not MIN_PORT <= self.port <= MAX_PORT:
            raise ValueError(
                f"port must be between {MIN_PORT} and {MAX_PORT}, got {self.port}"
            )
        if (self.cert_path is None) != (self.key_path is None):
            raise ValueError("cert_path and key_path must be given together")

    @property
    def encrypted(self) -> bool:
        """Return True when this listener terminates TLS."""
        return self.cert_path is not None and self.key_path is not None

    @property
    def scheme(self) -> str:
        return "tls" if self.encrypted else "plaintext"


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid port: {value!r}") from exc
    if not MIN_PORT <= port <= MAX_PORT:
        raise argparse.ArgumentTypeError(
            f"port must be between {MIN_PORT} and {MAX_PORT}"
        )
    return port


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError("value must be greater than zero")
    return number


def _non_negative_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}") from exc
    if number < 0:
        raise argparse.ArgumentTypeError("value must not be negative")
    return number


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for the plaintext and TLS listeners."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Plaintext and TLS listeners that echo the first request chunk",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"{APP_NAME} version {VERSION}",
    )
    parser.add_argument(
        "-a",
        "--address",
        default=_env_str("LISTENER_ADDRESS", DEFAULT_ADDRESS),
        help="Address to bind both listeners to (default: ::)",
    )
    parser.add_argument(
        "-p",
        "--port",
        type=_port,
        default=_env_str("LISTENER_PORT", DEFAULT_PORT),
        help="Plaintext listener port (default: 80)",
    )
    parser.add_argument(
        "--tls-port",
        type=_port,
        default=_env_str("LISTENER_TLS_PORT", DEFAULT_TLS_PORT),
        help="TLS listener port (default: 443)",
    )
    parser.add_argument(
        "-c",
        "--cert-file",
        default=_env_str("LISTENER_CERT_FILE", DEFAULT_CERT_FILE),
        help="Path to the TLS certificate file",
    )
    parser.add_argument(
        "-k",
        "--cert-key",
        default=_env_str("LISTENER_KEY_FILE", DEFAULT_KEY_FILE),
        help="Path to the TLS private key file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=_env_bool("LISTENER_VERBOSE", False),
        help="Log per-connection events",
    )
    parser.add_argument(
        "--buffer-size",
        type=_positive_int,
        default=_env_str("LISTENER_BUFFER_SIZE", DEFAULT_BUFFER_SIZE),
        help="Maximum number of request bytes read per connection",
    )
    parser.add_argument(
        "--socket-timeout",
        type=_non_negative_float,
        default=_env_str("LISTENER_SOCKET_TIMEOUT", DEFAULT_SOCKET_TIMEOUT),
        help="Per-connection socket timeout in seconds (0 disables)",
    )
    default_log_level = os.getenv("LISTENER_LOG_LEVEL", "WARNING").upper()
    default_destination = os.getenv("LISTENER_LOG_DESTINATION", "stdout")
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--log-json",
        action=argparse.BooleanOptionalAction,
        default=_env_bool("LISTENER_LOG_JSON", True),
        help="Emit structured JSON log lines",
    )
    return parser.parse_args(argv)


def build_listener_configs(
    args: argparse.Namespace,
) -> tuple[ListenerConfig, ListenerConfig]:
    """Return the plaintext and TLS listener configurations."""
    plaintext = ListenerConfig(address=args.address, port=args.port)
    encrypted = ListenerConfig(
        address=args.address,
        port=args.tls_port,
        cert_path=args.cert_file,
        key_path=args.cert_key,
    )
    return plaintext, encrypted
