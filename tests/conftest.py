"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Generator, Optional, TypedDict

import pytest

from listener.bootstrap.config import ListenerConfig
from listener.transport.accept_loop import Listener
from tests.utils.certs import (
    generate_private_key,
    write_private_key,
    write_self_signed_certificate,
)
from tests.utils.http import reserve_port

if TYPE_CHECKING:
    from _pytest.tmpdir import TempPathFactory

PROJECT_ROOT = Path(__file__).resolve().parent.parent
LOOPBACK = "127.0.0.1"


class CertificatePair(TypedDict):
    """Paths to a matching certificate and key plus an unrelated key."""

    cert: str
    key: str
    other_key: str


class RunningListener(TypedDict):
    """Metadata describing a listener serving on a background thread."""

    listener: Listener
    host: str
    port: int
    thread: threading.Thread


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Expose the repository root path to tests."""

    return PROJECT_ROOT


@pytest.fixture(scope="session")
def cert_pair(tmp_path_factory: "TempPathFactory") -> CertificatePair:
    """Generate one self-signed certificate, its key and a foreign key."""

    directory = tmp_path_factory.mktemp("tls")
    key = generate_private_key()
    key_path = write_private_key(key, directory / "server.key")
    cert_path = write_self_signed_certificate(key, directory / "server.crt")
    other_key_path = write_private_key(generate_private_key(), directory / "other.key")
    return {
        "cert": cert_path.as_posix(),
        "key": key_path.as_posix(),
        "other_key": other_key_path.as_posix(),
    }


@pytest.fixture(name="start_listener")
def _start_listener() -> Generator[Callable[..., RunningListener], None, None]:
    """Factory that starts listeners on free loopback ports and stops them afterwards."""

    running: list[RunningListener] = []

    def _start(
        cert: Optional[str] = None,
        key: Optional[str] = None,
        buffer_size: int = 1024,
        verbose: bool = True,
    ) -> RunningListener:
        port = reserve_port(LOOPBACK)
        listener = Listener(
            ListenerConfig(LOOPBACK, port, cert_path=cert, key_path=key),
            buffer_size=buffer_size,
            verbose=verbose,
        )
        listener.start()
        thread = threading.Thread(target=listener.serve_forever, daemon=True)
        thread.start()
        info: RunningListener = {
            "listener": listener,
            "host": LOOPBACK,
            "port": port,
            "thread": thread,
        }
        running.append(info)
        return info

    yield _start

    for info in running:
        info["listener"].shutdown(timeout=5)
        info["thread"].join(timeout=5)
