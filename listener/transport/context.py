"""Context object shared read-only across connection threads."""

from dataclasses import dataclass
from typing import Optional

from listener.bootstrap.tls import TLSContext
from listener.pipeline.io import DEFAULT_BUFFER_SIZE


@dataclass(frozen=True)
class WorkerContext:
    """Dependencies handed to every connection thread of one listener."""

    tls_context: Optional[TLSContext] = None
    buffer_size: int = DEFAULT_BUFFER_SIZE
    socket_timeout: Optional[float] = None
    verbose: bool = False
    listener_name: str = "-"
