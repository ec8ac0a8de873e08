"""Connection scope shared by every log record emitted inside a worker thread."""

import contextvars
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, MutableMapping, Optional

LOGGER_PREFIX = "listener."
NO_CONNECTION = "-"


@dataclass(frozen=True)
class ConnectionScope:
    """Identity of one accepted connection: which listener took it and from whom."""

    connection_id: str
    listener: str
    client: str

    def log_fields(self) -> dict[str, str]:
        return {
            "connection_id": self.connection_id,
            "listener": self.listener,
            "client": self.client,
        }


_scope_var: contextvars.ContextVar[Optional[ConnectionScope]] = contextvars.ContextVar(
    "connection_scope", default=None
)


def current_scope() -> Optional[ConnectionScope]:
    return _scope_var.get()


@contextmanager
def connection_scope(listener: str, client: str) -> Iterator[ConnectionScope]:
    """Bind a fresh scope for the duration of one connection.

    Each worker thread runs in its own context, so scopes of concurrent
    connections never leak into one another.
    """
    scope = ConnectionScope(uuid.uuid4().hex[:12], listener, client)
    token = _scope_var.set(scope)
    try:
        yield scope
    finally:
        _scope_var.reset(token)


def component_name(logger_name: str) -> str:
    if logger_name.startswith(LOGGER_PREFIX):
        return logger_name[len(LOGGER_PREFIX) :]
    return logger_name


class ConnectionLoggerAdapter(logging.LoggerAdapter):
    """Stamp records with the component and, inside a connection, its scope.

    Fields passed explicitly through ``extra=`` win over the scope.
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        fields: dict[str, Any] = {"component": component_name(self.logger.name)}
        scope = _scope_var.get()
        if scope is None:
            fields["connection_id"] = NO_CONNECTION
        else:
            fields.update(scope.log_fields())
        fields.update(kwargs.get("extra") or {})
        kwargs["extra"] = fields
        return msg, kwargs
