"""Instrumentation hooks fired right before a statement is executed.

Handlers are registered per operation kind on a session's
:class:`Instrumentation` and receive a ``token`` together with an immutable
:class:`SqlEvent`.  The token is the :class:`~chainql.compile.builder.Ticket`
the caller passed to the executing call (``None`` when there was none), so a
handler shared across call sites can pick out the calls it cares about::

    def log_report_queries(token, event):
        if token == Ticket("monthly-report"):
            print(event.sql, event.parameters)

    session.events.subscribe(OperationKind.SELECT, log_report_queries)

Handlers run synchronously, in registration order.  An exception raised by a
handler propagates to the caller and the statement is not executed.
"""
from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any


class OperationKind(str, Enum):
    INSERT = "insert"
    SELECT = "select"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class SqlEvent:
    """The statement about to be executed.

    Attributes:
        kind: The operation kind.
        sql: The SQL text.
        parameters: Read-only view of the bound parameters.
    """

    kind: OperationKind
    sql: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, kind: OperationKind, sql: str, parameters: Mapping[str, Any]) -> SqlEvent:
        return cls(kind=kind, sql=sql, parameters=MappingProxyType(dict(parameters)))


#: ``(token, event) -> None``
SqlEventHandler = Callable[[Any, SqlEvent], None]


class Instrumentation:
    """Per-session registry of statement handlers."""

    def __init__(self) -> None:
        self._handlers: dict[OperationKind, list[SqlEventHandler]] = {
            kind: [] for kind in OperationKind
        }

    def subscribe(self, kind: OperationKind, handler: SqlEventHandler) -> SqlEventHandler:
        """Register ``handler`` for ``kind`` and return it."""
        self._handlers[OperationKind(kind)].append(handler)
        return handler

    def unsubscribe(self, kind: OperationKind, handler: SqlEventHandler) -> None:
        """Remove ``handler``; unknown handlers are ignored."""
        handlers = self._handlers[OperationKind(kind)]
        if handler in handlers:
            handlers.remove(handler)

    def has_handlers(self, kind: OperationKind) -> bool:
        return bool(self._handlers[kind])

    def fire(self, token: Any, event: SqlEvent) -> None:
        """Invoke every handler registered for ``event.kind``."""
        for handler in list(self._handlers[event.kind]):
            handler(token, event)
