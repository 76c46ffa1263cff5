from __future__ import annotations

from collections.abc import Mapping
from contextvars import Token
from typing import Any, Protocol, runtime_checkable

import structlog


ScopeToken = Any


@runtime_checkable
class ScopeSink(Protocol):
    """Logging backend that can attach fields to everything logged in a scope."""

    def push_scope(self, fields: Mapping[str, str]) -> ScopeToken: ...

    def pop_scope(self, token: ScopeToken) -> None: ...


class ContextVarsSink:
    """Scopes stored in structlog's contextvars.

    Every key lives in its own ``ContextVar``, so each thread and each asyncio
    task sees only the scopes it opened (or inherited when it was created).
    Popping resets the tokens returned by the push, which restores an outer
    scope's value for a name the inner scope overrode.
    """

    def push_scope(self, fields: Mapping[str, str]) -> Mapping[str, Token[Any]]:
        return structlog.contextvars.bind_contextvars(**fields)

    def pop_scope(self, token: Mapping[str, Token[Any]]) -> None:
        structlog.contextvars.reset_contextvars(**token)


_sink: ScopeSink | None = None


def set_default_sink(sink: ScopeSink | None) -> None:
    global _sink
    _sink = sink


def get_default_sink() -> ScopeSink:
    global _sink
    if _sink is None:
        _sink = ContextVarsSink()
    return _sink
