"""Attach structured fields to every log entry emitted inside a scope.

Use the returned handle as a context manager::

    with begin_entity_scope(sink, "Order", order.id):
        logger.info("order_shipped")  # carries orderId=...

Scopes nest; an inner scope overrides same-named fields of the outer ones
until it is released.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from contextvars import ContextVar
from types import MappingProxyType, TracebackType
from typing import Any

import structlog

from scopelog.errors import InvalidArgumentError
from scopelog.sinks import ScopeSink, ScopeToken


logger = structlog.get_logger(__name__)

ENTITY_ID_SUFFIX = "Id"

# Handles opened in the current thread/task, oldest first.
_open_scopes: ContextVar[tuple[ScopeHandle, ...]] = ContextVar("scopelog_open_scopes", default=())


class ScopeHandle:
    """Releasable handle for one pushed scope.

    ``release()`` may be called any number of times; only the first call pops
    the scope. Leaving a ``with`` block releases it on every exit path.
    """

    __slots__ = ("_sink", "_token", "_fields", "_active")

    def __init__(self, sink: ScopeSink | None, token: ScopeToken, fields: Mapping[str, str]) -> None:
        self._sink = sink
        self._token = token
        self._fields = MappingProxyType(dict(fields))
        self._active = sink is not None

    @classmethod
    def noop(cls) -> ScopeHandle:
        return cls(None, None, {})

    @property
    def fields(self) -> Mapping[str, str]:
        return self._fields

    @property
    def active(self) -> bool:
        return self._active

    def release(self) -> None:
        """Pop this scope, first popping any scope opened after it in this context."""

        if not self._active:
            return
        stack = _open_scopes.get()
        if self in stack:
            index = stack.index(self)
            newer = stack[index + 1 :]
            if newer:
                logger.warning("scope_released_out_of_order", fields=list(self._fields), newer_scopes=len(newer))
            for handle in reversed(newer):
                handle._pop()
            _open_scopes.set(stack[:index])
        self._pop()

    def _pop(self) -> None:
        if not self._active:
            return
        self._active = False
        sink, token = self._sink, self._token
        self._sink = None
        self._token = None
        try:
            sink.pop_scope(token)
        except Exception:
            # Wrong context or a broken sink; the scope is gone for this handle either way.
            logger.warning("scope_release_failed", fields=list(self._fields), exc_info=True)

    def __enter__(self) -> ScopeHandle:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "active" if self._active else "released"
        return f"ScopeHandle({dict(self._fields)!r}, {state})"


def _check_sink(sink: Any) -> None:
    if sink is None:
        raise InvalidArgumentError("sink is required")
    if not isinstance(sink, ScopeSink):
        raise InvalidArgumentError(f"sink must provide push_scope/pop_scope, got {type(sink).__name__}")


def _build_fields(fields: Iterable[tuple[str, str]]) -> dict[str, str]:
    if fields is None or isinstance(fields, (str, bytes)) or not isinstance(fields, Iterable):
        raise InvalidArgumentError(f"fields must be an iterable of (name, value) pairs, got {type(fields).__name__}")
    scope_data: dict[str, str] = {}
    for item in fields:
        if isinstance(item, str):
            raise InvalidArgumentError(f"field must be a (name, value) pair, got {item!r}")
        try:
            name, value = item
        except (TypeError, ValueError):
            raise InvalidArgumentError(f"field must be a (name, value) pair, got {item!r}") from None
        if not isinstance(name, str) or not name:
            raise InvalidArgumentError(f"field name must be a non-empty string, got {name!r}")
        if not isinstance(value, str):
            raise InvalidArgumentError(f"value of field {name!r} must be a string, got {type(value).__name__}")
        scope_data[name] = value
    return scope_data


def begin_field_scope(sink: ScopeSink, fields: Iterable[tuple[str, str]]) -> ScopeHandle:
    """Push ``fields`` onto the ambient logging context.

    Duplicate names keep the last value. An empty ``fields`` gives a no-op
    handle. Invalid arguments raise ``InvalidArgumentError`` before anything
    is pushed; a sink failure is logged and degrades to a no-op handle.
    """

    _check_sink(sink)
    scope_data = _build_fields(fields)
    if not scope_data:
        return ScopeHandle.noop()

    try:
        token = sink.push_scope(scope_data)
    except Exception:
        # Logging must never break the caller.
        logger.warning("scope_push_failed", fields=list(scope_data), exc_info=True)
        return ScopeHandle.noop()

    handle = ScopeHandle(sink, token, scope_data)
    _open_scopes.set((*_open_scopes.get(), handle))
    return handle


def begin_field(sink: ScopeSink, name: str, value: str) -> ScopeHandle:
    return begin_field_scope(sink, [(name, value)])


def entity_id_field_name(entity_type: type | str) -> str:
    """``"Order"`` -> ``"orderId"``. Classes contribute their ``__name__``."""

    type_name = entity_type.__name__ if isinstance(entity_type, type) else entity_type
    if not isinstance(type_name, str) or not type_name:
        raise InvalidArgumentError("entity type name must be a non-empty string")
    # Some characters lower-case to more than one code point; keep the first.
    return type_name[0].lower()[:1] + type_name[1:] + ENTITY_ID_SUFFIX


def begin_entity_scope(sink: ScopeSink, entity_type: type | str, entity_id: str) -> ScopeHandle:
    _check_sink(sink)
    return begin_field(sink, entity_id_field_name(entity_type), entity_id)


def begin_named_field_scope(sink: ScopeSink, *parts: str) -> ScopeHandle:
    """Concatenate all parts but the last into the field name; the last is the value."""

    _check_sink(sink)
    if len(parts) < 2:
        raise InvalidArgumentError("must provide at least two parts: a name part and a value")
    name_parts = parts[:-1]
    if not all(isinstance(part, str) for part in name_parts):
        raise InvalidArgumentError("field name parts must be strings")
    return begin_field(sink, "".join(name_parts), parts[-1])


def current_fields() -> dict[str, Any]:
    """Fields bound in the calling thread or task, inner scopes winning."""

    return structlog.contextvars.get_contextvars()
