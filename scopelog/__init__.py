"""Scoped structured-logging fields on top of structlog contextvars."""

from scopelog.errors import InvalidArgumentError, ScopeLogError, SinkUnavailableError
from scopelog.scopes import (
    ScopeHandle,
    begin_entity_scope,
    begin_field,
    begin_field_scope,
    begin_named_field_scope,
    current_fields,
    entity_id_field_name,
)
from scopelog.sinks import ContextVarsSink, ScopeSink, get_default_sink, set_default_sink

__all__ = [
    "ContextVarsSink",
    "InvalidArgumentError",
    "ScopeHandle",
    "ScopeLogError",
    "ScopeSink",
    "SinkUnavailableError",
    "begin_entity_scope",
    "begin_field",
    "begin_field_scope",
    "begin_named_field_scope",
    "current_fields",
    "entity_id_field_name",
    "get_default_sink",
    "set_default_sink",
]
