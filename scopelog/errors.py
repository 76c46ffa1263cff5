"""Exception hierarchy for scoped logging fields.

Argument errors fail fast. Sink errors never leave the scope helpers.
"""


class ScopeLogError(Exception):
    """Base exception for all scopelog errors."""

    pass


class InvalidArgumentError(ScopeLogError, ValueError):
    """Malformed call: missing sink, bad field, empty type name, too few parts."""

    pass


class SinkUnavailableError(ScopeLogError):
    """The logging sink refused to open a scope."""

    pass
