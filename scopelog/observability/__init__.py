"""Logging glue: structlog configuration and the per-request field scope middleware."""

from scopelog.observability.logging import ScopeFieldsFilter, configure_logging, get_logger

__all__ = ["ScopeFieldsFilter", "configure_logging", "get_logger"]
