from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from scopelog.config import get_settings


_CONFIGURED = False


def configure_logging(level: int | None = None, json_logs: bool | None = None, force: bool = False) -> None:
    """Configure structlog + stdlib logging so scope fields land in every record.

    Level and renderer default to the LOG_LEVEL / LOG_JSON settings.
    Safe to call multiple times (no-op after first call unless ``force``).
    """

    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    settings = get_settings()
    if level is None:
        level = settings.numeric_log_level
    if json_logs is None:
        json_logs = settings.log_json

    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            # Let ProcessorFormatter render stdlib log records too.
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: Any = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=pre_chain,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    _CONFIGURED = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


class ScopeFieldsFilter(logging.Filter):
    """Copy the active scope fields onto stdlib records for %-style formatters.

    Names that would clash with ``LogRecord`` attributes are skipped.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        fields = structlog.contextvars.get_contextvars()
        for name, value in fields.items():
            if name not in record.__dict__:
                setattr(record, name, value)
        record.scope_fields = fields
        return True
