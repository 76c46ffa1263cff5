from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

import pytest
import structlog
from structlog.testing import LogCapture

from scopelog.config import get_settings
from scopelog.errors import SinkUnavailableError
from scopelog.sinks import ContextVarsSink, set_default_sink


class RecordingSink(ContextVarsSink):
    """ContextVarsSink that remembers what was pushed and popped."""

    def __init__(self) -> None:
        self.pushed: list[dict[str, str]] = []
        self.popped = 0

    def push_scope(self, fields: Mapping[str, str]) -> Any:
        self.pushed.append(dict(fields))
        return super().push_scope(fields)

    def pop_scope(self, token: Any) -> None:
        self.popped += 1
        super().pop_scope(token)


class FailingSink:
    def push_scope(self, fields: Mapping[str, str]) -> Any:
        raise SinkUnavailableError("backend is down")

    def pop_scope(self, token: Any) -> None:
        raise AssertionError("nothing was pushed")


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_JSON", raising=False)
    monkeypatch.delenv("REQUEST_ID_HEADER", raising=False)
    monkeypatch.delenv("REQUEST_ID_FIELD", raising=False)
    get_settings.cache_clear()
    structlog.contextvars.clear_contextvars()
    set_default_sink(None)

    yield

    structlog.contextvars.clear_contextvars()
    set_default_sink(None)
    get_settings.cache_clear()


@pytest.fixture
def log_output() -> Iterator[LogCapture]:
    capture = LogCapture()
    structlog.configure(processors=[structlog.contextvars.merge_contextvars, capture])
    yield capture
    structlog.reset_defaults()


@pytest.fixture
def sink() -> ContextVarsSink:
    return ContextVarsSink()


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def failing_sink() -> FailingSink:
    return FailingSink()
