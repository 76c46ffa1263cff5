from __future__ import annotations

import uuid
from time import perf_counter
from typing import Any, Callable

import structlog
from starlette.datastructures import Headers, MutableHeaders

from scopelog.config import get_settings
from scopelog.scopes import begin_field_scope
from scopelog.sinks import ScopeSink, get_default_sink


class FieldScopeMiddleware:
    """Opens a requestId/path/method field scope per request and writes an access log."""

    def __init__(self, app: Callable[..., Any], sink: ScopeSink | None = None) -> None:
        self.app = app
        self._sink = sink
        settings = get_settings()
        self._header_name = settings.request_id_header
        self._field_name = settings.request_id_field

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = Headers(scope=scope).get(self._header_name) or str(uuid.uuid4())
        fields = [
            (self._field_name, request_id),
            ("path", str(scope.get("path", ""))),
            ("method", str(scope.get("method", ""))),
        ]

        start = perf_counter()
        status_code: int = 500

        async def send_wrapper(message: dict[str, Any]) -> None:
            nonlocal status_code

            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
                headers = MutableHeaders(scope=message)
                headers[self._header_name] = request_id

            await send(message)

        with begin_field_scope(self._sink or get_default_sink(), fields):
            try:
                await self.app(scope, receive, send_wrapper)
            finally:
                elapsed_ms = (perf_counter() - start) * 1000.0
                structlog.get_logger("access").info(
                    "http_request",
                    status_code=status_code,
                    elapsed_ms=round(elapsed_ms, 2),
                )
