"""
Span tagging middleware for FastAPI / Starlette.

Usage in an application module:

    from fastapi import FastAPI
    from config.settings import SpanTaggingConfig
    from observability.tracing import instrument_fastapi

    app = FastAPI()
    instrument_fastapi(app, config=SpanTaggingConfig(dump_body=True))

Every HTTP request gets a server span named after its route template and
tagged with identity fields, headers and (optionally) bodies. The span is the
current span while the application runs, so handlers can add their own tags
through `opentelemetry.trace.get_current_span()`.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from fastapi import FastAPI
from opentelemetry import propagate, trace
from opentelemetry.trace import Span
from starlette.requests import Request
from starlette.types import ASGIApp, Receive, Scope, Send

from config.settings import DEFAULT_CONFIG, SpanTaggingConfig
from core.code_exceptions import BodyReadError
from observability.logging import get_json_logger

from .body_capture import ResponseBodyRecorder, buffer_limit, capture_request_body
from .instrumentation import (
    operation_name,
    record_handler_error,
    request_span,
    set_http_status,
    transaction_name,
)
from .request_context import (
    basic_auth_user,
    client_ip,
    remote_addr,
    request_id,
    request_uri,
    resolve_route,
    unique_headers,
)
from .sanitize import EXCLUDED_MARKER, READ_ERROR_MARKER, set_tag
from .tracer import get_tracer

logger = get_json_logger(__name__)

REQUEST_BODY_TAG = "req.body"
RESPONSE_BODY_TAG = "resp.body"


class SpanTaggingMiddleware:
    """Pure ASGI middleware that wraps each HTTP request in a tagged span.

    Non-HTTP scopes (websocket, lifespan) pass straight through, as do
    requests matched by `config.excluded_paths` or `config.skipper`.

    An exception escaping the application is tagged on the span and re-raised
    so Starlette's error handling still produces the response.
    """

    def __init__(
        self,
        app: ASGIApp,
        config: SpanTaggingConfig = DEFAULT_CONFIG,
        tracer_provider: Optional[trace.TracerProvider] = None,
    ) -> None:
        self.app = app
        self.config = config
        self.tracer = get_tracer(__name__, tracer_provider)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        if self._skip(request):
            logger.debug("span tagging skipped", extra={"path": request.url.path})
            await self.app(scope, receive, send)
            return

        method = scope["method"]
        template, path_params = resolve_route(scope)
        operation = operation_name(method, template)
        transaction = transaction_name(method, request_uri(scope))
        parent = propagate.extract(request.headers)

        with request_span(self.tracer, operation, transaction, parent, self.config) as span:
            if not span.is_recording():
                await self.app(scope, receive, send)
                return

            self._tag_request(span, request, template, path_params)
            receive, skip_response_body = await self._dump_request_body(span, request, receive)
            recorder = ResponseBodyRecorder(
                send,
                capture=self.config.dump_body and not skip_response_body,
                limit=buffer_limit(self.config.max_tag_value_length),
            )

            try:
                await self.app(scope, receive, recorder)
            except Exception as exc:
                record_handler_error(span, exc, self.config)
                self._tag_response(span, request, recorder, skip_response_body)
                raise

            self._tag_response(span, request, recorder, skip_response_body)

    def _skip(self, request: Request) -> bool:
        return request.url.path in self.config.excluded_paths or self.config.skipper(request)

    def _tag_request(
        self,
        span: Span,
        request: Request,
        template: str,
        path_params: Dict[str, str],
    ) -> None:
        config = self.config
        set_tag(span, "client_ip", client_ip(request), config)
        set_tag(span, "remote_addr", remote_addr(request), config)
        set_tag(span, "request_uri", request_uri(request.scope), config)
        set_tag(span, "path", template, config)

        user = basic_auth_user(request)
        if user is not None:
            set_tag(span, "user", user, config)

        for name, value in path_params.items():
            set_tag(span, f"path.{name}", value, config)

        if config.dump_headers:
            for name, value in unique_headers(request.headers):
                set_tag(span, f"req.header.{name}", value, config)

    async def _dump_request_body(
        self,
        span: Span,
        request: Request,
        receive: Receive,
    ) -> Tuple[Receive, bool]:
        """Tag the request body; return the receive to hand downstream and
        whether the response body is excluded."""
        if not self.config.dump_body:
            return receive, True

        skip_request_body, skip_response_body = self.config.body_skipper(request)
        if skip_request_body:
            set_tag(span, REQUEST_BODY_TAG, EXCLUDED_MARKER, self.config)
            return receive, skip_response_body

        try:
            captured = await capture_request_body(receive)
        except BodyReadError as exc:
            logger.warning(
                "request body capture failed",
                extra={"path": request.url.path, "error": str(exc)},
            )
            set_tag(span, REQUEST_BODY_TAG, READ_ERROR_MARKER, self.config)
            return exc.receive, skip_response_body

        set_tag(span, REQUEST_BODY_TAG, captured.text, self.config)
        return captured.receive, skip_response_body

    def _tag_response(
        self,
        span: Span,
        request: Request,
        recorder: ResponseBodyRecorder,
        skip_response_body: bool,
    ) -> None:
        config = self.config
        # No response started means the framework will answer with a 500.
        status_code = recorder.status_code if recorder.status_code is not None else 500

        set_tag(span, "request_id", request_id(request.headers, recorder.headers), config)
        set_http_status(span, status_code)
        set_tag(span, "resp.status", str(status_code), config)

        if config.dump_headers:
            for name, value in unique_headers(recorder.headers):
                set_tag(span, f"resp.header.{name}", value, config)

        if config.dump_body:
            body = EXCLUDED_MARKER if skip_response_body else recorder.text()
            set_tag(span, RESPONSE_BODY_TAG, body, config)


def instrument_fastapi(
    app: FastAPI,
    config: Optional[SpanTaggingConfig] = None,
    tracer_provider: Optional[trace.TracerProvider] = None,
) -> None:
    """
    Attach the span tagging middleware to the app.

    - `config` defaults to `DEFAULT_CONFIG` (headers on, bodies off, no skips).
    - `tracer_provider` defaults to the global provider; pass the one returned
      by `setup_tracer_provider` or a test provider explicitly.
    """
    app.add_middleware(
        SpanTaggingMiddleware,
        config=config or DEFAULT_CONFIG,
        tracer_provider=tracer_provider,
    )
