"""
Span lifecycle for one HTTP request.

`request_span` opens a server span, makes it the current span for the
downstream application and, on every exit path, restores the previous context
and ends the span:

    with request_span(tracer, "HTTP GET /user/{id}", "HTTP GET /user/42") as span:
        ...  # call the application
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.instrumentation.utils import http_status_to_status_code
from opentelemetry.trace import Span, SpanKind, Status, StatusCode

from config.settings import DEFAULT_CONFIG, SpanTaggingConfig

from .sanitize import set_tag

TRANSACTION_TAG = "transaction"
ERROR_TAG = "handler.error"


def operation_name(method: str, route_template: str) -> str:
    """Low-cardinality span name built from the route template."""
    if not route_template:
        return f"HTTP {method}"
    return f"HTTP {method} {route_template}"


def transaction_name(method: str, uri: str) -> str:
    return f"HTTP {method} {uri}"


@contextmanager
def request_span(
    tracer: trace.Tracer,
    operation: str,
    transaction: str,
    parent: Optional[Context] = None,
    config: SpanTaggingConfig = DEFAULT_CONFIG,
) -> Iterator[Span]:
    span = tracer.start_span(operation, context=parent, kind=SpanKind.SERVER)
    set_tag(span, TRANSACTION_TAG, transaction, config)
    token = otel_context.attach(trace.set_span_in_context(span, parent))
    try:
        yield span
    finally:
        otel_context.detach(token)
        span.end()


def record_handler_error(
    span: Span,
    exc: BaseException,
    config: SpanTaggingConfig = DEFAULT_CONFIG,
) -> None:
    """Tag the span with an error raised by the downstream application."""
    if not span.is_recording():
        return
    set_tag(span, ERROR_TAG, str(exc) or type(exc).__name__, config)
    span.record_exception(exc)


def set_http_status(span: Span, status_code: int) -> None:
    """Map an HTTP status onto the span status (5xx is an error for servers)."""
    if not span.is_recording():
        return
    code = http_status_to_status_code(status_code, server_span=True)
    if code is StatusCode.UNSET:
        return
    span.set_status(Status(code, f"HTTP {status_code}"))
