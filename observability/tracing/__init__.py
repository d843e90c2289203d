"""
Span tagging for FastAPI / Starlette requests.

This package exposes:
- `SpanTaggingMiddleware` – the ASGI middleware itself.
- `instrument_fastapi` – helper to attach it to a FastAPI app.
- `request_span` – span lifecycle context manager used by the middleware.
- `prepare_tag_value` / `prepare_tag_key` / `set_tag` – tag sanitizing.
- `get_tracer` / `setup_tracer_provider` – tracer access and Phoenix bootstrap.
"""

from .fastapi_middleware import SpanTaggingMiddleware, instrument_fastapi
from .instrumentation import request_span
from .sanitize import (
    EXCLUDED_MARKER,
    READ_ERROR_MARKER,
    prepare_tag_key,
    prepare_tag_value,
    set_tag,
)
from .tracer import get_tracer, setup_tracer_provider

__all__ = [
    "SpanTaggingMiddleware",
    "instrument_fastapi",
    "request_span",
    "EXCLUDED_MARKER",
    "READ_ERROR_MARKER",
    "prepare_tag_key",
    "prepare_tag_value",
    "set_tag",
    "get_tracer",
    "setup_tracer_provider",
]
