"""
Tag sanitizing helpers.

Tracing backends reject or mangle oversized attributes, and line breaks break
line-oriented trace viewers, so every tag written by the middleware goes
through `set_tag`.
"""

from __future__ import annotations

from opentelemetry.trace import Span

from config.settings import (
    DEFAULT_CONFIG,
    MAX_TAG_KEY_LENGTH,
    MAX_TAG_VALUE_LENGTH,
    SpanTaggingConfig,
)

EXCLUDED_MARKER = "[excluded]"
READ_ERROR_MARKER = "[read_error]"
ELLIPSIS = "..."

_WHITESPACE = str.maketrans({"\r": " ", "\n": " ", "\t": " "})


def prepare_tag_value(value: str, max_length: int = MAX_TAG_VALUE_LENGTH) -> str:
    """Collapse line breaks and tabs to spaces and cap the length.

    Values longer than `max_length` keep their first ``max_length - 3``
    characters followed by ``...``.
    """
    if not value:
        return value
    value = value.translate(_WHITESPACE)
    if len(value) > max_length:
        return value[: max_length - len(ELLIPSIS)] + ELLIPSIS
    return value


def prepare_tag_key(key: str, max_length: int = MAX_TAG_KEY_LENGTH) -> str:
    return key[:max_length]


def set_tag(
    span: Span,
    key: str,
    value: str,
    config: SpanTaggingConfig = DEFAULT_CONFIG,
) -> None:
    """Attach a sanitized string attribute to `span`."""
    if not span.is_recording():
        return
    span.set_attribute(
        prepare_tag_key(key, config.max_tag_key_length),
        prepare_tag_value(value, config.max_tag_value_length),
    )
