# settings.py
"""Configuration management for the span tagging middleware.

Centralized configuration using dataclasses for type safety and
environment variable integration. A middleware configuration is built once
at startup and shared read-only by every request.
"""

import os
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Literal, Optional, Tuple

from dotenv import load_dotenv
from starlette.requests import Request

from core.code_exceptions import ConfigurationError

Skipper = Callable[[Request], bool]
BodySkipper = Callable[[Request], Tuple[bool, bool]]

MAX_TAG_VALUE_LENGTH = 200
MAX_TAG_KEY_LENGTH = 32


def default_skipper(request: Request) -> bool:
    """Never skip."""
    return False


def default_body_skipper(request: Request) -> Tuple[bool, bool]:
    """Capture both request and response bodies."""
    return False, False


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from exc


@dataclass(frozen=True)
class SpanTaggingConfig:
    """Span tagging middleware configuration.

    Attributes:
        skipper: Returns True for requests the middleware should pass through
            untouched.
        body_skipper: Returns ``(skip_request_body, skip_response_body)``.
            A skipped side is tagged ``[excluded]`` and never buffered.
        dump_headers: Add request and response headers as span tags.
        dump_body: Add request and response bodies as span tags.
        excluded_paths: Exact request paths that bypass the middleware.
        max_tag_value_length: Ceiling for tag values, ellipsis included.
        max_tag_key_length: Ceiling for tag keys.
    """
    skipper: Skipper = default_skipper
    body_skipper: BodySkipper = default_body_skipper
    dump_headers: bool = True
    dump_body: bool = False
    excluded_paths: FrozenSet[str] = field(default_factory=frozenset)
    max_tag_value_length: int = MAX_TAG_VALUE_LENGTH
    max_tag_key_length: int = MAX_TAG_KEY_LENGTH

    def __post_init__(self) -> None:
        if self.max_tag_value_length < 4:
            raise ConfigurationError(
                "max_tag_value_length must leave room for the '...' marker (>= 4)"
            )
        if self.max_tag_key_length < 1:
            raise ConfigurationError("max_tag_key_length must be positive")
        # Accept any iterable of paths while keeping the field hashable.
        object.__setattr__(self, "excluded_paths", frozenset(self.excluded_paths))

    @classmethod
    def from_env(
        cls,
        skipper: Optional[Skipper] = None,
        body_skipper: Optional[BodySkipper] = None,
    ) -> "SpanTaggingConfig":
        """Create configuration from environment variables."""
        load_dotenv()
        paths = os.getenv("SPAN_EXCLUDED_PATHS", "")
        return cls(
            skipper=skipper or default_skipper,
            body_skipper=body_skipper or default_body_skipper,
            dump_headers=_env_bool("SPAN_DUMP_HEADERS", True),
            dump_body=_env_bool("SPAN_DUMP_BODY", False),
            excluded_paths=frozenset(p.strip() for p in paths.split(",") if p.strip()),
            max_tag_value_length=_env_int("SPAN_MAX_TAG_VALUE_LENGTH", MAX_TAG_VALUE_LENGTH),
            max_tag_key_length=_env_int("SPAN_MAX_TAG_KEY_LENGTH", MAX_TAG_KEY_LENGTH),
        )


DEFAULT_CONFIG = SpanTaggingConfig()


ExportProtocol = Literal["grpc", "http/protobuf"]


@dataclass(frozen=True)
class TracerConfig:
    """Arize Phoenix tracer provider settings."""
    enabled: bool = True
    project_name: str = "span-tagging"
    protocol: Optional[ExportProtocol] = None
    endpoint: Optional[str] = None

    @property
    def resolved_endpoint(self) -> str:
        if self.endpoint:
            return self.endpoint
        if self.protocol == "grpc":
            return "http://localhost:4317"
        return "http://localhost:6006/v1/traces"

    @classmethod
    def from_env(cls) -> "TracerConfig":
        """Create configuration from environment variables."""
        load_dotenv()
        protocol: Optional[ExportProtocol] = None
        proto = os.getenv("PHOENIX_PROTOCOL", "").lower()
        if proto == "grpc":
            protocol = "grpc"
        elif proto == "http/protobuf":
            protocol = "http/protobuf"
        return cls(
            enabled=_env_bool("PHOENIX_ENABLED", True),
            project_name=os.getenv("PHOENIX_PROJECT_NAME", "span-tagging"),
            protocol=protocol,
            endpoint=os.getenv("PHOENIX_COLLECTOR_ENDPOINT") or None,
        )
