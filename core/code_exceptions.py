"""Custom exception hierarchy for the span tagging middleware."""

from typing import Awaitable, Callable, Dict, Any


class SpanMiddlewareError(Exception):
    """Base exception for all span middleware errors."""


class ConfigurationError(SpanMiddlewareError):
    """Raised when a middleware or tracer configuration is invalid."""


class BodyReadError(SpanMiddlewareError):
    """Raised internally when the request body cannot be read (non-fatal).

    Carries a ``receive`` callable that replays whatever was read before the
    failure, so the request can still be handed downstream.
    """

    def __init__(
        self,
        message: str,
        receive: Callable[[], Awaitable[Dict[str, Any]]],
    ) -> None:
        super().__init__(message)
        self.receive = receive
