"""
Tracer provider bootstrap backed by Arize Phoenix.

The middleware works with any OpenTelemetry tracer provider. Applications
that don't bring their own can call `setup_tracer_provider` once at startup:

    from config.settings import TracerConfig
    from observability.tracing.tracer import setup_tracer_provider

    provider = setup_tracer_provider(TracerConfig.from_env())
"""

from __future__ import annotations

import socket
from typing import Optional
from urllib.parse import urlparse

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from phoenix.otel import register

from config.logger import log
from config.settings import TracerConfig

INSTRUMENTATION_NAME = "span_tagging"


def _can_connect(config: TracerConfig, timeout: float = 0.8) -> bool:
    endpoint = config.resolved_endpoint
    parsed = urlparse(endpoint)
    host = parsed.hostname or "localhost"
    port = parsed.port or (4317 if config.protocol == "grpc" else 80)
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def setup_tracer_provider(config: TracerConfig) -> Optional[TracerProvider]:
    """Register Phoenix as the global OpenTelemetry backend.

    Returns None when Phoenix is disabled or its collector is unreachable;
    spans then go to whatever global provider is already installed (the
    no-op one by default).
    """
    if not config.enabled:
        log.info("Phoenix tracing disabled")
        return None
    if not _can_connect(config):
        log.warning("Phoenix collector unreachable at %s, tracing not registered",
                    config.resolved_endpoint)
        return None

    provider = register(
        project_name=config.project_name,
        endpoint=config.resolved_endpoint,
        protocol=config.protocol,
        auto_instrument=False,
        batch=False,
    )
    log.info("Phoenix tracing registered for project %s at %s",
             config.project_name, config.resolved_endpoint)
    return provider


def get_tracer(
    name: Optional[str] = None,
    tracer_provider: Optional[trace.TracerProvider] = None,
) -> trace.Tracer:
    """
    Get an OpenTelemetry tracer.

    `tracer_provider` defaults to the global provider, resolved lazily by the
    API so a provider registered after import is still picked up.
    """
    return trace.get_tracer(name or INSTRUMENTATION_NAME, tracer_provider=tracer_provider)
