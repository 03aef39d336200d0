"""OpenTelemetry utilities for client-side tracing."""

from .otel import get_tracer

__all__ = [
    "get_tracer",
]
