"""OpenTelemetry instrumentation helpers.

Promotion steps run inside spans so a slow code-generation or migration
invocation shows up in traces. Spans are only exported to the console when
asked for; the CLI keeps stdout for its own output.
"""

import inspect
from functools import wraps
from typing import Any, Callable

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter


# Global tracer provider (initialized once)
_tracer_provider: TracerProvider | None = None


def init_telemetry(service_name: str = "entity-kb", console_export: bool = False) -> None:
    """Initialize OpenTelemetry tracing.

    Args:
        service_name: Name of the service for traces (default: "entity-kb")
        console_export: Print finished spans to the console
    """
    global _tracer_provider

    if _tracer_provider is not None:
        return

    _tracer_provider = TracerProvider(
        resource=Resource.create({"service.name": service_name})
    )

    if console_export:
        _tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(_tracer_provider)


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer for creating spans, initializing telemetry on first use.

    Example:
        >>> tracer = get_tracer("entity_kb.promoter")
        >>> with tracer.start_as_current_span("copy_entities"):
        ...     pass
    """
    if _tracer_provider is None:
        init_telemetry()

    return trace.get_tracer(name)


def instrument_function(span_name: str | None = None) -> Callable:
    """Decorator that wraps a sync or async function in a span.

    Args:
        span_name: Name for the span (default: function name)
    """

    def decorator(func: Callable) -> Callable:
        actual_span_name = span_name or func.__name__

        @wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
            with get_tracer(func.__module__).start_as_current_span(actual_span_name):
                return await func(*args, **kwargs)

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            with get_tracer(func.__module__).start_as_current_span(actual_span_name):
                return func(*args, **kwargs)

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
