"""OpenTelemetry tracing helpers.

Engine code asks for a tracer through :func:`get_tracer` and never checks
whether tracing is configured.  Without an SDK the OpenTelemetry API hands
out no-op tracers, so spans cost next to nothing.

Spans emitted by the engine:

``process.run``
    One per call to :meth:`AgentProcess.run`.
``planner.plan``
    Every planning pass.
``action.execute``
    One action invocation, retries included.
``toolloop.execute`` / ``tool.call``
    A tool loop and each tool call inside it.

Install the ``otel`` extra and call :func:`configure_telemetry` once to
export spans.
"""

from __future__ import annotations

from typing import Any

from opentelemetry import trace

# ---------------------------------------------------------------------------
# Semantic attribute keys
# ---------------------------------------------------------------------------

ATTR_PROCESS_ID = "goalflow.process.id"
ATTR_PROCESS_STATUS = "goalflow.process.status"
ATTR_AGENT_NAME = "goalflow.agent.name"
ATTR_GOAL_NAME = "goalflow.goal.name"
ATTR_PLANNER = "goalflow.planner"
ATTR_ACTION_NAME = "goalflow.action.name"
ATTR_ACTION_ATTEMPTS = "goalflow.action.attempts"
ATTR_ACTION_OUTCOME = "goalflow.action.outcome"
ATTR_TOOL_NAME = "goalflow.tool.name"
ATTR_TOOL_STATUS = "goalflow.tool.status"
ATTR_TOOLLOOP_MODE = "goalflow.toolloop.mode"
ATTR_TOOLLOOP_ITERATION = "goalflow.toolloop.iteration"
ATTR_TOOLLOOP_OUTCOME = "goalflow.toolloop.outcome"
ATTR_MODEL = "goalflow.model"

_INSTRUMENTATION_NAME = "goalflow"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return a tracer for *name* (a no-op tracer unless an SDK is configured)."""
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(
    *,
    service_name: str = "goalflow",
    export_to_console: bool = False,
    otlp_endpoint: str | None = None,
) -> None:
    """Install an SDK tracer provider (requires ``goalflow[otel]``).

    Parameters
    ----------
    service_name:
        The ``service.name`` resource attribute.
    export_to_console:
        Print finished spans to stdout.
    otlp_endpoint:
        Export spans over OTLP/gRPC to this endpoint.

    Raises
    ------
    ImportError
        If ``opentelemetry-sdk`` (or the OTLP exporter, when an endpoint is
        given) is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace.export import (  # pyright: ignore[reportMissingImports]
            BatchSpanProcessor,
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )
    except ImportError as exc:
        msg = "configure_telemetry() needs opentelemetry-sdk: pip install goalflow[otel]"
        raise ImportError(msg) from exc

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))

    if export_to_console:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    if otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(_otlp_exporter(otlp_endpoint)))

    trace.set_tracer_provider(provider)


def _otlp_exporter(endpoint: str) -> Any:
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (  # pyright: ignore[reportMissingImports]
            OTLPSpanExporter,
        )
    except ImportError as exc:
        msg = "OTLP export needs opentelemetry-exporter-otlp: pip install goalflow[otel]"
        raise ImportError(msg) from exc
    return OTLPSpanExporter(endpoint=endpoint)
