"""
OpenTelemetry tracer provider for the sync process.

Tracing is configured once from the CLI. Until then ``get_tracer``
hands out the API's proxy tracer, whose spans are non-recording, so
library code and tests can open spans without any setup.

Environment:
    OTLP_ENDPOINT        gRPC collector address, e.g. ``localhost:4317``
    TRACE_CONSOLE        ``true`` to also print finished spans
    TRACE_SAMPLING_RATE  root sampling ratio, 0.0-1.0 (default 1.0)
"""

import logging
import os

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SpanExporter,
)
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

logger = logging.getLogger(__name__)

INSTRUMENTATION_NAME = "pii-mirror-sync"

_provider: TracerProvider | None = None


def _sampling_rate_from_env(default: float) -> float:
    raw = os.getenv("TRACE_SAMPLING_RATE")
    if not raw:
        return default
    try:
        return min(max(float(raw), 0.0), 1.0)
    except ValueError:
        logger.warning(f"Ignoring invalid TRACE_SAMPLING_RATE={raw!r}")
        return default


def _build_exporters(otlp_endpoint: str | None, console_export: bool) -> dict[str, SpanExporter]:
    exporters: dict[str, SpanExporter] = {}

    if otlp_endpoint:
        try:
            exporters["otlp"] = OTLPSpanExporter(endpoint=otlp_endpoint, insecure=True)
        except Exception as e:
            logger.warning(f"Failed to configure OTLP exporter for {otlp_endpoint}: {e}")

    if console_export:
        exporters["console"] = ConsoleSpanExporter()

    return exporters


def initialize_tracing(
    service_name: str = INSTRUMENTATION_NAME,
    service_version: str = "1.0.0",
    otlp_endpoint: str | None = None,
    console_export: bool | None = None,
    sampling_rate: float = 1.0,
) -> trace.Tracer:
    """
    Install the SDK tracer provider.

    Arguments left as None fall back to the environment. With no
    exporter configured, spans are sampled and recorded but never leave
    the process. A second call is a no-op.

    Returns:
        Tracer from the installed provider
    """
    global _provider

    if _provider is not None:
        logger.warning("Tracing already initialized")
        return _provider.get_tracer(INSTRUMENTATION_NAME)

    if otlp_endpoint is None:
        otlp_endpoint = os.getenv("OTLP_ENDPOINT")
    if console_export is None:
        console_export = os.getenv("TRACE_CONSOLE", "").lower() == "true"
    sampling_rate = _sampling_rate_from_env(sampling_rate)

    provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: service_name, SERVICE_VERSION: service_version}),
        sampler=ParentBased(TraceIdRatioBased(sampling_rate)),
    )

    exporters = _build_exporters(otlp_endpoint, console_export)
    for exporter in exporters.values():
        provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(provider)
    _provider = provider

    logger.info(
        f"Tracing initialized for {service_name} "
        f"(exporters: {', '.join(exporters) or 'none'}, sampling: {sampling_rate})"
    )
    return provider.get_tracer(INSTRUMENTATION_NAME)


def get_tracer() -> trace.Tracer:
    """Tracer for the engine's spans (non-recording until tracing is initialized)."""
    if _provider is not None:
        return _provider.get_tracer(INSTRUMENTATION_NAME)
    return trace.get_tracer(INSTRUMENTATION_NAME)


def shutdown_tracing() -> None:
    """Flush pending spans; call before process exit."""
    global _provider

    if _provider is None:
        return

    try:
        _provider.shutdown()
        logger.info("Tracing shutdown complete")
    except Exception as e:
        logger.error(f"Error during tracing shutdown: {e}")
    finally:
        _provider = None


def instrument_pymongo() -> bool:
    """
    Give every MongoDB command a client span.

    Needs the optional ``opentelemetry-instrumentation-pymongo`` package
    (the ``instrumentation`` extra).

    Returns:
        True if the instrumentor was installed
    """
    try:
        from opentelemetry.instrumentation.pymongo import PymongoInstrumentor
    except ImportError:
        logger.info("opentelemetry-instrumentation-pymongo not installed; MongoDB commands not traced")
        return False

    PymongoInstrumentor().instrument()
    logger.info("pymongo instrumentation enabled")
    return True
