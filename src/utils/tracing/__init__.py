"""
OpenTelemetry tracing for the sync engine.

Spans cover scans, batch writes, checkpoint round trips and change
event application. MongoDB commands get client spans when the optional
pymongo instrumentation is installed.
"""

from .context import add_span_attributes, add_span_event, trace_operation
from .decorators import trace_function
from .tracer import (
    get_tracer,
    initialize_tracing,
    instrument_pymongo,
    shutdown_tracing,
)

__all__ = [
    "trace_operation",
    "trace_function",
    "add_span_attributes",
    "add_span_event",
    "initialize_tracing",
    "get_tracer",
    "instrument_pymongo",
    "shutdown_tracing",
]
