"""
Span helpers for the sync engine.

``trace_operation`` wraps a unit of work (a scan, a batch write, a
checkpoint round trip) in a span. The other helpers decorate whatever
span is current, so deep call sites do not need a span reference.

Attribute values are coerced to types OpenTelemetry accepts: numbers,
booleans and strings pass as is, datetimes become ISO-8601 strings and
anything else (ObjectId, Timestamp) is stringified. None is dropped.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from .tracer import get_tracer

AttributeValue = str | bool | int | float


def _coerce(value: Any) -> AttributeValue | None:
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _set_attributes(span: trace.Span, attributes: dict[str, Any]) -> None:
    for key, value in attributes.items():
        coerced = _coerce(value)
        if coerced is not None:
            span.set_attribute(key, coerced)


@contextmanager
def trace_operation(
    operation_name: str,
    kind: trace.SpanKind = trace.SpanKind.INTERNAL,
    **attributes: Any,
) -> Iterator[trace.Span]:
    """
    Run the enclosed block inside a new span.

    An exception escaping the block marks the span as failed and is
    re-raised unchanged.

    Example:
        >>> with trace_operation("catch_up", collection="customers", since=since) as span:
        ...     result = scanner.run(since)
        ...     span.set_attribute("documents_scanned", result.scanned)
    """
    with get_tracer().start_as_current_span(
        operation_name,
        kind=kind,
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        _set_attributes(span, attributes)
        try:
            yield span
        except Exception as e:
            span.set_attribute("error.type", type(e).__name__)
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise


def add_span_attributes(**attributes: Any) -> None:
    """Attach attributes to the current span, if one is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        _set_attributes(span, attributes)


def add_span_event(name: str, **attributes: Any) -> None:
    """
    Record a point-in-time event (a flushed batch, a reconnect) on the
    current span.
    """
    span = trace.get_current_span()
    if span.is_recording():
        coerced = {key: _coerce(value) for key, value in attributes.items()}
        span.add_event(name, attributes={k: v for k, v in coerced.items() if v is not None})
