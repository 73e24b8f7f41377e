"""
Unit tests for src/utils/tracing
"""

from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
from bson import ObjectId
from opentelemetry.trace import StatusCode

from utils.tracing import (
    add_span_attributes,
    get_tracer,
    trace_function,
    trace_operation,
)


@pytest.fixture
def mock_span():
    with patch("utils.tracing.context.get_tracer") as mock_get_tracer:
        span = MagicMock()
        tracer = mock_get_tracer.return_value
        tracer.start_as_current_span.return_value.__enter__.return_value = span
        yield tracer, span


class TestTraceOperation:
    def test_attribute_coercion(self, mock_span):
        tracer, span = mock_span
        oid = ObjectId()
        since = datetime(2024, 3, 1, tzinfo=UTC)

        with trace_operation(
            "catch_up", collection="customers", batch_size=3, since=since, document_id=oid, missing=None
        ):
            pass

        assert tracer.start_as_current_span.call_args[0][0] == "catch_up"
        span.set_attribute.assert_any_call("collection", "customers")
        span.set_attribute.assert_any_call("batch_size", 3)
        span.set_attribute.assert_any_call("since", since.isoformat())
        span.set_attribute.assert_any_call("document_id", str(oid))
        assert "missing" not in [c.args[0] for c in span.set_attribute.call_args_list]

    def test_error_recorded_and_reraised(self, mock_span):
        _, span = mock_span
        error = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            with trace_operation("full_sync"):
                raise error

        span.set_attribute.assert_any_call("error.type", "RuntimeError")
        span.record_exception.assert_called_once_with(error)
        assert span.set_status.call_args[0][0].status_code is StatusCode.ERROR

    def test_works_without_initialization(self):
        with trace_operation("checkpoint_load") as span:
            assert span.is_recording() is False


class TestSpanHelpers:
    @patch("utils.tracing.context.trace.get_current_span")
    def test_add_attributes_to_recording_span(self, mock_current):
        span = mock_current.return_value
        span.is_recording.return_value = True

        add_span_attributes(state="has_checkpoint")

        span.set_attribute.assert_called_once_with("state", "has_checkpoint")

    @patch("utils.tracing.context.trace.get_current_span")
    def test_non_recording_span_untouched(self, mock_current):
        span = mock_current.return_value
        span.is_recording.return_value = False

        add_span_attributes(state="has_checkpoint")

        span.set_attribute.assert_not_called()


class TestTraceFunction:
    def test_wraps_call(self, mock_span):
        tracer, span = mock_span

        @trace_function("sync_run", component="orchestrator")
        def run(full_reindex=False):
            """Run once"""
            return full_reindex

        assert run(full_reindex=True) is True
        assert run.__name__ == "run"
        assert run.__doc__ == "Run once"
        assert tracer.start_as_current_span.call_args[0][0] == "sync_run"
        span.set_attribute.assert_any_call("component", "orchestrator")
        span.set_attribute.assert_any_call("code.function", "run")
        span.set_attribute.assert_any_call("code.namespace", __name__)

    def test_default_name_is_qualified(self, mock_span):
        tracer, _ = mock_span

        @trace_function()
        def catch_up():
            return None

        catch_up()

        assert tracer.start_as_current_span.call_args[0][0] == catch_up.__qualname__


def test_get_tracer_available_before_initialization():
    assert get_tracer() is not None
