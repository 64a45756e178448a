import json
from unittest.mock import MagicMock

import pytest

from perm_extract.observability import (
    AttemptStats,
    ConsoleTracerHook,
    Span,
    SpanEvent,
    Tracer,
)


class TestTracer:
    def test_creates_spans(self):
        tracer = Tracer()
        span_id = tracer.start_span("extract", "GPT-4o")
        tracer.end_span(span_id)

        assert len(tracer.spans) == 1
        assert tracer.spans[0].operation == "extract"
        assert tracer.spans[0].name == "GPT-4o"

    def test_span_lifecycle(self):
        tracer = Tracer()
        span_id = tracer.start_span("extract", "GPT-4o")

        assert len(tracer.spans) == 0

        tracer.end_span(span_id)

        span = tracer.spans[0]
        assert span.end_time is not None
        assert span.duration is not None and span.duration >= 0
        assert span.status == "ok"
        assert span.error is None

    def test_parent_span(self):
        tracer = Tracer()
        parent_id = tracer.start_span("extract", "GPT-4o")
        child_id = tracer.start_span("extract.attempt", "GPT-4o", parent_id=parent_id)
        tracer.end_span(child_id)
        tracer.end_span(parent_id)

        child, parent = tracer.spans
        assert child.parent_id == parent_id
        assert parent.parent_id is None

    def test_events(self):
        tracer = Tracer()
        span_id = tracer.start_span("extract", "GPT-4o")
        tracer.add_event(span_id, "extract.complete", {"attempts": 2})
        tracer.end_span(span_id)

        (event,) = tracer.spans[0].events
        assert event.name == "extract.complete"
        assert event.attributes == {"attempts": 2}

    def test_span_context_manager_records_errors(self):
        tracer = Tracer()

        with pytest.raises(ValueError):
            with tracer.span("extract", "GPT-4o", metadata={"list": True}):
                raise ValueError("boom")

        span = tracer.spans[0]
        assert span.status == "error"
        assert span.error == "ValueError: boom"
        assert span.metadata == {"list": True}

    def test_span_context_manager_yields_id(self):
        tracer = Tracer()
        with tracer.span("extract", "GPT-4o") as span_id:
            assert tracer.get_span(span_id) is not None
        assert tracer.get_span(span_id) is None
        assert tracer.spans[0].status == "ok"

    def test_to_dict_serializable(self):
        tracer = Tracer()
        span_id = tracer.start_span("extract", "GPT-4o", metadata={"model": "gpt-4o"})
        tracer.add_event(span_id, "extract.request", {"attempt": 1})
        tracer.end_span(span_id)

        exported = tracer.to_dict()
        json.dumps(exported)
        assert exported[0]["metadata"] == {"model": "gpt-4o"}
        assert exported[0]["events"][0]["name"] == "extract.request"

    def test_end_nonexistent_span_is_noop(self):
        tracer = Tracer()
        tracer.end_span("missing")
        assert tracer.spans == []


class TestTracerHooks:
    def test_hooks_called(self):
        hook = MagicMock()
        tracer = Tracer(hooks=[hook])

        span_id = tracer.start_span("extract", "GPT-4o")
        tracer.add_event(span_id, "extract.request")
        tracer.end_span(span_id)

        hook.on_span_start.assert_called_once()
        assert isinstance(hook.on_span_start.call_args[0][0], Span)
        hook.on_event.assert_called_once()
        assert isinstance(hook.on_event.call_args[0][1], SpanEvent)
        hook.on_span_end.assert_called_once()


class TestConsoleTracerHook:
    def test_prints_lifecycle(self, capsys):
        tracer = Tracer(hooks=[ConsoleTracerHook()])
        span_id = tracer.start_span("extract", "GPT-4o")
        tracer.add_event(span_id, "extract.complete", {"attempts": 1})
        tracer.end_span(span_id, status="error", error="boom")

        out = capsys.readouterr().out
        assert "[TRACE] start extract: GPT-4o" in out
        assert "[TRACE] event extract.complete attempts=1" in out
        assert "[error] boom" in out


class TestAttemptStats:
    def test_counts(self):
        stats = AttemptStats()
        tracer = Tracer(hooks=[stats])

        root = tracer.start_span("extract", "GPT-4o")
        for name in ("extract.validation_failed", "extract.transport_error"):
            attempt = tracer.start_span("extract.attempt", "GPT-4o", parent_id=root)
            tracer.add_event(attempt, name)
            tracer.end_span(attempt, status="error")
        tracer.end_span(root, status="error")

        assert stats.extractions == 1
        assert stats.attempts == 2
        assert stats.validation_failures == 1
        assert stats.transport_failures == 1
        assert stats.failed_extractions == 1
