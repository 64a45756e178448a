from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass
class SpanEvent:
    """A timestamped event within a span."""

    timestamp: float
    name: str
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class Span:
    """One traced operation: a whole extraction or a single attempt."""

    span_id: str
    parent_id: str | None
    operation: str
    name: str
    start_time: float
    end_time: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    events: list[SpanEvent] = field(default_factory=list)
    status: str = "ok"
    error: str | None = None

    @property
    def duration(self) -> float | None:
        return (self.end_time - self.start_time) if self.end_time is not None else None


class TracerHook(Protocol):
    """Observer interface for span lifecycle events."""

    def on_span_start(self, span: Span) -> None: ...
    def on_span_end(self, span: Span) -> None: ...
    def on_event(self, span_id: str, event: SpanEvent) -> None: ...


class Tracer:
    """Collects spans and events while extractions run."""

    def __init__(self, hooks: list[TracerHook] | None = None) -> None:
        self._spans: dict[str, Span] = {}
        self._completed: list[Span] = []
        self._hooks: list[TracerHook] = hooks or []

    def start_span(
        self,
        operation: str,
        name: str,
        parent_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        span_id = uuid.uuid4().hex[:16]
        span = Span(
            span_id=span_id,
            parent_id=parent_id,
            operation=operation,
            name=name,
            start_time=time.monotonic(),
            metadata=metadata or {},
        )
        self._spans[span_id] = span
        for hook in self._hooks:
            hook.on_span_start(span)
        return span_id

    def end_span(
        self,
        span_id: str,
        status: str = "ok",
        error: str | None = None,
    ) -> None:
        span = self._spans.pop(span_id, None)
        if span is None:
            return
        span.end_time = time.monotonic()
        span.status = status
        span.error = error
        self._completed.append(span)
        for hook in self._hooks:
            hook.on_span_end(span)

    @contextmanager
    def span(
        self,
        operation: str,
        name: str,
        parent_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Iterator[str]:
        """Run a block inside a span; an escaping exception marks it as errored."""
        span_id = self.start_span(operation, name, parent_id=parent_id, metadata=metadata)
        try:
            yield span_id
        except BaseException as exc:
            self.end_span(span_id, status="error", error=f"{type(exc).__name__}: {exc}")
            raise
        self.end_span(span_id)

    def add_event(
        self,
        span_id: str,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        event = SpanEvent(
            timestamp=time.monotonic(),
            name=name,
            attributes=attributes or {},
        )
        span = self._spans.get(span_id)
        if span is not None:
            span.events.append(event)
        for hook in self._hooks:
            hook.on_event(span_id, event)

    def get_span(self, span_id: str) -> Span | None:
        """Return an active (in-flight) span by its ID, or None."""
        return self._spans.get(span_id)

    @property
    def spans(self) -> list[Span]:
        return list(self._completed)

    def to_dict(self) -> list[dict[str, Any]]:
        """Export all completed spans as JSON-serializable dicts."""
        return [
            {
                "span_id": s.span_id,
                "parent_id": s.parent_id,
                "operation": s.operation,
                "name": s.name,
                "start_time": s.start_time,
                "end_time": s.end_time,
                "duration": s.duration,
                "metadata": s.metadata,
                "events": [
                    {"timestamp": e.timestamp, "name": e.name, "attributes": e.attributes}
                    for e in s.events
                ],
                "status": s.status,
                "error": s.error,
            }
            for s in self._completed
        ]


class ConsoleTracerHook:
    """Prints spans to console for debugging."""

    def on_span_start(self, span: Span) -> None:
        print(f"[TRACE] start {span.operation}: {span.name}")

    def on_span_end(self, span: Span) -> None:
        suffix = f" {span.error}" if span.error else ""
        print(
            f"[TRACE] end   {span.operation}: {span.name} "
            f"({span.duration or 0:.4f}s) [{span.status}]{suffix}"
        )

    def on_event(self, span_id: str, event: SpanEvent) -> None:
        details = " ".join(f"{k}={v}" for k, v in event.attributes.items())
        print(f"[TRACE] event {event.name} {details}".rstrip())


class AttemptStats:
    """Counts attempts and their failure causes across extractions."""

    def __init__(self) -> None:
        self.extractions: int = 0
        self.attempts: int = 0
        self.validation_failures: int = 0
        self.transport_failures: int = 0
        self.failed_extractions: int = 0

    def on_span_start(self, span: Span) -> None:
        if span.operation == "extract":
            self.extractions += 1
        elif span.operation == "extract.attempt":
            self.attempts += 1

    def on_span_end(self, span: Span) -> None:
        if span.operation == "extract" and span.status == "error":
            self.failed_extractions += 1

    def on_event(self, span_id: str, event: SpanEvent) -> None:
        if event.name == "extract.validation_failed":
            self.validation_failures += 1
        elif event.name == "extract.transport_error":
            self.transport_failures += 1
