from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class StreamEvent:
    """Base event for streaming."""

    event_type: str


@dataclass(frozen=True, slots=True)
class DeltaEvent(StreamEvent):
    """Emitted for each text delta received from the LLM."""

    event_type: str = "delta"
    attempt: int = 1
    text: str = ""


@dataclass(frozen=True, slots=True)
class ChunkEvent(StreamEvent):
    """Emitted when the partially extracted value changes."""

    event_type: str = "chunk"
    attempt: int = 1
    value: Any = None


@dataclass(frozen=True, slots=True)
class AttemptFailedEvent(StreamEvent):
    """Emitted when an attempt fails validation or transport."""

    event_type: str = "attempt_failed"
    attempt: int = 1
    errors: list[Any] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ExtractionCompleteEvent(StreamEvent):
    """Emitted once the extracted value passed validation."""

    event_type: str = "extraction_complete"
    attempts: int = 1
    result: Any = None


class EventHandler(Protocol):
    def on_event(self, event: StreamEvent) -> None: ...
