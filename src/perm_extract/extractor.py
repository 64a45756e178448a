from __future__ import annotations

import asyncio
import functools
from contextlib import nullcontext
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from pydantic import BaseModel

from .events import (
    AttemptFailedEvent,
    ChunkEvent,
    DeltaEvent,
    ExtractionCompleteEvent,
    StreamEvent,
)
from .exceptions import SchemaError, SchemaValidationError, TransportError
from .mapper import ABSENT
from .prompts import LIST_INSTRUCTION, SYSTEM_PROMPT, build_messages
from .providers import OutputStrategy
from .retry import RetryConfig, awith_repair, with_repair
from .schema import Field, ListShape, ObjectShape, ScalarShape, Shape, to_json_schema
from .streaming import ExtractionAttempt, on_delta
from .structured import StructuredOutput
from .transport import LiteLLMTransport
from .validator import validate

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from contextlib import AbstractContextManager

    from .observability import Tracer
    from .providers import LLMConfig
    from .transport import Transport
    from .validator import ValidationError

ShapeLike = Union[Shape, type[BaseModel]]

LIST_KEY = "list"
VALUE_KEY = "value"


@dataclass(frozen=True)
class _Target:
    """What is sent to the model and how its validated answer is returned."""

    shape: Shape
    as_list: bool
    output: StructuredOutput[Any] | None
    wrap_key: str | None = None

    @classmethod
    def resolve(
        cls,
        target: ShapeLike,
        *,
        as_list: bool,
        strategy: OutputStrategy,
    ) -> _Target:
        output: StructuredOutput[Any] | None = None
        if isinstance(target, type) and issubclass(target, BaseModel):
            output = StructuredOutput(target)
            shape = output.shape
        elif isinstance(target, (ScalarShape, ObjectShape, ListShape)):
            shape = target
        else:
            raise SchemaError(f"Expected a shape or a pydantic model, got {target!r}")

        # function parameters must be an object
        wrap_key = None
        if as_list:
            shape = ObjectShape((Field(LIST_KEY, ListShape(shape), instruction=LIST_INSTRUCTION),))
            wrap_key = LIST_KEY
        elif strategy is OutputStrategy.FUNCTION and not isinstance(shape, ObjectShape):
            shape = ObjectShape((Field(VALUE_KEY, shape),))
            wrap_key = VALUE_KEY
        return cls(shape=shape, as_list=as_list, output=output, wrap_key=wrap_key)

    def unwrap_partial(self, partial: Any) -> Any:
        if self.wrap_key is None:
            return partial
        return partial.get(self.wrap_key, [] if self.as_list else ABSENT)

    def accept(self, text: str) -> Any:
        """Validate a finished response and build the value handed back."""
        typed = validate(text, self.shape, fill_missing=self.output is None)
        value = typed[self.wrap_key] if self.wrap_key else typed
        if self.output is None:
            return value
        if self.as_list:
            return [self.output.to_model(item, (LIST_KEY, i)) for i, item in enumerate(value)]
        return self.output.to_model(value)


class Extractor:
    """Extracts typed data from unstructured text with a streaming LLM.

    Each call streams the model's answer, reports partial values through
    ``on_chunk`` as they grow, strictly validates the finished answer and
    re-prompts with the validation errors until it passes or the retry budget
    is spent.
    """

    def __init__(
        self,
        config: LLMConfig,
        *,
        transport: Transport | None = None,
        retry: RetryConfig | None = None,
        tracer: Tracer | None = None,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self.config = config
        self.transport = transport or LiteLLMTransport()
        self.retry = retry or RetryConfig()
        self.tracer = tracer
        self.system_prompt = system_prompt

    def get(
        self,
        target: ShapeLike,
        context: str,
        *,
        instructions: str | None = None,
        on_chunk: Callable[[Any], Any] | None = None,
        on_event: Callable[[StreamEvent], Any] | None = None,
    ) -> Any:
        """Extract one value of ``target`` from ``context``.

        Returns a dict (or list/scalar) for a shape, or a model instance for
        a pydantic model class. ``on_chunk`` receives partial plain data.

        Raises:
            ExtractionFailedError: When every attempt failed.
        """
        resolved = self._resolve(target, as_list=False)
        return self._extract(resolved, context, instructions, on_chunk, on_event)

    def get_list(
        self,
        target: ShapeLike,
        context: str,
        *,
        instructions: str | None = None,
        on_chunk: Callable[[Any], Any] | None = None,
        on_event: Callable[[StreamEvent], Any] | None = None,
    ) -> list[Any]:
        """Extract every item of ``target`` found in ``context``."""
        resolved = self._resolve(target, as_list=True)
        return self._extract(resolved, context, instructions, on_chunk, on_event)

    async def aget(
        self,
        target: ShapeLike,
        context: str,
        *,
        instructions: str | None = None,
        on_chunk: Callable[[Any], Any] | None = None,
        on_event: Callable[[StreamEvent], Any] | None = None,
    ) -> Any:
        """Async version of :meth:`get`."""
        return await self._aextract(
            self._resolve(target, as_list=False), context, instructions, on_chunk, on_event
        )

    async def aget_list(
        self,
        target: ShapeLike,
        context: str,
        *,
        instructions: str | None = None,
        on_chunk: Callable[[Any], Any] | None = None,
        on_event: Callable[[StreamEvent], Any] | None = None,
    ) -> list[Any]:
        """Async version of :meth:`get_list`."""
        return await self._aextract(
            self._resolve(target, as_list=True), context, instructions, on_chunk, on_event
        )

    async def aget_many(
        self,
        target: ShapeLike,
        contexts: Sequence[str],
        *,
        instructions: str | None = None,
        on_chunk: Callable[[int, Any], Any] | None = None,
        return_exceptions: bool = False,
    ) -> list[Any]:
        """Run one independent extraction per context, concurrently.

        ``on_chunk`` receives the index of the context and the partial value.
        """
        calls = [
            self.aget(
                target,
                context,
                instructions=instructions,
                on_chunk=functools.partial(on_chunk, index) if on_chunk else None,
            )
            for index, context in enumerate(contexts)
        ]
        return list(await asyncio.gather(*calls, return_exceptions=return_exceptions))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _resolve(self, target: ShapeLike, *, as_list: bool) -> _Target:
        return _Target.resolve(target, as_list=as_list, strategy=self.config.strategy)

    def _span(
        self,
        operation: str,
        parent_id: str | None = None,
        **metadata: Any,
    ) -> AbstractContextManager[str | None]:
        if self.tracer is None:
            return nullcontext(None)
        return self.tracer.span(
            operation, self.config.label, parent_id=parent_id, metadata=metadata
        )

    def _trace(self, span_id: str | None, name: str, attributes: dict[str, Any]) -> None:
        if self.tracer and span_id:
            self.tracer.add_event(span_id, name, attributes)

    def _extract(
        self,
        target: _Target,
        context: str,
        instructions: str | None,
        on_chunk: Callable[[Any], Any] | None,
        on_event: Callable[[StreamEvent], Any] | None,
    ) -> Any:
        with self._span("extract", model=self.config.model, list=target.as_list) as span_id:
            attempts: list[int] = []

            def run(number: int, feedback: list[ValidationError]) -> Any:
                attempts.append(number)
                attempt, messages, schema = self._start_attempt(
                    target, context, instructions, number, feedback
                )
                with self._span("extract.attempt", span_id, attempt=number) as attempt_span:
                    self._trace(
                        attempt_span,
                        "extract.request",
                        {"attempt": number, "feedback": len(feedback)},
                    )
                    try:
                        stream = self.transport.stream_completion(
                            messages, self.config, schema=schema
                        )
                        for delta in stream:
                            self._on_delta(attempt, target, delta, on_chunk, on_event)
                        return target.accept(attempt.text)
                    except (SchemaValidationError, TransportError) as exc:
                        self._attempt_failed(attempt, attempt_span, exc, on_event)
                        raise

            result = with_repair(run, self.retry)
            self._complete(span_id, len(attempts), result, on_event)
            return result

    async def _aextract(
        self,
        target: _Target,
        context: str,
        instructions: str | None,
        on_chunk: Callable[[Any], Any] | None,
        on_event: Callable[[StreamEvent], Any] | None,
    ) -> Any:
        with self._span("extract", model=self.config.model, list=target.as_list) as span_id:
            attempts: list[int] = []

            async def run(number: int, feedback: list[ValidationError]) -> Any:
                attempts.append(number)
                attempt, messages, schema = self._start_attempt(
                    target, context, instructions, number, feedback
                )
                with self._span("extract.attempt", span_id, attempt=number) as attempt_span:
                    self._trace(
                        attempt_span,
                        "extract.request",
                        {"attempt": number, "feedback": len(feedback)},
                    )
                    try:
                        stream = self.transport.astream_completion(  # type: ignore[attr-defined]
                            messages, self.config, schema=schema
                        )
                        async for delta in stream:
                            self._on_delta(attempt, target, delta, on_chunk, on_event)
                        return target.accept(attempt.text)
                    except (SchemaValidationError, TransportError) as exc:
                        self._attempt_failed(attempt, attempt_span, exc, on_event)
                        raise

            result = await awith_repair(run, self.retry)
            self._complete(span_id, len(attempts), result, on_event)
            return result

    def _start_attempt(
        self,
        target: _Target,
        context: str,
        instructions: str | None,
        number: int,
        feedback: list[ValidationError],
    ) -> tuple[ExtractionAttempt, list[dict[str, Any]], dict[str, Any]]:
        schema = to_json_schema(target.shape)
        messages = build_messages(
            schema,
            context,
            strategy=self.config.strategy,
            instructions=instructions,
            feedback=feedback,
            system_prompt=self.system_prompt,
        )
        return ExtractionAttempt(number=number, shape=target.shape), messages, schema

    def _on_delta(
        self,
        attempt: ExtractionAttempt,
        target: _Target,
        delta: str,
        on_chunk: Callable[[Any], Any] | None,
        on_event: Callable[[StreamEvent], Any] | None,
    ) -> None:
        _notify(attempt, on_event, DeltaEvent(attempt=attempt.number, text=delta))

        def emit(partial: Any) -> None:
            value = target.unwrap_partial(partial)
            if value is ABSENT:
                return
            _notify(attempt, on_event, ChunkEvent(attempt=attempt.number, value=value))
            if on_chunk is not None:
                on_chunk(value)

        on_delta(attempt, delta, emit)

    def _attempt_failed(
        self,
        attempt: ExtractionAttempt,
        span_id: str | None,
        exc: SchemaValidationError | TransportError,
        on_event: Callable[[StreamEvent], Any] | None,
    ) -> None:
        if isinstance(exc, TransportError):
            errors: list[Any] = [str(exc)]
            self._trace(
                span_id,
                "extract.transport_error",
                {"attempt": attempt.number, "error": str(exc.original)},
            )
        else:
            errors = list(exc.errors)
            self._trace(
                span_id,
                "extract.validation_failed",
                {"attempt": attempt.number, "errors": [str(e) for e in exc.errors]},
            )
        _notify(attempt, on_event, AttemptFailedEvent(attempt=attempt.number, errors=errors))

    def _complete(
        self,
        span_id: str | None,
        attempts: int,
        result: Any,
        on_event: Callable[[StreamEvent], Any] | None,
    ) -> None:
        self._trace(span_id, "extract.complete", {"attempts": attempts})
        if on_event is not None:
            on_event(ExtractionCompleteEvent(attempts=attempts, result=result))


def _notify(
    attempt: ExtractionAttempt,
    callback: Callable[[Any], Any] | None,
    payload: Any,
) -> None:
    """Invoke a caller callback; its failures are recorded, never raised."""
    if callback is None:
        return
    try:
        callback(payload)
    except Exception as exc:
        attempt.callback_errors.append(exc)
