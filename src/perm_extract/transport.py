from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import litellm

from .exceptions import TransportError
from .providers import OutputStrategy

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from .providers import LLMConfig

EXTRACT_TOOL_NAME = "extract"


class Transport(Protocol):
    """Delivers a model response as a sequence of text deltas."""

    def stream_completion(
        self,
        messages: list[dict[str, Any]],
        config: LLMConfig,
        *,
        schema: dict[str, Any],
    ) -> Iterator[str]: ...


class AsyncTransport(Protocol):
    def astream_completion(
        self,
        messages: list[dict[str, Any]],
        config: LLMConfig,
        *,
        schema: dict[str, Any],
    ) -> AsyncIterator[str]: ...


def build_request(
    messages: list[dict[str, Any]],
    config: LLMConfig,
    schema: dict[str, Any],
) -> dict[str, Any]:
    """Build the streaming litellm request for the config's output strategy."""
    kwargs = config.completion_kwargs()
    kwargs["messages"] = messages
    kwargs["stream"] = True

    if config.strategy is OutputStrategy.FUNCTION:
        kwargs["tools"] = [
            {
                "type": "function",
                "function": {
                    "name": EXTRACT_TOOL_NAME,
                    "description": "Record the data extracted from the context.",
                    "parameters": schema,
                },
            }
        ]
        kwargs["tool_choice"] = {"type": "function", "function": {"name": EXTRACT_TOOL_NAME}}
    elif config.strategy is OutputStrategy.JSON:
        kwargs["response_format"] = {"type": "json_object"}

    return kwargs


def delta_text(chunk: Any, strategy: OutputStrategy) -> str:
    """Text carried by one streamed chunk for the given strategy."""
    if not chunk.choices:
        return ""
    delta = chunk.choices[0].delta

    if strategy is not OutputStrategy.FUNCTION:
        return delta.content or ""

    parts: list[str] = []
    tool_calls = getattr(delta, "tool_calls", None) or []
    for tc in tool_calls:
        function = getattr(tc, "function", None)
        if function is not None and function.arguments:
            parts.append(function.arguments)
    return "".join(parts)


class LiteLLMTransport:
    """Streams completions through litellm.

    Any failure while opening or reading the stream is raised as
    :class:`TransportError`.
    """

    def stream_completion(
        self,
        messages: list[dict[str, Any]],
        config: LLMConfig,
        *,
        schema: dict[str, Any],
    ) -> Iterator[str]:
        kwargs = build_request(messages, config, schema)
        try:
            response = litellm.completion(**kwargs)
            for chunk in response:
                text = delta_text(chunk, config.strategy)
                if text:
                    yield text
        except Exception as exc:
            raise TransportError(exc) from exc

    async def astream_completion(
        self,
        messages: list[dict[str, Any]],
        config: LLMConfig,
        *,
        schema: dict[str, Any],
    ) -> AsyncIterator[str]:
        kwargs = build_request(messages, config, schema)
        try:
            response = await litellm.acompletion(**kwargs)
            async for chunk in response:
                text = delta_text(chunk, config.strategy)
                if text:
                    yield text
        except Exception as exc:
            raise TransportError(exc) from exc
