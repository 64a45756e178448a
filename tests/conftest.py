from __future__ import annotations

from typing import Any

import pytest

from perm_extract import LLMConfig, OutputStrategy, list_of, number, optional, shape, string


class FakeTransport:
    """Replays canned delta sequences; an exception instance is raised instead.

    ``responses`` is either a list consumed in call order, or a dict keyed by
    the context (the user message) of the call.
    """

    def __init__(self, responses: list[Any] | dict[str, Any]) -> None:
        self.responses = responses
        self.calls: list[dict[str, Any]] = []

    def _next(self, messages: list[dict[str, Any]], schema: dict[str, Any]) -> Any:
        self.calls.append({"messages": messages, "schema": schema})
        if isinstance(self.responses, dict):
            response = self.responses[messages[1]["content"]]
        else:
            response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def stream_completion(self, messages, config, *, schema):
        yield from self._next(messages, schema)

    async def astream_completion(self, messages, config, *, schema):
        for delta in self._next(messages, schema):
            yield delta


@pytest.fixture
def config():
    return LLMConfig(
        api_base="https://llm.example.test/v1",
        model="test-model",
        context_window=8192,
        label="Test Model",
        provider="Test",
        strategy=OutputStrategy.JSON,
    )


@pytest.fixture
def person_shape():
    return shape({"name": string(), "bio": string()})


@pytest.fixture
def profile_shape():
    return shape(
        {
            "name": string(),
            "age": optional(number()),
            "tags": list_of(string()),
        }
    )


@pytest.fixture
def make_transport():
    return FakeTransport
