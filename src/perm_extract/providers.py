from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping


class OutputStrategy(Enum):
    """How the target schema is handed to the model."""

    FUNCTION = "function"  # forced tool call, arguments streamed
    JSON = "json"  # response_format json_object, content streamed
    TEXT = "text"  # schema in the prompt only


@dataclass(frozen=True)
class LLMConfig:
    """Everything needed to address one model of one provider."""

    api_base: str
    model: str
    context_window: int
    label: str
    provider: str
    strategy: OutputStrategy = OutputStrategy.FUNCTION
    headers: dict[str, str] = field(default_factory=dict)
    max_tokens: int | None = None
    doc_url: str | None = None
    temperature: float = 0.0
    api_key: str | None = None
    timeout: float | None = None
    litellm_prefix: str = "openai"

    def __post_init__(self) -> None:
        if self.context_window <= 0:
            raise ValueError(f"context_window must be > 0, got {self.context_window}")
        if self.max_tokens is not None and self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be > 0, got {self.max_tokens}")

    @property
    def litellm_model(self) -> str:
        return f"{self.litellm_prefix}/{self.model}"

    def completion_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``litellm.completion`` / ``acompletion``."""
        kwargs: dict[str, Any] = {
            "model": self.litellm_model,
            "api_base": self.api_base,
            "temperature": self.temperature,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.headers:
            kwargs["extra_headers"] = dict(self.headers)
        if self.max_tokens is not None:
            kwargs["max_tokens"] = self.max_tokens
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return kwargs


class ProviderModel(Protocol):
    """A model offered by a provider, able to build its own config."""

    @property
    def value(self) -> str: ...

    @property
    def api_key_env_var(self) -> str | None: ...

    def create_config(self, api_key: str) -> LLMConfig: ...


_GPT_CONTEXT_WINDOWS = {
    "gpt-3.5-turbo": 16385,
    "gpt-4-turbo": 128000,
    "gpt-4o": 128000,
    "gpt-4o-mini": 128000,
}

_GPT_LABELS = {
    "gpt-3.5-turbo": "GPT-3.5 Turbo",
    "gpt-4-turbo": "GPT-4 Turbo",
    "gpt-4o": "GPT-4o",
    "gpt-4o-mini": "GPT-4o mini",
}


class OpenAi(str, Enum):
    GPT_35T = "gpt-3.5-turbo"
    GPT_4T = "gpt-4-turbo"
    GPT_4O = "gpt-4o"
    GPT_4O_MINI = "gpt-4o-mini"

    @property
    def api_key_env_var(self) -> str | None:
        return "OPENAI_API_KEY"

    def create_config(self, api_key: str) -> LLMConfig:
        return LLMConfig(
            api_base="https://api.openai.com/v1",
            model=self.value,
            context_window=_GPT_CONTEXT_WINDOWS[self.value],
            label=_GPT_LABELS[self.value],
            provider="OpenAI",
            strategy=OutputStrategy.FUNCTION,
            api_key=api_key,
            doc_url="https://platform.openai.com/docs/models",
        )


class AvalAi(str, Enum):
    """AvalAI, an OpenAI-compatible gateway."""

    GPT_35T = "gpt-3.5-turbo"
    GPT_4T = "gpt-4-turbo"
    GPT_4O = "gpt-4o"
    GPT_4O_MINI = "gpt-4o-mini"

    @property
    def api_key_env_var(self) -> str | None:
        return "AVALAI_API_KEY"

    def create_config(self, api_key: str) -> LLMConfig:
        return LLMConfig(
            api_base="https://api.avalai.ir/v1",
            model=self.value,
            context_window=_GPT_CONTEXT_WINDOWS[self.value],
            label=_GPT_LABELS[self.value],
            provider="AvalAi",
            strategy=OutputStrategy.FUNCTION,
            api_key=api_key,
            max_tokens=4096,
            doc_url="https://avalai.ir/blog/how-to-use-avalai-api-keys/",
        )


PROVIDERS: dict[str, type[Enum]] = {
    "openai": OpenAi,
    "avalai": AvalAi,
}


def get_provider_model(name: str) -> ProviderModel:
    """Look a model up by ``"<provider>/<model>"``, e.g. ``"avalai/gpt-4o"``."""
    provider, _, model = name.partition("/")
    catalog = PROVIDERS.get(provider.lower())
    if catalog is None or not model:
        known = ", ".join(sorted(PROVIDERS))
        raise ConfigurationError(f"Unknown provider in '{name}' (known: {known})")
    try:
        return catalog(model)  # type: ignore[return-value]
    except ValueError:
        known = ", ".join(m.value for m in catalog)
        raise ConfigurationError(
            f"Unknown model '{model}' for {provider} (known: {known})"
        ) from None


def config_from_env(
    model: str | ProviderModel,
    environ: Mapping[str, str] | None = None,
) -> LLMConfig:
    """Build a config, reading the API key from the provider's env var."""
    provider_model = model if isinstance(model, Enum) else get_provider_model(model)
    env = os.environ if environ is None else environ
    var = provider_model.api_key_env_var
    api_key = env.get(var, "") if var else ""
    if var and not api_key:
        raise ConfigurationError(f"Environment variable {var} is not set")
    return provider_model.create_config(api_key)
