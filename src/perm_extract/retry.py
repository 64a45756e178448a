from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from .exceptions import ExtractionFailedError, SchemaValidationError, TransportError
from .validator import ValidationError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for the repair loop.

    ``max_retries`` counts the attempts made after the first one. Backoff
    only applies before an attempt that follows a transport failure.
    """

    max_retries: int = 2
    retry_on_transport_error: bool = True
    backoff_factor: float = 0.0
    max_backoff: float = 30.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.backoff_factor < 0:
            raise ValueError(f"backoff_factor must be >= 0, got {self.backoff_factor}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for_attempt(self, attempt: int) -> float:
        """Calculate delay after a given failed attempt (1-indexed)."""
        delay = self.backoff_factor * (2 ** (attempt - 1))
        return min(delay, self.max_backoff)


class AttemptState(Enum):
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class RepairPolicy:
    """Attempt counter and state: Attempting(n) -> Succeeded | Failed."""

    config: RetryConfig
    attempt: int = 1
    state: AttemptState = AttemptState.ATTEMPTING
    errors: list[ValidationError] = field(default_factory=list)
    last_error: Exception | None = None

    def record_success(self) -> AttemptState:
        self._require_attempting()
        self.state = AttemptState.SUCCEEDED
        return self.state

    def record_failure(
        self,
        errors: list[ValidationError],
        error: Exception | None = None,
    ) -> AttemptState:
        self._require_attempting()
        self.errors = list(errors)
        self.last_error = error
        if self.attempt >= self.config.max_attempts:
            self.state = AttemptState.FAILED
        else:
            self.attempt += 1
        return self.state

    def failure(self) -> ExtractionFailedError:
        return ExtractionFailedError(
            attempts=self.attempt,
            errors=self.errors,
            last_error=self.last_error,
        )

    def _require_attempting(self) -> None:
        if self.state is not AttemptState.ATTEMPTING:
            raise RuntimeError(f"No attempt in progress (state: {self.state.value})")


def transport_report(error: TransportError) -> list[ValidationError]:
    return [ValidationError((), f"transport failed: {error.original}")]


def _handle_failure(
    policy: RepairPolicy,
    exc: SchemaValidationError | TransportError,
    feedback: list[ValidationError],
) -> tuple[list[ValidationError], float]:
    """Record a failed attempt; returns the next feedback and backoff delay."""
    if isinstance(exc, TransportError):
        if not policy.config.retry_on_transport_error:
            raise exc
        failed_attempt = policy.attempt
        state = policy.record_failure(transport_report(exc), exc)
        if state is AttemptState.FAILED:
            raise policy.failure() from exc
        return feedback, policy.config.delay_for_attempt(failed_attempt)

    state = policy.record_failure(exc.errors, exc)
    if state is AttemptState.FAILED:
        raise policy.failure() from exc
    return exc.errors, 0.0


def with_repair(
    fn: Callable[[int, list[ValidationError]], T],
    config: RetryConfig,
) -> T:
    """Run ``fn(attempt, feedback)`` until it returns or attempts run out.

    ``feedback`` holds the validation errors of the last attempt that failed
    validation (empty on the first attempt). Transport failures consume an
    attempt like validation failures do, unless disabled in ``config``.

    Raises:
        ExtractionFailedError: When the last allowed attempt failed.
        TransportError: When transport retries are disabled.
    """
    policy = RepairPolicy(config)
    feedback: list[ValidationError] = []
    while True:
        try:
            result = fn(policy.attempt, feedback)
        except (SchemaValidationError, TransportError) as exc:
            feedback, delay = _handle_failure(policy, exc, feedback)
            if delay > 0:
                time.sleep(delay)
            continue
        policy.record_success()
        return result


async def awith_repair(
    fn: Callable[[int, list[ValidationError]], Awaitable[T]],
    config: RetryConfig,
) -> T:
    """Async version of :func:`with_repair`."""
    policy = RepairPolicy(config)
    feedback: list[ValidationError] = []
    while True:
        try:
            result = await fn(policy.attempt, feedback)
        except (SchemaValidationError, TransportError) as exc:
            feedback, delay = _handle_failure(policy, exc, feedback)
            if delay > 0:
                await asyncio.sleep(delay)
            continue
        policy.record_success()
        return result
