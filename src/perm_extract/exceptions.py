from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .validator import ValidationError


class PermExtractError(Exception):
    """Base exception for all perm-extract errors."""


class ConfigurationError(PermExtractError):
    """Raised when a provider model or API key cannot be resolved."""


class SchemaError(PermExtractError):
    """Raised when a shape declaration or JSON schema is not usable."""


class ParseError(PermExtractError):
    """Raised when JSON text is malformed."""

    def __init__(self, position: int, reason: str) -> None:
        self.position = position
        self.reason = reason
        super().__init__(f"Invalid JSON at position {position}: {reason}")


class SchemaValidationError(PermExtractError):
    """Raised when a complete response does not match the declared shape."""

    def __init__(self, errors: list[ValidationError]) -> None:
        self.errors = list(errors)
        details = "; ".join(str(e) for e in self.errors)
        super().__init__(f"{len(self.errors)} validation error(s): {details}")


class TransportError(PermExtractError):
    """Raised when the provider request or its stream fails."""

    def __init__(self, original: Exception) -> None:
        self.original = original
        super().__init__(f"Transport failed: {type(original).__name__}: {original}")


class ExtractionFailedError(PermExtractError):
    """Raised when every extraction attempt failed."""

    def __init__(
        self,
        attempts: int,
        errors: list[ValidationError],
        last_error: Exception | None = None,
    ) -> None:
        self.attempts = attempts
        self.errors = list(errors)
        self.last_error = last_error
        details = "; ".join(str(e) for e in self.errors)
        super().__init__(f"Extraction failed after {attempts} attempt(s). Last errors: {details}")
