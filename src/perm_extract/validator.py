from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .exceptions import ParseError, SchemaValidationError
from .json_parse import locate_json, parse_root
from .mapper import ABSENT, coerce_scalar
from .schema import ListShape, ObjectShape, Shape, kind_of

if TYPE_CHECKING:
    import pydantic


@dataclass(frozen=True, slots=True)
class ValidationError:
    """One mismatch between a response and its shape.

    ``path`` is the sequence of field names and list indices leading to the
    offending value; an empty path means the document root.
    """

    path: tuple[str | int, ...]
    reason: str

    def __str__(self) -> str:
        return f"{format_path(self.path)}: {self.reason}"


def format_path(path: tuple[str | int, ...]) -> str:
    out = "$"
    for part in path:
        out += f"[{part}]" if isinstance(part, int) else f".{part}"
    return out


def json_kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "list"
    return "object"


def validate(text: str, target: Shape, *, fill_missing: bool = True) -> Any:
    """Strictly parse and check a complete response against ``target``.

    Returns the typed value: dicts with every declared field, lists and
    scalars. Missing optional fields are set to ``None`` unless
    ``fill_missing`` is off, in which case they are left out (pydantic then
    applies the model's defaults). Text after the JSON value is ignored.

    Raises:
        SchemaValidationError: With every error found, including malformed
            JSON reported at the root.
    """
    try:
        value = parse_root(locate_json(text))
    except ParseError as e:
        error = ValidationError((), f"invalid JSON: {e.reason} (position {e.position})")
        raise SchemaValidationError([error]) from e

    typed, errors = check(value, target, fill_missing=fill_missing)
    if errors:
        raise SchemaValidationError(errors)
    return typed


def check(
    value: Any,
    target: Shape,
    *,
    fill_missing: bool = True,
) -> tuple[Any, list[ValidationError]]:
    """Check an already parsed value; returns ``(typed, errors)``."""
    errors: list[ValidationError] = []
    typed = _check(value, target, (), errors, fill_missing)
    return typed, errors


def _check(
    value: Any,
    target: Shape,
    path: tuple[str | int, ...],
    errors: list[ValidationError],
    fill_missing: bool,
) -> Any:
    if isinstance(target, ObjectShape):
        if not isinstance(value, dict):
            errors.append(ValidationError(path, f"expected object, got {json_kind(value)}"))
            return None
        out: dict[str, Any] = {}
        for f in target.fields:
            present = f.name in value
            if f.optional and (not present or value[f.name] is None):
                if fill_missing or (present and f.nullable):
                    out[f.name] = None
                continue
            if not present:
                errors.append(ValidationError((*path, f.name), "missing required field"))
                continue
            out[f.name] = _check(value[f.name], f.shape, (*path, f.name), errors, fill_missing)
        return out

    if isinstance(target, ListShape):
        if not isinstance(value, list):
            errors.append(ValidationError(path, f"expected list, got {json_kind(value)}"))
            return None
        return [
            _check(item, target.element, (*path, i), errors, fill_missing)
            for i, item in enumerate(value)
        ]

    coerced = coerce_scalar(value, target) if value is not None else ABSENT
    if coerced is ABSENT:
        got = repr(value) if target.kind == "enum" and value is not None else json_kind(value)
        errors.append(ValidationError(path, f"expected {kind_of(target)}, got {got}"))
        return None
    return coerced


def from_pydantic(exc: pydantic.ValidationError) -> list[ValidationError]:
    """Convert a pydantic validation failure into validation errors."""
    return [
        ValidationError(tuple(err["loc"]), err["msg"])
        for err in exc.errors(include_url=False)
    ]
