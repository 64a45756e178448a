from __future__ import annotations

from typing import Any

from .schema import ListShape, ObjectShape, ScalarShape, Shape


class _Absent:
    """Marks a value that is not known yet. Distinct from ``None`` (null)."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


def coerce_scalar(value: Any, target: ScalarShape) -> Any:
    """Return ``value`` if it fits the scalar kind, else :data:`ABSENT`."""
    kind = target.kind
    if kind == "string":
        return value if isinstance(value, str) else ABSENT
    if kind == "boolean":
        return value if isinstance(value, bool) else ABSENT
    if isinstance(value, bool):
        # bool is an int subclass; never let true/false pass as a number
        return value if kind == "enum" and _enum_match(value, target.values) else ABSENT
    if kind == "number":
        return value if isinstance(value, (int, float)) else ABSENT
    if kind == "integer":
        return value if isinstance(value, int) else ABSENT
    return value if _enum_match(value, target.values) else ABSENT


def _enum_match(value: Any, values: tuple[Any, ...]) -> bool:
    return any(type(v) is type(value) and v == value for v in values)


def map_partial(value: Any, target: Shape) -> Any:
    """Map a parsed value onto a shape, keeping whatever fits.

    Objects become dicts holding only the declared fields that mapped to a
    value; lists keep the elements that mapped, in order; scalars of the
    wrong kind, nulls and unknown keys are left out. Never raises.
    """
    if isinstance(target, ObjectShape):
        result: dict[str, Any] = {}
        if not isinstance(value, dict):
            return result
        for f in target.fields:
            if f.name not in value:
                continue
            mapped = map_partial(value[f.name], f.shape)
            if mapped is not ABSENT:
                result[f.name] = mapped
        return result

    if isinstance(target, ListShape):
        if not isinstance(value, list):
            return []
        items = (map_partial(item, target.element) for item in value)
        return [item for item in items if item is not ABSENT]

    if value is None:
        return ABSENT
    return coerce_scalar(value, target)
