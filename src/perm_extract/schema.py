"""Shape declarations: the target structure an extraction is mapped onto.

Shapes are immutable trees built explicitly, either with the builder
functions in this module or from a JSON-Schema object::

    person = shape(
        {
            "name": field(string(), instruction="Just the first name."),
            "rank": optional(string(), instruction="If applicable, the military rank."),
        }
    )
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from .exceptions import SchemaError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from pydantic import BaseModel

SCALAR_KINDS = ("string", "number", "integer", "boolean", "enum")


@dataclass(frozen=True, slots=True)
class ScalarShape:
    """A leaf value. ``values`` holds the allowed values of an ``enum``."""

    kind: str
    values: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        if self.kind not in SCALAR_KINDS:
            raise SchemaError(f"Unknown scalar kind '{self.kind}'")
        if self.kind == "enum" and not self.values:
            raise SchemaError("enum shape needs at least one value")
        if self.kind != "enum" and self.values:
            raise SchemaError(f"Only enum shapes take values, got kind '{self.kind}'")


@dataclass(frozen=True, slots=True)
class Field:
    """A named member of an object shape.

    ``nullable`` records that the source schema admits an explicit ``null``.
    """

    name: str
    shape: Shape
    optional: bool = False
    instruction: str | None = None
    nullable: bool = False


@dataclass(frozen=True, slots=True)
class ObjectShape:
    """An object with declared fields, in declaration order."""

    fields: tuple[Field, ...]

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise SchemaError(f"Duplicate field names: {', '.join(duplicates)}")
        if any(not n for n in names):
            raise SchemaError("Field names must be non-empty")

    def get(self, name: str) -> Field | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def names(self) -> list[str]:
        return [f.name for f in self.fields]


@dataclass(frozen=True, slots=True)
class ListShape:
    """A homogeneous list."""

    element: Shape


Shape = Union[ScalarShape, ObjectShape, ListShape]


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def string() -> ScalarShape:
    return ScalarShape("string")


def number() -> ScalarShape:
    return ScalarShape("number")


def integer() -> ScalarShape:
    return ScalarShape("integer")


def boolean() -> ScalarShape:
    return ScalarShape("boolean")


def enum(*values: Any) -> ScalarShape:
    return ScalarShape("enum", tuple(values))


def list_of(element: Shape) -> ListShape:
    return ListShape(element)


def field(shape: Shape, *, optional: bool = False, instruction: str | None = None) -> Field:
    """Declare a field; its name is taken from the key passed to :func:`shape`."""
    return Field(name="", shape=shape, optional=optional, instruction=instruction)


def optional(shape: Shape, *, instruction: str | None = None) -> Field:
    return field(shape, optional=True, instruction=instruction)


def shape(fields: Mapping[str, Shape | Field]) -> ObjectShape:
    """Build an object shape from ``{name: shape_or_field}``."""
    built: list[Field] = []
    for name, spec in fields.items():
        if isinstance(spec, Field):
            built.append(dataclasses.replace(spec, name=name))
        elif isinstance(spec, (ScalarShape, ObjectShape, ListShape)):
            built.append(Field(name=name, shape=spec))
        else:
            raise SchemaError(
                f"Field '{name}' must be a shape or a field, got {type(spec).__name__}"
            )
    return ObjectShape(tuple(built))


def kind_of(target: Shape) -> str:
    """Human-readable kind of a shape, as used in validation messages."""
    if isinstance(target, ObjectShape):
        return "object"
    if isinstance(target, ListShape):
        return "list"
    if target.kind == "enum":
        return "one of " + ", ".join(repr(v) for v in target.values)
    return target.kind


# ---------------------------------------------------------------------------
# JSON Schema conversion
# ---------------------------------------------------------------------------


def to_json_schema(target: Shape) -> dict[str, Any]:
    """Render a shape as JSON Schema; instructions become descriptions."""
    if isinstance(target, ObjectShape):
        properties: dict[str, Any] = {}
        for f in target.fields:
            prop = to_json_schema(f.shape)
            if f.instruction:
                prop["description"] = f.instruction
            properties[f.name] = prop
        return {
            "type": "object",
            "properties": properties,
            "required": [f.name for f in target.fields if not f.optional],
        }
    if isinstance(target, ListShape):
        return {"type": "array", "items": to_json_schema(target.element)}
    if target.kind == "enum":
        schema: dict[str, Any] = {"enum": list(target.values)}
        if all(isinstance(v, str) for v in target.values):
            schema["type"] = "string"
        return schema
    return {"type": target.kind}


def from_json_schema(schema: dict[str, Any]) -> Shape:
    """Build a shape from a JSON-Schema object.

    Supports local ``$ref`` into ``$defs``/``definitions``, nullable unions
    (``anyOf`` with ``null``), ``enum``/``const`` and nested objects and
    arrays. Nullable or non-required properties become optional fields.

    Raises:
        SchemaError: If the schema uses an unsupported construct or is cyclic.
    """
    defs = {**schema.get("definitions", {}), **schema.get("$defs", {})}
    converted, _ = _convert(schema, defs, ())
    return converted


def from_model(model_class: type[BaseModel]) -> Shape:
    """Build a shape from a pydantic model's JSON schema."""
    return from_json_schema(model_class.model_json_schema())


def _resolve_ref(ref: str, defs: dict[str, Any]) -> dict[str, Any]:
    for prefix in ("#/$defs/", "#/definitions/"):
        if ref.startswith(prefix):
            name = ref[len(prefix) :]
            if name in defs:
                return defs[name]
    raise SchemaError(f"Unresolvable reference '{ref}'")


def _convert(
    node: dict[str, Any],
    defs: dict[str, Any],
    seen: tuple[str, ...],
) -> tuple[Shape, bool]:
    """Return the shape for ``node`` and whether the node admits null."""
    if "$ref" in node:
        ref = node["$ref"]
        if ref in seen:
            raise SchemaError(f"Cyclic reference '{ref}' cannot be extracted")
        return _convert(_resolve_ref(ref, defs), defs, (*seen, ref))

    if "allOf" in node and len(node["allOf"]) == 1:
        return _convert(node["allOf"][0], defs, seen)

    for key in ("anyOf", "oneOf"):
        if key in node:
            members = node[key]
            non_null = [m for m in members if m.get("type") != "null"]
            nullable = len(non_null) != len(members)
            if len(non_null) != 1:
                raise SchemaError(f"Unions of several types are not supported: {members!r}")
            inner, inner_nullable = _convert(non_null[0], defs, seen)
            return inner, nullable or inner_nullable

    if "enum" in node:
        values = [v for v in node["enum"] if v is not None]
        return enum(*values), len(values) != len(node["enum"])
    if "const" in node:
        return enum(node["const"]), False

    node_type = node.get("type")
    nullable = False
    if isinstance(node_type, list):
        types = [t for t in node_type if t != "null"]
        nullable = len(types) != len(node_type)
        if len(types) != 1:
            raise SchemaError(f"Unions of several types are not supported: {node_type!r}")
        node_type = types[0]

    if node_type in ("string", "number", "integer", "boolean"):
        return ScalarShape(node_type), nullable

    if node_type == "array":
        items = node.get("items")
        if not isinstance(items, dict):
            raise SchemaError("Array schemas need a single 'items' schema")
        element, _ = _convert(items, defs, seen)
        return ListShape(element), nullable

    if node_type == "object" or "properties" in node:
        properties = node.get("properties")
        if not properties:
            raise SchemaError("Free-form objects without properties are not supported")
        required = set(node.get("required", []))
        fields = []
        for name, prop in properties.items():
            sub, sub_nullable = _convert(prop, defs, seen)
            description = prop.get("description")
            if description is None and "$ref" in prop:
                description = _resolve_ref(prop["$ref"], defs).get("description")
            fields.append(
                Field(
                    name=name,
                    shape=sub,
                    optional=name not in required or sub_nullable,
                    instruction=description,
                    nullable=sub_nullable,
                )
            )
        return ObjectShape(tuple(fields)), nullable

    raise SchemaError(f"Unsupported schema node: {node!r}")
