from __future__ import annotations

from dataclasses import FrozenInstanceError
from enum import Enum

import pytest
from pydantic import BaseModel
from pydantic import Field as PydanticField

from perm_extract.exceptions import SchemaError
from perm_extract.schema import (
    Field,
    ListShape,
    ObjectShape,
    ScalarShape,
    boolean,
    enum,
    field,
    from_json_schema,
    from_model,
    integer,
    list_of,
    number,
    optional,
    shape,
    string,
    to_json_schema,
)


class Rank(str, Enum):
    COLONEL = "Colonel"
    MAJOR = "Major"


class Character(BaseModel):
    name: str = PydanticField(description="Just the first name.")
    rank: Rank | None = None
    age: int
    tags: list[str] = []


class Team(BaseModel):
    members: list[Character]


class Node(BaseModel):
    label: str
    children: list[Node] = []


class TestBuilders:
    def test_shape_from_mapping(self):
        character = shape(
            {
                "name": field(string(), instruction="Just the first name."),
                "rank": optional(string(), instruction="If applicable, the military rank."),
            }
        )
        assert character.names == ["name", "rank"]
        name = character.get("name")
        assert name is not None
        assert name.optional is False
        assert name.instruction == "Just the first name."
        rank = character.get("rank")
        assert rank is not None
        assert rank.optional is True

    def test_plain_shape_is_required_field(self):
        person = shape({"age": number()})
        assert person.fields == (Field("age", ScalarShape("number")),)

    def test_get_unknown_field(self):
        assert shape({"a": string()}).get("b") is None

    def test_scalar_builders(self):
        assert string().kind == "string"
        assert number().kind == "number"
        assert integer().kind == "integer"
        assert boolean().kind == "boolean"
        assert enum("a", "b").values == ("a", "b")

    def test_nested(self):
        team = shape({"members": list_of(shape({"name": string()}))})
        members = team.get("members")
        assert members is not None
        assert isinstance(members.shape, ListShape)
        assert isinstance(members.shape.element, ObjectShape)

    def test_shapes_are_immutable(self):
        s = string()
        with pytest.raises(FrozenInstanceError):
            s.kind = "number"  # type: ignore[misc]

    def test_unknown_kind_rejected(self):
        with pytest.raises(SchemaError):
            ScalarShape("date")

    def test_enum_needs_values(self):
        with pytest.raises(SchemaError):
            enum()

    def test_duplicate_fields_rejected(self):
        with pytest.raises(SchemaError):
            ObjectShape((Field("a", string()), Field("a", number())))

    def test_invalid_field_spec_rejected(self):
        with pytest.raises(SchemaError):
            shape({"a": "string"})  # type: ignore[dict-item]


class TestToJsonSchema:
    def test_object(self):
        character = shape(
            {
                "name": field(string(), instruction="Just the first name."),
                "rank": optional(enum("Colonel", "Major")),
                "scores": list_of(integer()),
            }
        )
        assert to_json_schema(character) == {
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Just the first name."},
                "rank": {"enum": ["Colonel", "Major"], "type": "string"},
                "scores": {"type": "array", "items": {"type": "integer"}},
            },
            "required": ["name", "scores"],
        }

    def test_mixed_enum_has_no_type(self):
        assert to_json_schema(enum(1, "one")) == {"enum": [1, "one"]}


class TestFromJsonSchema:
    def test_from_model(self):
        character = from_model(Character)
        assert isinstance(character, ObjectShape)
        assert character.names == ["name", "rank", "age", "tags"]

        name = character.get("name")
        assert name is not None
        assert name.shape == string()
        assert name.optional is False
        assert name.instruction == "Just the first name."

        rank = character.get("rank")
        assert rank is not None
        assert rank.shape == enum("Colonel", "Major")
        assert rank.optional is True
        assert rank.nullable is True

        age = character.get("age")
        assert age is not None
        assert age.shape == integer()
        assert age.optional is False

        tags = character.get("tags")
        assert tags is not None
        assert tags.shape == list_of(string())
        assert tags.optional is True
        assert tags.nullable is False

    def test_nested_model_references(self):
        team = from_model(Team)
        members = team.get("members")  # type: ignore[union-attr]
        assert members is not None
        assert isinstance(members.shape, ListShape)
        assert members.shape.element == from_model(Character)

    def test_cyclic_model_rejected(self):
        with pytest.raises(SchemaError, match="Cyclic"):
            from_model(Node)

    def test_nullable_type_list(self):
        converted = from_json_schema(
            {
                "type": "object",
                "properties": {"nick": {"type": ["string", "null"]}},
                "required": ["nick"],
            }
        )
        nick = converted.get("nick")  # type: ignore[union-attr]
        assert nick is not None
        assert nick.optional is True
        assert nick.nullable is True

    def test_const(self):
        assert from_json_schema({"const": "fixed"}) == enum("fixed")

    def test_free_form_object_rejected(self):
        with pytest.raises(SchemaError):
            from_json_schema({"type": "object"})

    def test_union_rejected(self):
        with pytest.raises(SchemaError):
            from_json_schema({"anyOf": [{"type": "string"}, {"type": "integer"}]})

    def test_unresolvable_ref(self):
        with pytest.raises(SchemaError):
            from_json_schema({"$ref": "#/$defs/Missing"})

    def test_round_trip_through_json_schema(self):
        character = shape({"name": string(), "rank": optional(string())})
        assert from_json_schema(to_json_schema(character)) == character
