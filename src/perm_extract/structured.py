from __future__ import annotations

import dataclasses
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from .exceptions import ParseError, SchemaValidationError
from .mapper import ABSENT
from .schema import Shape, from_model, to_json_schema
from .streaming import parse_partial
from .validator import check, from_pydantic, validate

T = TypeVar("T", bound=BaseModel)


class StructuredOutput(Generic[T]):
    """Validates and parses raw LLM output into typed Pydantic models.

    The model's JSON schema is turned into a :class:`Shape` once; responses
    are checked against that shape first, so every mismatch is reported,
    then handed to pydantic for the model's own validation.
    Fields the response leaves out are not filled in, so the model's defaults
    apply.
    """

    def __init__(self, model_class: type[T]) -> None:
        self._model_class = model_class
        self._shape = from_model(model_class)

    @property
    def model_class(self) -> type[T]:
        return self._model_class

    @property
    def shape(self) -> Shape:
        return self._shape

    def parse(self, raw: str | dict[str, Any]) -> T:
        """Parse raw LLM output (JSON string or dict) into the target model.

        Raises:
            SchemaValidationError: If the text is not JSON, or the data does
                not match the model.
        """
        if isinstance(raw, str):
            typed = validate(raw, self._shape, fill_missing=False)
        else:
            typed, errors = check(raw, self._shape, fill_missing=False)
            if errors:
                raise SchemaValidationError(errors)
        return self.to_model(typed)

    def parse_safe(self, raw: str | dict[str, Any]) -> T | None:
        """Parse without raising -- returns None on failure."""
        try:
            return self.parse(raw)
        except SchemaValidationError:
            return None

    def parse_partial(self, raw: str) -> Any:
        """Best-effort partial data from a truncated response; never raises."""
        try:
            partial = parse_partial(raw, self._shape)
        except ParseError:
            return {}
        return {} if partial is ABSENT else partial

    def to_model(self, typed: Any, path: tuple[str | int, ...] = ()) -> T:
        """Build the model from validated data.

        Raises:
            SchemaValidationError: If the model's own validators reject it.
        """
        try:
            return self._model_class.model_validate(typed)
        except ValidationError as e:
            errors = from_pydantic(e)
            if path:
                errors = [dataclasses.replace(err, path=(*path, *err.path)) for err in errors]
            raise SchemaValidationError(errors) from e

    def json_schema(self) -> dict[str, Any]:
        """Return the JSON schema sent to the LLM."""
        return to_json_schema(self._shape)
