"""Parameter constraints and type/format overrides.

Where constraints land depends on the output dialect: in 3.x they refine
the parameter's schema, in 2.0 they sit on the parameter itself next to
its inline ``type``/``format``. Override precedence is fixed: a full
schema override beats a type/format override, which beats the reflected
schema. Every function here copies before it writes, because the schema
it receives may be a cached definition.
"""

import re
from typing import Any

from pydantic import BaseModel

from api_spec_builder.builder.errors import ConstraintError
from api_spec_builder.document.base import Parameter, Schema

_FIELDS = (
    "minimum", "maximum", "exclusive_minimum", "exclusive_maximum", "multiple_of",
    "min_length", "max_length", "pattern", "min_items", "max_items", "unique_items",
    "enum", "default",
)
_FLAGS = {"exclusive_minimum", "exclusive_maximum", "unique_items"}


class Constraints(BaseModel):
    minimum: int | float | None = None
    maximum: int | float | None = None
    exclusive_minimum: bool = False
    exclusive_maximum: bool = False
    multiple_of: int | float | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    min_items: int | None = None
    max_items: int | None = None
    unique_items: bool = False
    enum: list[Any] | None = None
    default: Any = None

    def is_empty(self) -> bool:
        return not self.set_values()

    def set_values(self) -> dict[str, Any]:
        """Return the constraints that were actually given, keyed by field name."""
        values = {}
        for name in _FIELDS:
            value = getattr(self, name)
            if name in _FLAGS:
                if value:
                    values[name] = True
            elif name == "enum":
                if value:
                    values[name] = list(value)
            elif value is not None:
                # zero is a real bound
                values[name] = value
        return values


def validate_constraints(c: Constraints, param_name: str = "") -> list[ConstraintError]:
    """Check a constraint set for internal consistency.

    Every rule is evaluated; the result lists all violations, not just the
    first one.
    """
    errors = []

    def fail(field: str, message: str):
        errors.append(ConstraintError(field, message, param_name))

    if c.minimum is not None and c.maximum is not None and c.minimum > c.maximum:
        fail("minimum/maximum", f"minimum ({c.minimum}) cannot be greater than maximum ({c.maximum})")

    if c.min_length is not None and c.max_length is not None and c.min_length > c.max_length:
        fail("minLength/maxLength", f"minLength ({c.min_length}) cannot be greater than maxLength ({c.max_length})")
    if c.min_length is not None and c.min_length < 0:
        fail("minLength", f"minLength ({c.min_length}) cannot be negative")
    if c.max_length is not None and c.max_length < 0:
        fail("maxLength", f"maxLength ({c.max_length}) cannot be negative")

    if c.min_items is not None and c.max_items is not None and c.min_items > c.max_items:
        fail("minItems/maxItems", f"minItems ({c.min_items}) cannot be greater than maxItems ({c.max_items})")
    if c.min_items is not None and c.min_items < 0:
        fail("minItems", f"minItems ({c.min_items}) cannot be negative")
    if c.max_items is not None and c.max_items < 0:
        fail("maxItems", f"maxItems ({c.max_items}) cannot be negative")

    if c.multiple_of is not None and c.multiple_of <= 0:
        fail("multipleOf", f"multipleOf ({c.multiple_of}) must be greater than 0")

    if c.pattern:
        try:
            re.compile(c.pattern)
        except re.error as e:
            fail("pattern", f"invalid regex pattern: {e}")

    return errors


def apply_constraints_to_schema(schema: Schema | None, c: Constraints) -> Schema | None:
    """Return a copy of ``schema`` refined by ``c`` (3.x placement)."""
    if schema is None:
        return None
    values = c.set_values()
    if not values:
        return schema

    result = Schema(all_of=[schema]) if schema.is_ref else schema.model_copy()
    for name, value in values.items():
        setattr(result, name, value)
    return result


def apply_constraints_to_parameter(
    param: Parameter,
    c: Constraints,
    *,
    allow_empty_value: bool = False,
    collection_format: str | None = None,
) -> None:
    """Set constraints directly on a 2.0 parameter."""
    for name, value in c.set_values().items():
        setattr(param, name, value)
    if allow_empty_value:
        param.allow_empty_value = True
    if collection_format:
        param.collection_format = collection_format


def apply_type_format_overrides(
    schema: Schema | None,
    type_: str | None = None,
    format_: str | None = None,
    schema_override: Schema | None = None,
) -> Schema | None:
    """Layer explicit type information over a reflected schema.

    A reference cannot carry a type, so overriding the type or format of a
    referenced record starts from an empty schema.
    """
    if schema_override is not None:
        return schema_override.model_copy(deep=True)
    if not type_ and not format_:
        return schema

    if schema is None or schema.is_ref:
        result = Schema()
    else:
        result = schema.model_copy()
    if type_:
        result.type = type_
    if format_:
        result.format = format_
    return result


def apply_type_format_to_oas2_parameter(
    param: Parameter,
    schema: Schema | None,
    type_: str | None = None,
    format_: str | None = None,
    schema_override: Schema | None = None,
) -> None:
    """Project type and format onto a 2.0 parameter's own fields.

    For 3.1-style union types (``["string", "null"]``) the first non-null
    member is used.
    """
    if schema is not None:
        if primary := schema.primary_type():
            param.type = primary
        param.format = schema.format

    if schema_override is not None:
        if primary := schema_override.primary_type():
            param.type = primary
        param.format = schema_override.format
        return
    if type_:
        param.type = type_
    if format_:
        param.format = format_
