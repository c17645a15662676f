"""Field annotation parsing.

Two annotation strings describe a record field:

* a ``json`` tag, ``"name,omitempty"``, giving the serialized name and
  options (``"-"`` drops the field), and
* an ``oas`` tag, ``"description=User ID,minLength=1,deprecated"``, giving
  schema constraints and metadata.

Parsing is kept apart from applying, so the parsers know nothing about
schemas.
"""

from typing import Any

from api_spec_builder.document.base import Schema

OAS_TAG_KEYS = (
    "description", "format", "enum", "minimum", "maximum", "minLength", "maxLength",
    "pattern", "minItems", "maxItems", "readOnly", "writeOnly", "nullable", "deprecated",
    "example", "title", "default", "required",
)

_NUMBER_KEYS = {"minimum": "minimum", "maximum": "maximum"}
_INT_KEYS = {
    "minLength": "min_length",
    "maxLength": "max_length",
    "minItems": "min_items",
    "maxItems": "max_items",
}
_FLAG_KEYS = {
    "readOnly": "read_only",
    "writeOnly": "write_only",
    "nullable": "nullable",
    "deprecated": "deprecated",
}
_TEXT_KEYS = {"description": "description", "format": "format", "pattern": "pattern", "title": "title"}


def parse_json_tag(tag: str) -> tuple[str, list[str]]:
    """Split ``"name,opt1,opt2"`` into the name and its options."""
    if not tag:
        return "", []
    name, *opts = tag.split(",")
    return name, opts


def parse_oas_tag(tag: str) -> dict[str, str]:
    """Parse ``"key=value,flag"`` pairs into a dict. Bare keys map to ``"true"``."""
    result: dict[str, str] = {}
    if not tag:
        return result

    for part in tag.split(","):
        part = part.strip()
        if not part:
            continue
        key, sep, value = part.partition("=")
        if sep and key.strip():
            result[key.strip()] = value.strip()
        else:
            result[part] = "true"
    return result


def parse_typed_value(value: str, schema_type: str) -> Any:
    """Convert a tag value to the Python type matching an OpenAPI type."""
    if schema_type == "integer":
        try:
            return int(value)
        except ValueError:
            return value
    if schema_type == "number":
        try:
            return float(value)
        except ValueError:
            return value
    if schema_type == "boolean":
        return value == "true"
    return value


def apply_oas_tag(schema: Schema, opts: dict[str, str]) -> Schema:
    """Return a copy of ``schema`` with the parsed ``oas`` options applied.

    The input is never modified; it may be a cached definition shared by
    other fields. A reference node is wrapped in ``allOf`` so the reference
    itself stays bare.
    """
    opts = {k: v for k, v in opts.items() if k != "required"}
    if not opts:
        return schema

    if schema.is_ref:
        result = Schema(all_of=[schema])
    else:
        result = schema.model_copy()
    schema_type = result.primary_type()

    for key, value in opts.items():
        if key in _TEXT_KEYS:
            setattr(result, _TEXT_KEYS[key], value)
        elif key in _NUMBER_KEYS:
            number = parse_typed_value(value, "integer")
            if isinstance(number, str):
                number = parse_typed_value(value, "number")
            if isinstance(number, str):
                continue
            setattr(result, _NUMBER_KEYS[key], number)
        elif key in _INT_KEYS:
            try:
                setattr(result, _INT_KEYS[key], int(value))
            except ValueError:
                continue
        elif key in _FLAG_KEYS:
            setattr(result, _FLAG_KEYS[key], True if value == "true" else None)
        elif key == "enum":
            result.enum = [parse_typed_value(v.strip(), schema_type) for v in value.split("|")]
        elif key == "example":
            result.example = parse_typed_value(value, schema_type)
        elif key == "default":
            result.default = parse_typed_value(value, schema_type)

    return result


def is_field_required(explicit: str | None, nullable: bool, omittable: bool) -> bool:
    """Decide whether a record field belongs in the ``required`` list.

    Rules, first match wins:
      1. an explicit ``required=true|false`` in the oas tag
      2. nullable (``Optional``) fields are never required
      3. everything else is required unless it may be omitted
    """
    if explicit is not None:
        return explicit == "true"
    if nullable:
        return False
    return not omittable
