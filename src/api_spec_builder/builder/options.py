"""Declarative pieces passed to ``Builder.add_operation``.

Each helper returns a small pydantic model describing one parameter,
request body or response. The builder reflects the attached Python types
when the operation is added and decides the dialect-specific layout when
the document is built.

    builder.add_operation(
        "get", "/items/{id}",
        operation_id="getItem",
        parameters=[path_param("id", Int64)],
        responses=[response(200, Item, description="OK")],
    )
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from api_spec_builder.builder.constraints import Constraints
from api_spec_builder.document.base import Header, Schema

CONSTRAINT_OPTIONS = set(Constraints.model_fields)

PARAM_LOCATIONS = ("path", "query", "header", "cookie", "formData")


class ParamSpec(BaseModel):
    """One parameter: where it lives, the Python type it carries and its options."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    name: str = ""
    in_: str = ""
    param_type: Any = None
    ref: str | None = None
    description: str | None = None
    required: bool = False
    deprecated: bool = False
    example: Any = None
    type: str | None = None  # overrides the reflected type
    format: str | None = None  # overrides the reflected format
    schema_: Schema | None = None  # replaces the reflected schema entirely
    constraints: Constraints = Field(default_factory=Constraints)
    allow_empty_value: bool = False  # 2.0 only
    collection_format: str | None = None  # 2.0 only: csv, ssv, tsv, pipes, multi
    extensions: dict[str, Any] = Field(default_factory=dict)

    @field_validator("extensions")
    @classmethod
    def _extension_keys(cls, v: dict[str, Any]) -> dict[str, Any]:
        for key in v:
            if not key.startswith("x-"):
                raise ValueError(f"extension key {key!r} must start with 'x-'")
        return v

    @property
    def is_form(self) -> bool:
        return self.in_ == "formData"


class RequestBodySpec(BaseModel):
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    body_type: Any = None
    content_types: list[str] = ["application/json"]
    description: str | None = None
    required: bool = False
    example: Any = None


class ResponseSpec(BaseModel):
    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    status: str = "default"
    response_type: Any = None
    ref: str | None = None
    description: str | None = None
    content_types: list[str] = ["application/json"]
    example: Any = None
    headers: dict[str, Header] = {}

    @field_validator("status", mode="before")
    @classmethod
    def _status_text(cls, v: Any) -> str:
        return str(v)


def _param(location: str, name: str, param_type: Any, options: dict[str, Any]) -> ParamSpec:
    constraints = Constraints(**{k: options.pop(k) for k in list(options) if k in CONSTRAINT_OPTIONS})
    return ParamSpec(
        name=name,
        in_=location,
        param_type=param_type,
        schema_=options.pop("schema", None),
        constraints=constraints,
        **options,
    )


def path_param(name: str, param_type: Any = str, **options) -> ParamSpec:
    """A path parameter. Path parameters are always required."""
    options["required"] = True
    return _param("path", name, param_type, options)


def query_param(name: str, param_type: Any = str, **options) -> ParamSpec:
    return _param("query", name, param_type, options)


def header_param(name: str, param_type: Any = str, **options) -> ParamSpec:
    return _param("header", name, param_type, options)


def cookie_param(name: str, param_type: Any = str, **options) -> ParamSpec:
    return _param("cookie", name, param_type, options)


def form_param(name: str, param_type: Any = str, **options) -> ParamSpec:
    """A form field.

    2.0 output emits ``formData`` parameters; 3.x output folds all form
    fields of an operation into one request body schema.
    """
    return _param("formData", name, param_type, options)


def param_ref(ref: str) -> ParamSpec:
    """Reference a component parameter, e.g. ``builder.parameter_ref("limit")``."""
    return ParamSpec(ref=ref)


def request_body(
    body_type: Any,
    content_type: str | list[str] = "application/json",
    *,
    description: str | None = None,
    required: bool = False,
    example: Any = None,
) -> RequestBodySpec:
    content_types = [content_type] if isinstance(content_type, str) else list(content_type)
    return RequestBodySpec(
        body_type=body_type,
        content_types=content_types,
        description=description,
        required=required,
        example=example,
    )


def response(
    status: int | str,
    response_type: Any = None,
    *,
    description: str | None = None,
    content_type: str | list[str] = "application/json",
    example: Any = None,
    headers: dict[str, Header] | None = None,
) -> ResponseSpec:
    content_types = [content_type] if isinstance(content_type, str) else list(content_type)
    return ResponseSpec(
        status=status,
        response_type=response_type,
        description=description,
        content_types=content_types,
        example=example,
        headers=headers or {},
    )


def default_response(response_type: Any = None, **options) -> ResponseSpec:
    return response("default", response_type, **options)


def response_ref(status: int | str, ref: str) -> ResponseSpec:
    """Reference a component response, e.g. ``builder.response_ref("NotFound")``."""
    return ResponseSpec(status=status, ref=ref)


def security_requirement(name: str, *scopes: str) -> dict[str, list[str]]:
    """``security_requirement("oauth", "read")`` -> ``{"oauth": ["read"]}``."""
    return {name: list(scopes)}
