"""OpenAPI document models.

Every node of a built document is a pydantic model. Field names follow
Python conventions and serialize to the OpenAPI (camelCase) names, so
``to_dict()`` yields a plain structure any JSON or YAML encoder can write.
The same models describe both the 2.0 and the 3.x dialects; fields that
only exist in one dialect are simply left unset in the other.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SCHEMA_REF_PREFIX = "#/components/schemas/"

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace", "query")

SUPPORTED_VERSIONS = (
    "2.0",
    "3.0.0", "3.0.1", "3.0.2", "3.0.3", "3.0.4",
    "3.1.0", "3.1.1", "3.1.2",
    "3.2.0",
)


class SpecModel(BaseModel):
    """Base for all document nodes. Unknown keys (``x-*`` extensions) are kept."""

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        extra="allow",
        # YAML loads unquoted status codes ("200") as ints
        coerce_numbers_to_str=True,
    )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Schema(SpecModel):
    """A JSON-Schema-like type description, or a reference to a named one."""

    ref: str | None = Field(None, alias="$ref")
    type: str | list[str] | None = None
    format: str | None = None
    title: str | None = None
    description: str | None = None
    default: Any = None
    example: Any = None
    examples: list[Any] | None = None
    enum: list[Any] | None = None
    nullable: bool | None = None
    read_only: bool | None = None
    write_only: bool | None = None
    deprecated: bool | None = None

    # Numeric constraints
    minimum: int | float | None = None
    maximum: int | float | None = None
    exclusive_minimum: bool | int | float | None = None
    exclusive_maximum: bool | int | float | None = None
    multiple_of: int | float | None = None

    # String constraints
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None

    # Array constraints
    min_items: int | None = None
    max_items: int | None = None
    unique_items: bool | None = None

    # Nested structure
    properties: dict[str, "Schema"] | None = None
    required: list[str] | None = None
    items: "Schema | None" = None
    additional_properties: "Schema | bool | None" = None
    all_of: list["Schema"] | None = None
    any_of: list["Schema"] | None = None
    one_of: list["Schema"] | None = None

    @classmethod
    def reference(cls, name: str, prefix: str = SCHEMA_REF_PREFIX) -> "Schema":
        """Build a reference node pointing at a named schema."""
        return cls(ref=prefix + name)

    @property
    def is_ref(self) -> bool:
        return self.ref is not None

    def primary_type(self) -> str:
        """Return the first non-null type, or "" when the type is unset."""
        if isinstance(self.type, list):
            for t in self.type:
                if t != "null":
                    return t
            return ""
        return self.type or ""


class Parameter(SpecModel):
    """An operation parameter.

    In 3.x output the type lives in ``schema_``. In 2.0 output non-body
    parameters carry ``type``/``format`` and their constraints inline.
    """

    ref: str | None = Field(None, alias="$ref")
    name: str | None = None
    in_: str | None = Field(None, alias="in")  # path / query / header / cookie / formData / body
    description: str | None = None
    required: bool | None = None
    deprecated: bool | None = None
    allow_empty_value: bool | None = None
    example: Any = None
    schema_: Schema | None = Field(None, alias="schema")

    # 2.0 inline type information
    type: str | None = None
    format: str | None = None
    items: Schema | None = None
    collection_format: str | None = None
    default: Any = None
    enum: list[Any] | None = None
    minimum: int | float | None = None
    maximum: int | float | None = None
    exclusive_minimum: bool | None = None
    exclusive_maximum: bool | None = None
    multiple_of: int | float | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    min_items: int | None = None
    max_items: int | None = None
    unique_items: bool | None = None


class Header(SpecModel):
    description: str | None = None
    schema_: Schema | None = Field(None, alias="schema")
    type: str | None = None  # 2.0 only
    format: str | None = None  # 2.0 only


class MediaType(SpecModel):
    schema_: Schema | None = Field(None, alias="schema")
    example: Any = None


class RequestBody(SpecModel):
    ref: str | None = Field(None, alias="$ref")
    description: str | None = None
    content: dict[str, MediaType] | None = None
    required: bool | None = None


class Response(SpecModel):
    """A response. 3.x uses ``content``; 2.0 uses ``schema_`` and ``examples``."""

    ref: str | None = Field(None, alias="$ref")
    description: str | None = None
    headers: dict[str, Header] | None = None
    content: dict[str, MediaType] | None = None
    schema_: Schema | None = Field(None, alias="schema")
    examples: dict[str, Any] | None = None


class ExternalDocs(SpecModel):
    url: str
    description: str | None = None


class Operation(SpecModel):
    tags: list[str] | None = None
    summary: str | None = None
    description: str | None = None
    external_docs: ExternalDocs | None = None
    operation_id: str | None = None
    consumes: list[str] | None = None  # 2.0 only
    produces: list[str] | None = None  # 2.0 only
    parameters: list[Parameter] | None = None
    request_body: RequestBody | None = None
    responses: dict[str, Response] | None = None
    security: list[dict[str, list[str]]] | None = None
    deprecated: bool | None = None


class PathItem(SpecModel):
    ref: str | None = Field(None, alias="$ref")
    summary: str | None = None
    description: str | None = None
    get: Operation | None = None
    put: Operation | None = None
    post: Operation | None = None
    delete: Operation | None = None
    options: Operation | None = None
    head: Operation | None = None
    patch: Operation | None = None
    trace: Operation | None = None
    query: Operation | None = None
    parameters: list[Parameter] | None = None

    def operations(self) -> dict[str, Operation]:
        """Return the operations defined on this path, keyed by lowercase method."""
        return {m: getattr(self, m) for m in HTTP_METHODS if getattr(self, m) is not None}

    def set_operation(self, method: str, operation: Operation) -> None:
        setattr(self, method.lower(), operation)


class Contact(SpecModel):
    name: str | None = None
    url: str | None = None
    email: str | None = None


class License(SpecModel):
    name: str
    url: str | None = None


class Info(SpecModel):
    title: str = ""
    description: str | None = None
    terms_of_service: str | None = None
    contact: Contact | None = None
    license: License | None = None
    version: str = ""


class ServerVariable(SpecModel):
    default: str
    enum: list[str] | None = None
    description: str | None = None


class Server(SpecModel):
    url: str
    description: str | None = None
    variables: dict[str, ServerVariable] | None = None


class Tag(SpecModel):
    name: str
    description: str | None = None
    external_docs: ExternalDocs | None = None


class OAuthFlow(SpecModel):
    authorization_url: str | None = None
    token_url: str | None = None
    refresh_url: str | None = None
    scopes: dict[str, str] = Field(default_factory=dict)


class OAuthFlows(SpecModel):
    implicit: OAuthFlow | None = None
    password: OAuthFlow | None = None
    client_credentials: OAuthFlow | None = None
    authorization_code: OAuthFlow | None = None


class SecurityScheme(SpecModel):
    ref: str | None = Field(None, alias="$ref")
    type: str | None = None  # apiKey / http / oauth2 / openIdConnect (2.0: basic / apiKey / oauth2)
    description: str | None = None
    name: str | None = None
    in_: str | None = Field(None, alias="in")
    scheme: str | None = None
    bearer_format: str | None = None
    flows: OAuthFlows | None = None
    open_id_connect_url: str | None = None

    # 2.0 oauth2 fields
    flow: str | None = None
    authorization_url: str | None = None
    token_url: str | None = None
    scopes: dict[str, str] | None = None


class Components(SpecModel):
    schemas: dict[str, Schema] | None = None
    responses: dict[str, Response] | None = None
    parameters: dict[str, Parameter] | None = None
    request_bodies: dict[str, RequestBody] | None = None
    security_schemes: dict[str, SecurityScheme] | None = None


class OAS2Document(SpecModel):
    """A Swagger 2.0 document."""

    swagger: str = "2.0"
    info: Info = Field(default_factory=Info)
    host: str | None = None
    base_path: str | None = None
    schemes: list[str] | None = None
    consumes: list[str] | None = None
    produces: list[str] | None = None
    paths: dict[str, PathItem] | None = None
    definitions: dict[str, Schema] | None = None
    parameters: dict[str, Parameter] | None = None
    responses: dict[str, Response] | None = None
    security_definitions: dict[str, SecurityScheme] | None = None
    security: list[dict[str, list[str]]] | None = None
    tags: list[Tag] | None = None
    external_docs: ExternalDocs | None = None


class OAS3Document(SpecModel):
    """An OpenAPI 3.x document."""

    openapi: str = "3.0.3"
    info: Info = Field(default_factory=Info)
    servers: list[Server] | None = None
    paths: dict[str, PathItem] | None = None
    webhooks: dict[str, PathItem] | None = None
    components: Components | None = None
    security: list[dict[str, list[str]]] | None = None
    tags: list[Tag] | None = None
    external_docs: ExternalDocs | None = None


def version_tuple(version: str) -> tuple[int, ...] | None:
    """Parse "3.1.0" into (3, 1, 0). Returns None for unsupported versions."""
    if version not in SUPPORTED_VERSIONS:
        return None
    return tuple(int(part) for part in version.split("."))


def is_oas2(version: str) -> bool:
    return version.startswith("2")


def supports_webhooks(version: str) -> bool:
    parsed = version_tuple(version)
    return parsed is not None and parsed >= (3, 1)


def supports_query_method(version: str) -> bool:
    parsed = version_tuple(version)
    return parsed is not None and parsed >= (3, 2)
