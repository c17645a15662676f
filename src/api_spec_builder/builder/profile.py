"""Version-specific emission.

The builder keeps operations in a dialect-neutral form (``OperationEntry``)
and hands them to a ``TargetProfile`` when a document is built. The
profile owns every structural difference between 2.0 and 3.x:

=====================  =============================  ===============================
concern                2.0                            3.x
=====================  =============================  ===============================
reference roots        ``#/definitions/`` etc.        ``#/components/...``
parameter types        inline ``type``/``format``     ``schema``
constraints            on the parameter               on the parameter schema
request body           ``in: body`` + ``consumes``    ``requestBody.content``
responses              ``schema`` + ``examples``      ``content``
form fields            ``formData`` (``file``)        folded urlencoded/multipart body
methods                no ``trace``/``query``         ``query`` from 3.2
=====================  =============================  ===============================
"""

import http
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from api_spec_builder.builder.constraints import (
    apply_constraints_to_parameter,
    apply_constraints_to_schema,
    apply_type_format_overrides,
    apply_type_format_to_oas2_parameter,
)
from api_spec_builder.builder.errors import BuilderError, unsupported_method
from api_spec_builder.builder.options import ParamSpec, RequestBodySpec, ResponseSpec
from api_spec_builder.document.base import (
    HTTP_METHODS,
    Header,
    MediaType,
    Operation,
    Parameter,
    RequestBody,
    Response,
    Schema,
    SecurityScheme,
    SpecModel,
    supports_query_method,
)

FORM_URLENCODED = "application/x-www-form-urlencoded"
FORM_MULTIPART = "multipart/form-data"

OAS3_REF_ROOTS = {
    "schemas": "#/components/schemas/",
    "parameters": "#/components/parameters/",
    "responses": "#/components/responses/",
}

OAS2_REF_ROOTS = {
    "schemas": "#/definitions/",
    "parameters": "#/parameters/",
    "responses": "#/responses/",
}

# 2.0 has a single oauth2 flow per scheme
_OAS2_FLOW_NAMES = {
    "implicit": "implicit",
    "password": "password",
    "client_credentials": "application",
    "authorization_code": "accessCode",
}


@dataclass
class ParamEntry:
    spec: ParamSpec
    schema: Schema | None = None  # reflected from spec.param_type


@dataclass
class BodyEntry:
    spec: RequestBodySpec
    schema: Schema | None = None


@dataclass
class ResponseEntry:
    spec: ResponseSpec
    schema: Schema | None = None


@dataclass
class OperationEntry:
    """An operation as recorded by the builder, before any dialect is chosen."""

    method: str
    path: str
    operation_id: str | None = None
    summary: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    deprecated: bool = False
    parameters: list[ParamEntry] = field(default_factory=list)
    form_params: list[ParamEntry] = field(default_factory=list)
    request_body: BodyEntry | None = None
    responses: list[ResponseEntry] = field(default_factory=list)
    security: list[dict[str, list[str]]] | None = None
    is_webhook: bool = False


class TargetProfile(ABC):
    """Shared emission logic; subclasses fill in the dialect differences."""

    ref_roots: dict[str, str] = OAS3_REF_ROOTS
    other_ref_roots: dict[str, str] = OAS2_REF_ROOTS

    def __init__(self, version: str):
        self.version = version

    # References

    def ref(self, kind: str, name: str) -> str:
        return self.ref_roots[kind] + name

    def rewrite_ref(self, ref: str) -> str:
        """Move a reference from either dialect's roots onto this profile's roots."""
        for kind, root in self.other_ref_roots.items():
            if ref.startswith(root):
                return self.ref_roots[kind] + ref[len(root):]
        return ref

    def finalize(self, doc: SpecModel) -> SpecModel:
        """Return an independent copy of ``doc`` with every ``$ref`` on this profile's roots."""
        data = doc.to_dict()
        _rewrite_refs(data, self.rewrite_ref)
        return type(doc).model_validate(data)

    # Checks run while configuring

    def check_method(self, method: str, path: str) -> BuilderError | None:
        if method not in HTTP_METHODS:
            return unsupported_method(method.upper(), path)
        return None

    def check_security_scheme(self, name: str, scheme: SecurityScheme) -> BuilderError | None:
        return None

    # Emission

    def operation(self, entry: OperationEntry) -> Operation:
        op = Operation(
            tags=entry.tags or None,
            summary=entry.summary,
            description=entry.description,
            operation_id=entry.operation_id,
            security=entry.security,
            deprecated=entry.deprecated or None,
        )
        parameters = [self.parameter(p) for p in entry.parameters]
        op.parameters = parameters or None
        self.place_request_body(op, entry)
        responses = {r.spec.status: self.response(r) for r in entry.responses}
        op.responses = responses or None
        return op

    @abstractmethod
    def parameter(self, entry: ParamEntry) -> Parameter:
        ...

    @abstractmethod
    def response(self, entry: ResponseEntry) -> Response:
        ...

    @abstractmethod
    def place_request_body(self, op: Operation, entry: OperationEntry) -> None:
        ...

    def security_scheme(self, scheme: SecurityScheme) -> SecurityScheme:
        return scheme

    def _parameter_base(self, spec: ParamSpec, location: str | None = None) -> Parameter:
        location = location or spec.in_
        param = Parameter(
            name=spec.name,
            in_=location,
            description=spec.description,
            required=True if location == "path" else (spec.required or None),
            deprecated=spec.deprecated or None,
            example=spec.example,
        )
        for key, value in spec.extensions.items():
            setattr(param, key, value)
        return param


class OAS3Profile(TargetProfile):
    ref_roots = OAS3_REF_ROOTS
    other_ref_roots = OAS2_REF_ROOTS

    def check_method(self, method: str, path: str) -> BuilderError | None:
        if method == "query" and not supports_query_method(self.version):
            return unsupported_method("QUERY", path, "3.2.0")
        return super().check_method(method, path)

    def parameter(self, entry: ParamEntry) -> Parameter:
        spec = entry.spec
        if spec.ref:
            return Parameter(ref=self.rewrite_ref(spec.ref))

        param = self._parameter_base(spec)
        param.schema_ = self.parameter_schema(entry)
        if spec.allow_empty_value:
            param.allow_empty_value = True
        return param

    def parameter_schema(self, entry: ParamEntry) -> Schema | None:
        spec = entry.spec
        schema = apply_type_format_overrides(entry.schema, spec.type, spec.format, spec.schema_)
        return apply_constraints_to_schema(schema, spec.constraints)

    def response(self, entry: ResponseEntry) -> Response:
        spec = entry.spec
        if spec.ref:
            return Response(ref=self.rewrite_ref(spec.ref))

        resp = Response(description=_response_description(spec), headers=dict(spec.headers) or None)
        if entry.schema is not None or spec.example is not None:
            resp.content = {
                ct: MediaType(schema_=entry.schema, example=spec.example) for ct in spec.content_types
            }
        return resp

    def place_request_body(self, op: Operation, entry: OperationEntry) -> None:
        body = None
        if entry.request_body is not None:
            spec = entry.request_body.spec
            body = RequestBody(
                description=spec.description,
                required=spec.required or None,
                content={
                    ct: MediaType(schema_=entry.request_body.schema, example=spec.example)
                    for ct in spec.content_types
                },
            )

        if entry.form_params:
            form_schema = self.form_schema(entry.form_params)
            content_type = FORM_MULTIPART if _has_file(entry.form_params) else FORM_URLENCODED
            if body is None:
                body = RequestBody(content={})
            body.content = dict(body.content or {})
            body.content[content_type] = MediaType(schema_=form_schema)

        op.request_body = body

    def form_schema(self, params: list[ParamEntry]) -> Schema:
        """Fold form fields into one object schema."""
        properties = {}
        required = []
        for entry in params:
            schema = self.parameter_schema(entry) or Schema()
            if entry.spec.description and not schema.is_ref:
                schema = schema.model_copy(update={"description": entry.spec.description})
            properties[entry.spec.name] = schema
            if entry.spec.required:
                required.append(entry.spec.name)
        return Schema(type="object", properties=properties, required=required or None)


class OAS2Profile(TargetProfile):
    ref_roots = OAS2_REF_ROOTS
    other_ref_roots = OAS3_REF_ROOTS

    def check_method(self, method: str, path: str) -> BuilderError | None:
        if method == "trace":
            return unsupported_method("TRACE", path, "3.0.0")
        if method == "query":
            return unsupported_method("QUERY", path, "3.2.0")
        return super().check_method(method, path)

    def check_security_scheme(self, name: str, scheme: SecurityScheme) -> BuilderError | None:
        problem = None
        if scheme.type == "http" and (scheme.scheme or "").lower() != "basic":
            problem = f"http scheme {scheme.scheme!r} requires OAS 3.0.0 or later"
        elif scheme.type == "openIdConnect":
            problem = "openIdConnect requires OAS 3.0.0 or later"
        elif scheme.type == "apiKey" and scheme.in_ == "cookie":
            problem = "apiKey in cookie requires OAS 3.0.0 or later"
        if problem is None:
            return None
        return BuilderError(problem, component="security_scheme", path=name)

    def parameter(self, entry: ParamEntry, location: str | None = None) -> Parameter:
        spec = entry.spec
        if spec.ref:
            return Parameter(ref=self.rewrite_ref(spec.ref))

        param = self._parameter_base(spec, location)
        schema = apply_type_format_overrides(entry.schema, spec.type, spec.format, spec.schema_)
        apply_type_format_to_oas2_parameter(param, entry.schema, spec.type, spec.format, spec.schema_)
        if param.type == "array" and schema is not None:
            param.items = schema.items
        if param.in_ == "formData" and schema is not None and schema.format == "binary":
            param.type = "file"
            param.format = None
        apply_constraints_to_parameter(
            param,
            spec.constraints,
            allow_empty_value=spec.allow_empty_value,
            collection_format=spec.collection_format,
        )
        return param

    def response(self, entry: ResponseEntry) -> Response:
        spec = entry.spec
        if spec.ref:
            return Response(ref=self.rewrite_ref(spec.ref))

        resp = Response(
            description=_response_description(spec),
            headers={name: _oas2_header(h) for name, h in spec.headers.items()} or None,
            schema_=entry.schema,
        )
        if spec.example is not None:
            resp.examples = {ct: spec.example for ct in spec.content_types}
        return resp

    def operation(self, entry: OperationEntry) -> Operation:
        op = super().operation(entry)
        produces = []
        for r in entry.responses:
            if r.spec.ref or (r.schema is None and r.spec.example is None):
                continue
            produces.extend(ct for ct in r.spec.content_types if ct not in produces)
        op.produces = produces or None
        return op

    def place_request_body(self, op: Operation, entry: OperationEntry) -> None:
        params = list(op.parameters or [])
        consumes = []

        if entry.request_body is not None:
            spec = entry.request_body.spec
            params.append(Parameter(
                name="body",
                in_="body",
                description=spec.description,
                required=spec.required or None,
                schema_=entry.request_body.schema,
            ))
            consumes.extend(spec.content_types)

        if entry.form_params:
            params.extend(self.parameter(p, "formData") for p in entry.form_params)
            content_type = FORM_MULTIPART if _has_file(entry.form_params) else FORM_URLENCODED
            if content_type not in consumes:
                consumes.append(content_type)

        op.parameters = params or None
        op.consumes = consumes or None

    def security_scheme(self, scheme: SecurityScheme) -> SecurityScheme:
        if scheme.type == "http":
            return SecurityScheme(type="basic", description=scheme.description)
        if scheme.type != "oauth2" or scheme.flows is None:
            return scheme

        for attr, flow_name in _OAS2_FLOW_NAMES.items():
            flow = getattr(scheme.flows, attr)
            if flow is None:
                continue
            return SecurityScheme(
                type="oauth2",
                description=scheme.description,
                flow=flow_name,
                authorization_url=flow.authorization_url if flow_name in ("implicit", "accessCode") else None,
                token_url=flow.token_url if flow_name != "implicit" else None,
                scopes=dict(flow.scopes),
            )
        return SecurityScheme(type="oauth2", description=scheme.description)


def make_profile(version: str) -> TargetProfile:
    if version.startswith("2"):
        return OAS2Profile(version)
    return OAS3Profile(version)


def _response_description(spec: ResponseSpec) -> str:
    if spec.description is not None:
        return spec.description
    if spec.status == "default":
        return "Default response"
    known = {str(s.value): s.phrase for s in http.HTTPStatus}
    return known.get(spec.status, "")


def _oas2_header(header: Header) -> Header:
    if header.schema_ is None:
        return header
    return Header(
        description=header.description,
        type=header.type or header.schema_.primary_type() or None,
        format=header.format or header.schema_.format,
    )


def _has_file(params: list[ParamEntry]) -> bool:
    for entry in params:
        if entry.spec.type == "file":
            return True
        if entry.schema is not None and entry.schema.format == "binary":
            return True
    return False


def _rewrite_refs(node: Any, rewrite) -> None:
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str):
            node["$ref"] = rewrite(ref)
        for value in node.values():
            _rewrite_refs(value, rewrite)
    elif isinstance(node, list):
        for item in node:
            _rewrite_refs(item, rewrite)
