"""Fluent document builder.

A Builder collects info, operations and components, reflecting Python
types into schemas as they are added, and emits an OpenAPI document for
the version it was created with::

    doc = (
        Builder("3.0.3")
        .set_title("Items API")
        .set_version("1.0.0")
        .add_operation(
            "get", "/items/{id}",
            operation_id="getItem",
            parameters=[path_param("id", Int64)],
            responses=[response(200, Item)],
        )
        .build()
    )

Configuration methods never raise for problems in the described API.
Duplicate operation ids, unsupported methods and bad constraints are
recorded and ``build()`` raises them together as ``BuilderErrors``.

A Builder is not safe for concurrent use; use one per thread.
"""

import logging
from typing import Any, Iterable

from api_spec_builder.builder.constraints import validate_constraints
from api_spec_builder.builder.errors import (
    BuilderError,
    BuilderErrors,
    ConstraintErrors,
    OperationLocation,
    duplicate_operation_id,
    parameter_constraint,
)
from api_spec_builder.builder.options import ParamSpec, RequestBodySpec, ResponseSpec
from api_spec_builder.builder.profile import (
    BodyEntry,
    OperationEntry,
    ParamEntry,
    ResponseEntry,
    make_profile,
)
from api_spec_builder.builder.routes import Route
from api_spec_builder.config import BuilderConfig, default_version
from api_spec_builder.document.base import (
    Components,
    Contact,
    ExternalDocs,
    Header,
    Info,
    License,
    OAS2Document,
    OAS3Document,
    OAuthFlows,
    Operation,
    Parameter,
    PathItem,
    RequestBody,
    Response,
    Schema,
    SecurityScheme,
    Server,
    ServerVariable,
    Tag,
    is_oas2,
    supports_webhooks,
    version_tuple,
)
from api_spec_builder.schema.cache import SchemaCache
from api_spec_builder.schema.reflect import SchemaGenerator

logger = logging.getLogger(__name__)

LATEST_VERSION = "3.2.0"


class Builder:
    """Accumulates an API description and builds a 2.0 or 3.x document."""

    def __init__(
        self,
        version: str | None = None,
        *,
        config: BuilderConfig | None = None,
        info: Info | None = None,
    ):
        self.version = version or default_version()
        self.config = config or BuilderConfig()
        self._profile = make_profile(self.version)
        self._errors: list[BuilderError] = []

        self.info = info.model_copy(deep=True) if info else Info()
        self._external_docs: ExternalDocs | None = None
        self._host: str | None = None
        self._base_path: str | None = None
        self._schemes: list[str] | None = None
        self._consumes: list[str] | None = None
        self._produces: list[str] | None = None
        self._servers: list[Server] = []
        self._tags: list[Tag] = []
        self._security: list[dict[str, list[str]]] | None = None

        # path -> method -> operation; seeded operations are already emitted models
        self._paths: dict[str, dict[str, OperationEntry | Operation]] = {}
        self._webhooks: dict[str, dict[str, OperationEntry | Operation]] = {}
        self._seeded_paths: dict[str, PathItem] = {}
        self._seeded_webhooks: dict[str, PathItem] = {}
        self._operation_ids: dict[str, OperationLocation] = {}

        self._schemas: dict[str, Schema] = {}
        self._parameters: dict[str, ParamEntry | Parameter] = {}
        self._responses: dict[str, ResponseEntry | Response] = {}
        self._request_bodies: dict[str, RequestBody] = {}
        self._security_schemes: dict[str, SecurityScheme] = {}

        self._cache = SchemaCache()
        self._generator = SchemaGenerator(self._cache, self.config.make_namer(), self._schemas)

        if version_tuple(self.version) is None:
            self._record(BuilderError(f"unsupported OAS version {self.version!r}", component="document"))
        if (problem := self.config.template_error()) is not None:
            self._record(BuilderError(f"configuration error: {problem}", component="config"))

    @property
    def errors(self) -> list[BuilderError]:
        """Errors recorded so far. A copy; mutating it does not affect the builder."""
        return list(self._errors)

    def _record(self, error: BuilderError) -> None:
        logger.debug(f"Recorded {error}")
        self._errors.append(error)

    # Info

    def set_info(self, info: Info) -> "Builder":
        self.info = info.model_copy(deep=True)
        return self

    def set_title(self, title: str) -> "Builder":
        self.info.title = title
        return self

    def set_version(self, version: str) -> "Builder":
        """Set the API version (``info.version``), not the OpenAPI version."""
        self.info.version = version
        return self

    def set_description(self, description: str) -> "Builder":
        self.info.description = description
        return self

    def set_terms_of_service(self, url: str) -> "Builder":
        self.info.terms_of_service = url
        return self

    def set_contact(self, name: str | None = None, url: str | None = None, email: str | None = None) -> "Builder":
        self.info.contact = Contact(name=name, url=url, email=email)
        return self

    def set_license(self, name: str, url: str | None = None) -> "Builder":
        self.info.license = License(name=name, url=url)
        return self

    def set_external_docs(self, url: str, description: str | None = None) -> "Builder":
        self._external_docs = ExternalDocs(url=url, description=description)
        return self

    # 2.0 host data; 3.x documents use servers instead

    def set_host(self, host: str) -> "Builder":
        self._host = host
        return self

    def set_base_path(self, base_path: str) -> "Builder":
        self._base_path = base_path
        return self

    def set_schemes(self, *schemes: str) -> "Builder":
        self._schemes = list(schemes)
        return self

    def add_server(
        self,
        url: str,
        description: str | None = None,
        variables: dict[str, ServerVariable] | None = None,
    ) -> "Builder":
        self._servers.append(Server(url=url, description=description, variables=variables))
        return self

    def add_tag(self, name: str, description: str | None = None, external_docs: ExternalDocs | None = None) -> "Builder":
        self._tags.append(Tag(name=name, description=description, external_docs=external_docs))
        return self

    # Security

    def add_security_scheme(self, name: str, scheme: SecurityScheme) -> "Builder":
        if (error := self._profile.check_security_scheme(name, scheme)) is not None:
            self._record(error)
        self._security_schemes[name] = scheme
        return self

    def add_api_key_security_scheme(
        self, name: str, param_name: str, location: str = "header", description: str | None = None
    ) -> "Builder":
        return self.add_security_scheme(
            name, SecurityScheme(type="apiKey", name=param_name, in_=location, description=description)
        )

    def add_http_security_scheme(
        self, name: str, scheme: str, bearer_format: str | None = None, description: str | None = None
    ) -> "Builder":
        return self.add_security_scheme(
            name,
            SecurityScheme(type="http", scheme=scheme, bearer_format=bearer_format, description=description),
        )

    def add_oauth2_security_scheme(self, name: str, flows: OAuthFlows, description: str | None = None) -> "Builder":
        return self.add_security_scheme(name, SecurityScheme(type="oauth2", flows=flows, description=description))

    def add_openid_connect_security_scheme(self, name: str, url: str, description: str | None = None) -> "Builder":
        return self.add_security_scheme(
            name, SecurityScheme(type="openIdConnect", open_id_connect_url=url, description=description)
        )

    def set_security(self, *requirements: dict[str, list[str]]) -> "Builder":
        """Set document-wide security, e.g. ``set_security(security_requirement("api_key"))``."""
        self._security = [dict(r) for r in requirements]
        return self

    # Components

    def add_schema(self, name: str, schema: Schema) -> "Builder":
        self._schemas[name] = schema
        return self

    def register_type(self, t: Any) -> Schema:
        """Generate the schema for ``t`` and return it, as a ``$ref`` for records."""
        return self._localize(self._generator.generate(t))

    def register_type_as(self, name: str, t: Any) -> Schema:
        """Like ``register_type`` but registers a record under ``name``."""
        return self._localize(self._generator.generate(t, name_override=name))

    def add_parameter(self, name: str, param: ParamSpec) -> "Builder":
        """Add a reusable parameter to the parameter components."""
        self._parameters[name] = self._param_entry(param, f"components {name}")
        return self

    def add_response(
        self,
        name: str,
        description: str,
        response_type: Any = None,
        *,
        content_type: str | list[str] = "application/json",
        example: Any = None,
        headers: dict[str, Header] | None = None,
    ) -> "Builder":
        """Add a reusable response to the response components."""
        content_types = [content_type] if isinstance(content_type, str) else list(content_type)
        spec = ResponseSpec(
            response_type=response_type,
            description=description,
            content_types=content_types,
            example=example,
            headers=headers or {},
        )
        self._responses[name] = self._response_entry(spec)
        return self

    def schema_ref(self, name: str) -> str:
        return self._profile.ref("schemas", name)

    def parameter_ref(self, name: str) -> str:
        return self._profile.ref("parameters", name)

    def response_ref(self, name: str) -> str:
        return self._profile.ref("responses", name)

    # Operations

    def add_operation(
        self,
        method: str,
        path: str,
        *,
        operation_id: str | None = None,
        summary: str | None = None,
        description: str | None = None,
        tags: list[str] | None = None,
        deprecated: bool = False,
        parameters: Iterable[ParamSpec] = (),
        request_body: RequestBodySpec | None = None,
        responses: Iterable[ResponseSpec] = (),
        security: list[dict[str, list[str]]] | None = None,
        no_security: bool = False,
    ) -> "Builder":
        """Add an operation at ``path``.

        ``no_security`` emits an empty requirement list entry, which
        overrides document-wide security for this operation.
        """
        method = method.lower()
        if (error := self._profile.check_method(method, path)) is not None:
            self._record(error)
            return self
        self._claim_operation_id(operation_id, method, path, webhook=False)

        entry = self._operation_entry(
            method, path, operation_id, summary, description, tags, deprecated,
            parameters, request_body, responses, security, no_security,
        )
        self._paths.setdefault(path, {})[method] = entry
        return self

    def add_webhook(
        self,
        name: str,
        method: str,
        *,
        operation_id: str | None = None,
        summary: str | None = None,
        description: str | None = None,
        tags: list[str] | None = None,
        deprecated: bool = False,
        parameters: Iterable[ParamSpec] = (),
        request_body: RequestBodySpec | None = None,
        responses: Iterable[ResponseSpec] = (),
        security: list[dict[str, list[str]]] | None = None,
        no_security: bool = False,
    ) -> "Builder":
        """Add a webhook (3.1+). Webhooks share the operation id namespace."""
        method = method.lower()
        if not supports_webhooks(self.version):
            self._record(BuilderError(
                f"webhooks require OAS version 3.1.0 or later (building {self.version})",
                component="webhook",
                method=method.upper(),
                path=name,
            ))
            return self

        if (error := self._profile.check_method(method, name)) is not None:
            self._record(error)
            return self
        self._claim_operation_id(operation_id, method, name, webhook=True)

        entry = self._operation_entry(
            method, name, operation_id, summary, description, tags, deprecated,
            parameters, request_body, responses, security, no_security,
        )
        entry.is_webhook = True
        self._webhooks.setdefault(name, {})[method] = entry
        return self

    def routes(self) -> list[Route]:
        """Every stored operation, paths first, then webhooks."""
        result = []
        for ops, seeded, is_webhook in (
            (self._paths, self._seeded_paths, False),
            (self._webhooks, self._seeded_webhooks, True),
        ):
            for path, methods in _merged_operations(seeded, ops).items():
                for method, op in methods.items():
                    result.append(Route(
                        method=method.upper(),
                        path=path,
                        operation_id=op.operation_id,
                        is_webhook=is_webhook,
                    ))
        return result

    def _claim_operation_id(self, operation_id: str | None, method: str, path: str, *, webhook: bool) -> None:
        if not operation_id:
            return
        first = self._operation_ids.get(operation_id)
        if first is not None:
            self._record(duplicate_operation_id(operation_id, method.upper(), path, first, webhook=webhook))
            return
        self._operation_ids[operation_id] = OperationLocation(method.upper(), path, webhook)

    def _operation_entry(
        self, method, path, operation_id, summary, description, tags, deprecated,
        parameters, request_body, responses, security, no_security,
    ) -> OperationEntry:
        location = f"{method.upper()} {path}"
        entry = OperationEntry(
            method=method,
            path=path,
            operation_id=operation_id,
            summary=summary,
            description=description,
            tags=list(tags) if tags else None,
            deprecated=deprecated,
        )

        for spec in parameters:
            param = self._param_entry(spec, location)
            if spec.is_form:
                entry.form_params.append(param)
            else:
                entry.parameters.append(param)

        if request_body is not None:
            schema = None if request_body.body_type is None else self._generator.generate(request_body.body_type)
            entry.request_body = BodyEntry(request_body, schema)

        entry.responses = [self._response_entry(spec) for spec in responses]

        if no_security:
            entry.security = [{}]
        elif security:
            entry.security = [dict(r) for r in security]
        return entry

    def _param_entry(self, spec: ParamSpec, location: str) -> ParamEntry:
        if spec.ref:
            return ParamEntry(spec)

        violations = validate_constraints(spec.constraints, spec.name)
        if violations:
            self._record(parameter_constraint(spec.name, location, ConstraintErrors(violations)))

        schema = None
        if spec.param_type is not None:
            schema = self._generator.generate(spec.param_type)
        return ParamEntry(spec, schema)

    def _response_entry(self, spec: ResponseSpec) -> ResponseEntry:
        if spec.ref or spec.response_type is None:
            return ResponseEntry(spec)
        return ResponseEntry(spec, self._generator.generate(spec.response_type))

    def _localize(self, schema: Schema) -> Schema:
        if schema.is_ref:
            return Schema(ref=self._profile.rewrite_ref(schema.ref))
        return schema

    # Build

    def build(self) -> OAS2Document | OAS3Document:
        """Build the document for this builder's version."""
        if is_oas2(self.version):
            return self.build_oas2()
        return self.build_oas3()

    def build_oas2(self) -> OAS2Document:
        if not is_oas2(self.version):
            raise BuilderError(
                f"build_oas2() called but builder was created with version {self.version}; use build_oas3() instead"
            )
        self._check_errors()

        profile = self._profile
        doc = OAS2Document(
            swagger="2.0",
            info=self.info,
            host=self._host,
            base_path=self._base_path,
            schemes=self._schemes,
            consumes=self._consumes,
            produces=self._produces,
            paths=self._emit_paths(self._seeded_paths, self._paths) or None,
            definitions=dict(self._schemas) or None,
            parameters=self._emit_parameters() or None,
            responses=self._emit_responses() or None,
            security_definitions={
                name: profile.security_scheme(s) for name, s in self._security_schemes.items()
            } or None,
            security=self._security,
            tags=list(self._tags) or None,
            external_docs=self._external_docs,
        )
        logger.debug(f"Built OAS 2.0 document with {len(doc.paths or {})} paths")
        return profile.finalize(doc)

    def build_oas3(self) -> OAS3Document:
        if is_oas2(self.version):
            raise BuilderError(
                "build_oas3() called but builder was created with OAS 2.0; use build_oas2() instead"
            )
        self._check_errors()

        components = Components(
            schemas=dict(self._schemas) or None,
            responses=self._emit_responses() or None,
            parameters=self._emit_parameters() or None,
            request_bodies=dict(self._request_bodies) or None,
            security_schemes=dict(self._security_schemes) or None,
        )
        doc = OAS3Document(
            openapi=self.version,
            info=self.info,
            servers=list(self._servers) or None,
            paths=self._emit_paths(self._seeded_paths, self._paths) or None,
            webhooks=self._emit_paths(self._seeded_webhooks, self._webhooks) or None,
            components=components if components.to_dict() else None,
            security=self._security,
            tags=list(self._tags) or None,
            external_docs=self._external_docs,
        )
        logger.debug(f"Built OAS {self.version} document with {len(doc.paths or {})} paths")
        return self._profile.finalize(doc)

    def _check_errors(self) -> None:
        if self._errors:
            raise BuilderErrors(self._errors)

    def _emit_paths(
        self, seeded: dict[str, PathItem], ops: dict[str, dict[str, OperationEntry | Operation]]
    ) -> dict[str, PathItem]:
        result = {path: item.model_copy(deep=True) for path, item in seeded.items()}
        for path, methods in ops.items():
            item = result.setdefault(path, PathItem())
            for method, op in methods.items():
                if isinstance(op, OperationEntry):
                    op = self._profile.operation(op)
                item.set_operation(method, op)
        return result

    def _emit_parameters(self) -> dict[str, Parameter]:
        return {
            name: p if isinstance(p, Parameter) else self._profile.parameter(p)
            for name, p in self._parameters.items()
        }

    def _emit_responses(self) -> dict[str, Response]:
        return {
            name: r if isinstance(r, Response) else self._profile.response(r)
            for name, r in self._responses.items()
        }

    @classmethod
    def from_document(cls, doc: OAS2Document | OAS3Document, *, config: BuilderConfig | None = None) -> "Builder":
        """Start a builder from an existing document, e.g. one loaded with ``read_document``.

        Existing paths, operations and components are kept; new calls add
        to them. A 3.x document with an unknown version is treated as the
        latest supported version.
        """
        if isinstance(doc, OAS2Document):
            b = cls("2.0", config=config, info=doc.info)
            b._host = doc.host
            b._base_path = doc.base_path
            b._schemes = doc.schemes
            b._consumes = doc.consumes
            b._produces = doc.produces
            b._schemas.update(doc.definitions or {})
            b._parameters.update(doc.parameters or {})
            b._responses.update(doc.responses or {})
            b._security_schemes.update(doc.security_definitions or {})
        else:
            version = doc.openapi if version_tuple(doc.openapi) is not None else LATEST_VERSION
            b = cls(version, config=config, info=doc.info)
            b._servers = list(doc.servers or [])
            components = doc.components or Components()
            b._schemas.update(components.schemas or {})
            b._parameters.update(components.parameters or {})
            b._responses.update(components.responses or {})
            b._request_bodies.update(components.request_bodies or {})
            b._security_schemes.update(components.security_schemes or {})
            b._seeded_webhooks = {k: v.model_copy(deep=True) for k, v in (doc.webhooks or {}).items()}

        b._tags = list(doc.tags or [])
        b._security = doc.security
        b._external_docs = doc.external_docs
        b._seeded_paths = {k: v.model_copy(deep=True) for k, v in (doc.paths or {}).items()}

        for seeded, is_webhook in ((b._seeded_paths, False), (b._seeded_webhooks, True)):
            for path, item in seeded.items():
                for method, op in item.operations().items():
                    b._claim_operation_id(op.operation_id, method, path, webhook=is_webhook)

        logger.debug(f"Seeded builder from {len(b._seeded_paths)} existing paths")
        return b


def _merged_operations(
    seeded: dict[str, PathItem], ops: dict[str, dict[str, OperationEntry | Operation]]
) -> dict[str, dict[str, OperationEntry | Operation]]:
    merged: dict[str, dict[str, OperationEntry | Operation]] = {
        path: dict(item.operations()) for path, item in seeded.items()
    }
    for path, methods in ops.items():
        merged.setdefault(path, {}).update(methods)
    return merged
