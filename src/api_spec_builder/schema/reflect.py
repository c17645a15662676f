"""Schema generation from Python type descriptions.

``SchemaGenerator.generate`` walks a type and returns a schema node:

* ``Optional[X]`` / ``X | None`` unwrap to ``X`` with ``nullable`` set
* well-known types (``datetime``, ``UUID``, ``Decimal``, enums, ``Literal``)
  map to fixed schemas
* records (dataclasses, pydantic models, TypedDicts) are expanded once,
  registered under a name in the component schemas and returned as a
  ``$ref``; a record met again while it is still being expanded yields a
  ``$ref`` too, which is how self-referential types terminate
* sequences become arrays, ``dict[str, X]`` becomes an object with
  ``additionalProperties``, scalars come from a fixed table

Nothing here raises for an unsupported type; it degrades to ``{}``.
"""

import collections
import collections.abc
import dataclasses
import datetime
import decimal
import logging
import types
import uuid
from enum import Enum
from typing import (
    Annotated,
    Any,
    ForwardRef,
    Literal,
    NewType,
    NotRequired,
    Required,
    TypeVar,
    Union,
    get_args,
    get_origin,
    get_type_hints,
    is_typeddict,
)

from pydantic import BaseModel

from api_spec_builder.document.base import SCHEMA_REF_PREFIX, Schema
from api_spec_builder.schema.cache import SchemaCache
from api_spec_builder.schema.naming import SchemaNamer
from api_spec_builder.schema.tags import (
    apply_oas_tag,
    is_field_required,
    parse_json_tag,
    parse_oas_tag,
)
from api_spec_builder.schema.types import File, Float32, Float64, Int32, Int64, OASTag

logger = logging.getLogger(__name__)

_PRIMITIVES: dict[Any, tuple[str, str | None]] = {
    str: ("string", None),
    bool: ("boolean", None),
    int: ("integer", "int64"),
    float: ("number", "double"),
    bytes: ("string", "byte"),
    bytearray: ("string", "byte"),
    Int32: ("integer", "int32"),
    Int64: ("integer", "int64"),
    Float32: ("number", "float"),
    Float64: ("number", "double"),
}

_SPECIAL: dict[Any, tuple[str, str | None]] = {
    datetime.datetime: ("string", "date-time"),
    datetime.date: ("string", "date"),
    datetime.time: ("string", "time"),
    uuid.UUID: ("string", "uuid"),
    decimal.Decimal: ("number", None),
    File: ("string", "binary"),
}

_SEQUENCE_ORIGINS = {
    list, tuple, set, frozenset,
    collections.abc.Sequence, collections.abc.MutableSequence,
    collections.abc.Set, collections.abc.MutableSet,
    collections.abc.Collection, collections.abc.Iterable,
}

_MAPPING_ORIGINS = {
    dict, collections.OrderedDict, collections.defaultdict,
    collections.abc.Mapping, collections.abc.MutableMapping,
}

_UNIQUE_ORIGINS = {set, frozenset, collections.abc.Set, collections.abc.MutableSet}


@dataclasses.dataclass
class _Field:
    attr: str
    annotation: Any
    json_tag: str = ""
    oas_tag: str = ""
    embedded: bool = False
    omittable: bool = False


class SchemaGenerator:
    """Compiles Python types into schema nodes for one builder.

    ``schemas`` is the builder's component map; named record schemas are
    written into it as they are generated.
    """

    def __init__(self, cache: SchemaCache, namer: SchemaNamer, schemas: dict[str, Schema]):
        self.cache = cache
        self.namer = namer
        self.schemas = schemas
        # names chosen for records still being expanded
        self._pending: dict[Any, str] = {}

    def generate(self, t: Any, name_override: str | None = None) -> Schema:
        """Return the schema for ``t``. Records come back as ``$ref`` nodes.

        ``t`` may be a type or a sample value (``0``, ``""``, ``User()``);
        values stand for their type.
        """
        if t is None or t is type(None):
            return Schema()
        if not _is_type_like(t):
            t = type(t)

        t, nullable, tags = _unwrap(t)

        schema = self._special_schema(t)
        if schema is None and _is_record(t):
            schema = self._record_ref(t, name_override)
        if schema is None:
            schema = self._structural_schema(t)

        if nullable and not schema.is_ref:
            schema.nullable = True
        if tags:
            schema = apply_oas_tag(schema, parse_oas_tag(",".join(tags)))
        return schema

    def _record_ref(self, t: type, name_override: str | None) -> Schema:
        if self.cache.get(t) is not None:
            name = self.cache.name_for_type(t)
            if name:
                return Schema.reference(name)
            return self.cache.get(t)

        if self.cache.is_in_progress(t):
            name = name_override or self._pending.get(t) or self._schema_name(t)
            logger.debug(f"Circular reference to {name}; emitting $ref")
            return Schema.reference(name)

        name = name_override or self._schema_name(t)
        self.cache.mark_in_progress(t)
        self._pending[t] = name
        try:
            schema = self._record_schema(t)
        finally:
            self.cache.clear_in_progress(t)
            self._pending.pop(t, None)

        self.schemas[name] = schema
        self.cache.set(t, name, schema)
        logger.debug(f"Registered schema {name} for {t!r}")
        return Schema.reference(name)

    def _schema_name(self, t: type) -> str:
        def is_conflict(name: str) -> bool:
            owner = self.cache.type_for_name(name)
            if owner is not None:
                return owner is not t
            if name in self.schemas:
                # added by hand or copied from an existing document
                return True
            return any(n == name and other is not t for other, n in self._pending.items())

        name = self.namer.name_with_conflict_check(t, is_conflict)
        if name != self.namer.name(t):
            logger.debug(f"Schema name {self.namer.name(t)} already taken; using {name} for {t!r}")
        return name

    def _record_schema(self, t: type) -> Schema:
        properties: dict[str, Schema] = {}
        required: list[str] = []
        embedded_required: list[str] = []
        own_fields: set[str] = set()

        for fld in _record_fields(t):
            if fld.attr.startswith("_"):
                continue

            if fld.embedded:
                self._merge_embedded(fld.annotation, properties, embedded_required)
                continue

            name, json_opts = parse_json_tag(fld.json_tag)
            if name == "-":
                continue
            name = name or fld.attr

            annotation, annotated_tags = _split_annotated(fld.annotation)
            oas_opts = parse_oas_tag(",".join(filter(None, [fld.oas_tag, *annotated_tags])))

            if isinstance(annotation, str):
                logger.debug(f"Unresolved annotation {annotation!r} on {t.__name__}.{fld.attr}")
                field_schema = Schema()
                nullable = False
            else:
                field_schema = self.generate(annotation)
                nullable = _unwrap(annotation)[1]
            if oas_opts:
                field_schema = apply_oas_tag(field_schema, oas_opts)

            properties[name] = field_schema
            own_fields.add(name)

            omittable = fld.omittable or "omitempty" in json_opts
            if is_field_required(oas_opts.get("required"), nullable, omittable):
                required.append(name)

        for name in embedded_required:
            if name not in own_fields and name not in required:
                required.append(name)

        return Schema(type="object", properties=properties, required=required or None)

    def _merge_embedded(self, annotation: Any, properties: dict[str, Schema], required: list[str]) -> None:
        embedded = self.generate(annotation)
        source = embedded
        if embedded.is_ref:
            source = self.schemas.get(extract_ref_name(embedded.ref))
        if source is None or not source.properties:
            return

        for name, prop in source.properties.items():
            properties.setdefault(name, prop)
        for name in source.required or []:
            if name not in required:
                required.append(name)

    def _special_schema(self, t: Any) -> Schema | None:
        if t is Any or t is object:
            return Schema()

        fixed = _lookup(_SPECIAL, t)
        if fixed is not None:
            return Schema(type=fixed[0], format=fixed[1])

        if isinstance(t, type) and issubclass(t, Enum):
            return _enum_schema([member.value for member in t])

        if get_origin(t) is Literal:
            return _enum_schema(list(get_args(t)))

        return None

    def _structural_schema(self, t: Any) -> Schema:
        origin = get_origin(t)
        args = get_args(t)

        if origin in _SEQUENCE_ORIGINS or t in (list, tuple, set, frozenset):
            schema = Schema(type="array", items=self.generate(_item_type(origin or t, args)))
            if (origin or t) in _UNIQUE_ORIGINS:
                schema.unique_items = True
            return schema

        if origin in _MAPPING_ORIGINS or t is dict:
            value_type = args[1] if len(args) == 2 else Any
            return Schema(type="object", additional_properties=self.generate(value_type))

        primitive = _lookup(_PRIMITIVES, t)
        if primitive is not None:
            return Schema(type=primitive[0], format=primitive[1])

        # unions of several types, TypeVars, unresolved refs, anything else
        return Schema()


def extract_ref_name(ref: str | None) -> str:
    """Return the schema name from a 3.x or 2.0 schema ``$ref``."""
    if not ref:
        return ""
    for prefix in (SCHEMA_REF_PREFIX, "#/definitions/"):
        if ref.startswith(prefix):
            return ref[len(prefix):]
    return ""


def _is_type_like(t: Any) -> bool:
    return (
        isinstance(t, (type, NewType, TypeVar, ForwardRef))
        or get_origin(t) is not None
        or t is Any
    )


def _is_record(t: Any) -> bool:
    if not isinstance(t, type):
        return False
    return dataclasses.is_dataclass(t) or issubclass(t, BaseModel) or is_typeddict(t)


def _unwrap(t: Any) -> tuple[Any, bool, list[str]]:
    """Strip Annotated/Optional/NewType layers. Returns (type, nullable, oas tags)."""
    nullable = False
    tags: list[str] = []
    while True:
        origin = get_origin(t)
        if origin is Annotated:
            t, *metadata = get_args(t)
            tags.extend(m for m in metadata if isinstance(m, OASTag))
        elif origin in (Required, NotRequired):
            t = get_args(t)[0]
        elif origin in (Union, types.UnionType):
            members = [a for a in get_args(t) if a is not type(None)]
            if len(members) != len(get_args(t)):
                nullable = True
            if len(members) != 1:
                break
            t = members[0]
        elif isinstance(t, NewType) and t not in _PRIMITIVES:
            t = t.__supertype__
        else:
            break
    return t, nullable, tags


def _split_annotated(t: Any) -> tuple[Any, list[str]]:
    """Peel top-level Annotated metadata off a field annotation."""
    tags: list[str] = []
    while get_origin(t) is Annotated:
        t, *metadata = get_args(t)
        tags.extend(m for m in metadata if isinstance(m, OASTag))
    return t, tags


def _lookup(table: dict[Any, Any], t: Any) -> Any:
    try:
        return table.get(t)
    except TypeError:
        # unhashable type expression
        return None


def _item_type(origin: Any, args: tuple) -> Any:
    if not args:
        return Any
    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return args[0]
        if all(a == args[0] for a in args):
            return args[0]
        return Any
    return args[0]


def _enum_schema(values: list[Any]) -> Schema:
    schema = Schema(enum=values)
    if values:
        first = values[0]
        if isinstance(first, bool):
            schema.type = "boolean"
        elif isinstance(first, int):
            schema.type = "integer"
        elif isinstance(first, float):
            schema.type = "number"
        elif isinstance(first, str):
            schema.type = "string"
    return schema


def _type_hints(t: type) -> dict[str, Any]:
    try:
        return get_type_hints(t, localns={t.__name__: t}, include_extras=True)
    except (NameError, TypeError) as e:
        logger.debug(f"Cannot resolve annotations of {t!r}: {e}")
        return dict(getattr(t, "__annotations__", {}))


def _record_fields(t: type) -> list[_Field]:
    if dataclasses.is_dataclass(t):
        hints = _type_hints(t)
        fields = []
        for f in dataclasses.fields(t):
            meta = f.metadata
            has_default = f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING
            fields.append(_Field(
                attr=f.name,
                annotation=hints.get(f.name, f.type),
                json_tag=meta.get("json", ""),
                oas_tag=meta.get("oas", ""),
                embedded=bool(meta.get("embedded")),
                omittable=has_default,
            ))
        return fields

    if issubclass(t, BaseModel):
        fields = []
        for attr, info in t.model_fields.items():
            extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
            json_tag = extra.get("json") or info.alias or ""
            if info.exclude is True:
                json_tag = "-"
            oas_tags = [extra.get("oas", "")] + [m for m in info.metadata if isinstance(m, OASTag)]
            fields.append(_Field(
                attr=attr,
                annotation=info.annotation,
                json_tag=json_tag,
                oas_tag=",".join(filter(None, oas_tags)),
                embedded=bool(extra.get("embedded")),
                omittable=not info.is_required(),
            ))
        return fields

    # TypedDict
    hints = _type_hints(t)
    required_keys = getattr(t, "__required_keys__", frozenset(hints))
    return [
        _Field(attr=name, annotation=annotation, omittable=name not in required_keys)
        for name, annotation in hints.items()
    ]
