"""Schema naming.

Turns a record type into the name its schema is registered under. The
default is ``<module basename>.<TypeName>`` (``models.User``); other
built-in strategies, a ``str.format`` template or a custom callable can
replace it. Generic names such as ``Response[User]`` are sanitized into
URI-safe forms.
"""

import dataclasses
import re
from enum import Enum
from typing import Any, Callable, is_typeddict

from pydantic import BaseModel

ANONYMOUS_TYPE_NAME = "AnonymousType"

_NO_MODULE = {"", "builtins", "__main__"}


class SchemaNaming(str, Enum):
    DEFAULT = "default"  # models.User
    PASCAL_CASE = "pascal"  # ModelsUser
    CAMEL_CASE = "camel"  # modelsUser
    SNAKE_CASE = "snake"  # models_user
    KEBAB_CASE = "kebab"  # models-user
    TYPE_ONLY = "type_only"  # User, may collide
    FULL_PATH = "full_path"  # app_models_User


class GenericNaming(str, Enum):
    UNDERSCORE = "underscore"  # Response_User_
    OF = "of"  # ResponseOfUser
    FOR = "for"  # ResponseForUser
    ANGLE_BRACKETS = "angle"  # Response<User>
    FLATTENED = "flattened"  # ResponseUser


class GenericNamingConfig(BaseModel):
    """Fine-grained control over how generic parameters appear in names."""

    strategy: GenericNaming = GenericNaming.UNDERSCORE
    separator: str = "_"  # between base type and parameters, UNDERSCORE only
    param_separator: str = "_"  # between parameters
    include_package: bool = False  # Response[models.User] -> Response_models_User
    apply_base_casing: bool = False  # case parameters like the base strategy


class SchemaNameContext(BaseModel):
    """Type metadata handed to name templates and naming callables."""

    type: str = ""  # User, Response[User]
    type_sanitized: str = ""
    type_base: str = ""  # Response
    package: str = ""  # models
    package_path: str = ""  # app.models
    package_path_sanitized: str = ""  # app_models
    is_generic: bool = False
    generic_params: list[str] = []
    generic_params_sanitized: list[str] = []
    generic_suffix: str = ""
    is_anonymous: bool = False
    kind: str = ""  # dataclass / model / typeddict / type


SchemaNameFunc = Callable[[SchemaNameContext], str]


class SchemaNamer:
    """Generates schema names. Priority: callable > template > strategy."""

    def __init__(
        self,
        strategy: SchemaNaming = SchemaNaming.DEFAULT,
        generic_config: GenericNamingConfig | None = None,
        template: str | None = None,
        fn: SchemaNameFunc | None = None,
    ):
        self.strategy = strategy
        self.generic_config = generic_config or GenericNamingConfig()
        self.template = template
        self.fn = fn

    def name(self, t: Any) -> str:
        ctx = self.build_context(t)

        if self.fn is not None:
            return self.fn(ctx)

        if self.template is not None:
            try:
                return sanitize_schema_name(self.template.format_map(ctx.model_dump()))
            except (KeyError, IndexError, ValueError):
                return self.default_name(ctx)

        return self.apply_strategy(ctx)

    def name_with_conflict_check(self, t: Any, is_conflict: Callable[[str], bool]) -> str:
        """Name ``t`` so that ``is_conflict`` accepts it.

        A taken name is widened to the full module path; if that is taken
        too, or the type has no module, a numeric suffix is added
        (``User_2``, ``User_3``, ...).
        """
        name = self.name(t)
        if not is_conflict(name):
            return name

        ctx = self.build_context(t)
        if ctx.package_path_sanitized:
            name = f"{ctx.package_path_sanitized}_{ctx.type_sanitized}"
            if not is_conflict(name):
                return name

        suffix = 2
        while is_conflict(f"{name}_{suffix}"):
            suffix += 1
        return f"{name}_{suffix}"

    def build_context(self, t: Any) -> SchemaNameContext:
        type_name = getattr(t, "__name__", "") or ""
        module = getattr(t, "__module__", "") or ""
        if module in _NO_MODULE:
            module = ""

        ctx = SchemaNameContext(
            type=type_name,
            package=module.rsplit(".", 1)[-1],
            package_path=module,
            package_path_sanitized=sanitize_path(module),
            is_anonymous=not type_name,
            kind=_kind_of(t),
        )
        if ctx.is_anonymous:
            return ctx

        if "[" in type_name:
            ctx.is_generic = True
            ctx.type_base = extract_base_type_name(type_name)
            ctx.generic_params = extract_generic_params(type_name)
            ctx.generic_params_sanitized = self._sanitize_generic_params(ctx.generic_params)
            ctx.generic_suffix = self._format_generic_suffix(ctx.generic_params_sanitized)
            ctx.type_sanitized = ctx.type_base + ctx.generic_suffix
            if self.generic_config.strategy == GenericNaming.UNDERSCORE:
                ctx.type_sanitized = sanitize_schema_name(ctx.type_sanitized)
        else:
            ctx.type_base = type_name
            ctx.type_sanitized = sanitize_schema_name(type_name)
        return ctx

    def apply_strategy(self, ctx: SchemaNameContext) -> str:
        if ctx.is_anonymous:
            return ANONYMOUS_TYPE_NAME

        match self.strategy:
            case SchemaNaming.PASCAL_CASE:
                return to_pascal_case(ctx.package) + to_pascal_case(ctx.type_sanitized)
            case SchemaNaming.CAMEL_CASE:
                return to_camel_case(ctx.package) + to_pascal_case(ctx.type_sanitized)
            case SchemaNaming.SNAKE_CASE:
                return _join("_", to_snake_case(ctx.package), to_snake_case(ctx.type_sanitized))
            case SchemaNaming.KEBAB_CASE:
                return _join("-", to_kebab_case(ctx.package), to_kebab_case(ctx.type_sanitized))
            case SchemaNaming.TYPE_ONLY:
                return ctx.type_sanitized
            case SchemaNaming.FULL_PATH:
                return _join("_", ctx.package_path_sanitized, ctx.type_sanitized)
            case _:
                return self.default_name(ctx)

    def default_name(self, ctx: SchemaNameContext) -> str:
        if ctx.is_anonymous:
            return ANONYMOUS_TYPE_NAME
        if not ctx.package:
            return ctx.type_sanitized
        return f"{ctx.package}.{ctx.type_sanitized}"

    def _sanitize_generic_params(self, params: list[str]) -> list[str]:
        result = []
        for param in params:
            if self.generic_config.include_package:
                param = param.replace(".", "_")
            else:
                # models.User -> User, but keep nested generics intact
                base = extract_base_type_name(param)
                if "." in base:
                    param = param[base.rfind(".") + 1:]
            param = sanitize_schema_name(param)
            if self.generic_config.apply_base_casing:
                param = self._apply_casing(param)
            result.append(param)
        return result

    def _format_generic_suffix(self, params: list[str]) -> str:
        if not params:
            return ""

        cfg = self.generic_config
        match cfg.strategy:
            case GenericNaming.OF:
                return "Of" + (cfg.param_separator + "Of").join(params)
            case GenericNaming.FOR:
                return "For" + (cfg.param_separator + "For").join(params)
            case GenericNaming.ANGLE_BRACKETS:
                return "<" + ",".join(params) + ">"
            case GenericNaming.FLATTENED:
                return "".join(params)
            case _:
                sep = cfg.separator or "_"
                return sep + (cfg.param_separator or "_").join(params) + sep

    def _apply_casing(self, s: str) -> str:
        match self.strategy:
            case SchemaNaming.PASCAL_CASE:
                return to_pascal_case(s)
            case SchemaNaming.CAMEL_CASE:
                return to_camel_case(s)
            case SchemaNaming.SNAKE_CASE:
                return to_snake_case(s)
            case SchemaNaming.KEBAB_CASE:
                return to_kebab_case(s)
            case _:
                return s


def validate_name_template(template: str) -> None:
    """Raise ValueError if ``template`` cannot render a sample context."""
    sample = SchemaNameContext(
        type="TestType",
        type_sanitized="TestType",
        type_base="TestType",
        package="testpkg",
        package_path="example.testpkg",
        package_path_sanitized="example_testpkg",
        kind="dataclass",
    )
    try:
        template.format_map(sample.model_dump())
    except (KeyError, IndexError, ValueError, AttributeError) as e:
        raise ValueError(f"invalid schema name template {template!r}: {e}") from e


def extract_base_type_name(name: str) -> str:
    """``Response[User]`` -> ``Response``."""
    idx = name.find("[")
    return name if idx == -1 else name[:idx]


def extract_generic_params(name: str) -> list[str]:
    """Split the top-level parameters of a generic name.

    ``Map[str, int]`` -> ``["str", "int"]``;
    ``Response[List[User]]`` -> ``["List[User]"]``.
    """
    start = name.find("[")
    end = name.rfind("]")
    if start == -1 or end <= start:
        return []

    params = []
    current = []
    depth = 0
    for ch in name[start + 1:end]:
        if ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
        elif ch == "," and depth == 0:
            params.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    if current:
        params.append("".join(current).strip())
    return params


def sanitize_path(module_path: str) -> str:
    """``app.api/models`` -> ``app_api_models``."""
    return module_path.replace("/", "_").replace(".", "_")


def sanitize_schema_name(name: str) -> str:
    """Replace characters that are unsafe in ``$ref`` URIs.

    ``Response[User]`` -> ``Response_User``
    """
    name = re.sub(r"[\[\],\s]", "_", name)
    name = re.sub(r"_{2,}", "_", name)
    return name.rstrip("_")


def to_pascal_case(s: str) -> str:
    parts = re.split(r"[_\-./]+", s)
    return "".join(p[:1].upper() + p[1:] for p in parts if p)


def to_camel_case(s: str) -> str:
    pascal = to_pascal_case(s)
    return pascal[:1].lower() + pascal[1:]


def to_snake_case(s: str) -> str:
    s = re.sub(r"[\-./]+", "_", s)
    s = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", s)
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s)
    return s.lower()


def to_kebab_case(s: str) -> str:
    return to_snake_case(s).replace("_", "-")


def _join(sep: str, prefix: str, name: str) -> str:
    return f"{prefix}{sep}{name}" if prefix else name


def _kind_of(t: Any) -> str:
    if isinstance(t, type) and dataclasses.is_dataclass(t):
        return "dataclass"
    if isinstance(t, type) and issubclass(t, BaseModel):
        return "model"
    if is_typeddict(t):
        return "typeddict"
    return "type"
