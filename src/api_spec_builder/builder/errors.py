"""Builder error types.

Configuration calls on a Builder never raise for these; they are
collected and raised together as ``BuilderErrors`` by ``build()``.
All of them derive from ``ConfigError`` so callers can catch the family.
"""

from dataclasses import dataclass


class ConfigError(Exception):
    """Base class for builder configuration problems."""


class ConstraintError(ConfigError):
    """One inconsistent or malformed constraint."""

    def __init__(self, field: str, message: str, param_name: str = ""):
        self.field = field
        self.message = message
        self.param_name = param_name
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.param_name:
            return f"constraint error on parameter {self.param_name!r} field {self.field}: {self.message}"
        return f"constraint error on {self.field}: {self.message}"


class ConstraintErrors(ConfigError):
    """Every violation found in one constraint set."""

    def __init__(self, errors: list[ConstraintError]):
        self.errors = list(errors)
        super().__init__(str(self))

    def __str__(self) -> str:
        return "\n".join(str(e) for e in self.errors)

    def __len__(self) -> int:
        return len(self.errors)


@dataclass(frozen=True)
class OperationLocation:
    """Where an operation id was first defined."""

    method: str
    path: str
    is_webhook: bool = False

    def __str__(self) -> str:
        if self.is_webhook:
            return f"webhook {self.path} ({self.method})"
        return f"{self.method} {self.path}"


class BuilderError(ConfigError):
    """A located builder error: which component, operation and field."""

    def __init__(
        self,
        message: str = "",
        *,
        component: str = "",
        method: str = "",
        path: str = "",
        operation_id: str = "",
        field: str = "",
        first_occurrence: OperationLocation | None = None,
        cause: Exception | None = None,
    ):
        self.message = message
        self.component = component
        self.method = method
        self.path = path
        self.operation_id = operation_id
        self.field = field
        self.first_occurrence = first_occurrence
        self.cause = cause
        super().__init__(str(self))
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        parts = ["builder"]
        if self.component:
            parts.append(f": {self.component}")
        if self.method and self.path:
            parts.append(f" {self.method} {self.path}")
        elif self.path:
            parts.append(f" {self.path}")
        if self.operation_id:
            parts.append(f" [operationId: {self.operation_id}]")
        if self.field:
            parts.append(f" field {self.field}")
        if self.message:
            parts.append(f": {self.message}")
        if self.first_occurrence is not None:
            parts.append(f" (first defined at {self.first_occurrence})")
        if self.cause is not None:
            parts.append(f": {self.cause}")
        return "".join(parts)

    @property
    def location(self) -> str:
        if self.method and self.path:
            return f"{self.method} {self.path}"
        return self.path or self.component or "unknown"


class BuilderErrors(ConfigError):
    """All errors accumulated by a builder, raised once at build time."""

    def __init__(self, errors: list[BuilderError]):
        self.errors = list(errors)
        super().__init__(str(self))

    def __str__(self) -> str:
        lines = [f"builder: {len(self.errors)} error(s):"]
        for e in self.errors:
            message = str(e).removeprefix("builder: ")
            # multi-line causes stay under their bullet
            lines.append("  - " + message.replace("\n", "\n    "))
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self):
        return iter(self.errors)


def duplicate_operation_id(
    operation_id: str, method: str, path: str, first: OperationLocation, *, webhook: bool = False
) -> BuilderError:
    return BuilderError(
        f"duplicate operationId {operation_id!r}",
        component="webhook" if webhook else "operation",
        method=method,
        path=path,
        operation_id=operation_id,
        first_occurrence=first,
    )


def unsupported_method(method: str, path: str, min_version: str = "") -> BuilderError:
    if min_version:
        message = f"HTTP method {method} requires OAS version {min_version} or later"
    else:
        message = f"unsupported HTTP method: {method}"
    return BuilderError(message, component="operation", method=method, path=path)


def parameter_constraint(param_name: str, location: str, errors: ConstraintErrors) -> BuilderError:
    return BuilderError(
        f"parameter {param_name!r} has invalid constraints",
        component="parameter",
        path=location,
        cause=errors,
    )
