"""Per-builder memo of generated record schemas."""

from typing import Any

from api_spec_builder.document.base import Schema


class SchemaCache:
    """Maps type identity to generated schema and registered name.

    Keys are the type objects themselves, never their display names:
    two modules may each define a ``User``. The cache also tracks which
    types are mid-expansion so self-referential types can be cut short.
    """

    def __init__(self):
        self._schemas: dict[Any, Schema] = {}
        self._names: dict[Any, str] = {}
        self._types: dict[str, Any] = {}
        self._in_progress: set[Any] = set()

    def get(self, t: Any) -> Schema | None:
        return self._schemas.get(t)

    def set(self, t: Any, name: str, schema: Schema) -> None:
        self._schemas[t] = schema
        if name:
            self._names[t] = name
            self._types[name] = t

    def name_for_type(self, t: Any) -> str:
        return self._names.get(t, "")

    def type_for_name(self, name: str) -> Any | None:
        return self._types.get(name)

    def is_in_progress(self, t: Any) -> bool:
        return t in self._in_progress

    def mark_in_progress(self, t: Any) -> None:
        self._in_progress.add(t)

    def clear_in_progress(self, t: Any) -> None:
        self._in_progress.discard(t)

    def __len__(self) -> int:
        return len(self._schemas)
