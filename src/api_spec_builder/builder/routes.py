"""Contract between a built document and an external HTTP layer.

No server lives here. A router takes ``Builder.routes()`` and a mapping
of operation id to handler, and ``bind_handlers`` checks that every
operation has exactly one handler before anything is served.
"""

import logging
from typing import Any, Callable, Iterable, Mapping, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from api_spec_builder.builder.errors import BuilderError

logger = logging.getLogger(__name__)


class Route(BaseModel):
    """One operation as a router sees it."""

    model_config = ConfigDict(frozen=True)

    method: str  # upper case, e.g. "GET"
    path: str  # path template, or the webhook name
    operation_id: str | None = None
    is_webhook: bool = False


class Request(BaseModel):
    """A request after the HTTP layer has parsed and validated it."""

    method: str
    path: str
    operation_id: str | None = None
    path_params: dict[str, str] = {}
    query: dict[str, list[str]] = {}
    headers: dict[str, str] = {}
    cookies: dict[str, str] = {}
    body: Any = None


@runtime_checkable
class Response(Protocol):
    status_code: int
    headers: dict[str, str]
    body: Any


# (context, request) -> response; the context is whatever the HTTP layer passes
HandlerFunc = Callable[[Any, Request], Response]


def bind_handlers(
    routes: Iterable[Route], handlers: Mapping[str, HandlerFunc]
) -> list[tuple[Route, HandlerFunc]]:
    """Pair each route with its handler by operation id.

    Raises BuilderError naming every operation without a handler and every
    handler without an operation.
    """
    bound = []
    missing = []
    seen = set()
    for route in routes:
        if not route.operation_id:
            logger.debug(f"Route {route.method} {route.path} has no operationId; not bindable")
            continue
        seen.add(route.operation_id)
        handler = handlers.get(route.operation_id)
        if handler is None:
            missing.append(route.operation_id)
            continue
        bound.append((route, handler))

    unknown = [op_id for op_id in handlers if op_id not in seen]
    if missing or unknown:
        problems = []
        if missing:
            problems.append(f"no handler for operationId(s): {', '.join(missing)}")
        if unknown:
            problems.append(f"handler(s) for unknown operationId(s): {', '.join(unknown)}")
        raise BuilderError("; ".join(problems), component="operation")
    return bound
