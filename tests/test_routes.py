from dataclasses import dataclass, field
from typing import Any

import pytest
from pydantic import ValidationError

from api_spec_builder.builder.builder import Builder
from api_spec_builder.builder.errors import BuilderError
from api_spec_builder.builder.routes import Request, Response, Route, bind_handlers


@dataclass
class JSONResponse:
    status_code: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: Any = None


def list_pets(ctx, req: Request) -> JSONResponse:
    return JSONResponse(body=[])


def create_pet(ctx, req: Request) -> JSONResponse:
    return JSONResponse(status_code=201, body=req.body)


def _builder() -> Builder:
    return (
        Builder("3.1.0")
        .add_operation("get", "/pets", operation_id="listPets")
        .add_operation("post", "/pets", operation_id="createPet")
        .add_operation("get", "/health")
    )


class TestBindHandlers:
    def test_every_operation_bound(self):
        bound = bind_handlers(_builder().routes(), {"listPets": list_pets, "createPet": create_pet})
        assert [(r.method, r.operation_id, h) for r, h in bound] == [
            ("GET", "listPets", list_pets),
            ("POST", "createPet", create_pet),
        ]

    def test_routes_without_id_are_skipped(self):
        bound = bind_handlers(_builder().routes(), {"listPets": list_pets, "createPet": create_pet})
        assert all(r.path != "/health" for r, _ in bound)

    def test_missing_handler(self):
        with pytest.raises(BuilderError, match="no handler for operationId\\(s\\): createPet"):
            bind_handlers(_builder().routes(), {"listPets": list_pets})

    def test_unknown_handler(self):
        handlers = {"listPets": list_pets, "createPet": create_pet, "deletePet": create_pet}
        with pytest.raises(BuilderError, match="unknown operationId\\(s\\): deletePet"):
            bind_handlers(_builder().routes(), handlers)

    def test_both_problems_reported(self):
        with pytest.raises(BuilderError) as exc:
            bind_handlers(_builder().routes(), {"listPets": list_pets, "other": list_pets})
        assert "createPet" in str(exc.value)
        assert "other" in str(exc.value)

    def test_webhook_routes(self):
        b = Builder("3.1.0").add_webhook("petAdopted", "post", operation_id="onAdopted")
        route, handler = bind_handlers(b.routes(), {"onAdopted": create_pet})[0]
        assert route == Route(method="POST", path="petAdopted", operation_id="onAdopted", is_webhook=True)


class TestHandlerContract:
    def test_response_protocol(self):
        assert isinstance(JSONResponse(), Response)
        assert not isinstance(object(), Response)

    def test_handler_call(self):
        req = Request(method="POST", path="/pets", operation_id="createPet", body={"name": "Rex"})
        resp = create_pet(None, req)
        assert resp.status_code == 201
        assert resp.body == {"name": "Rex"}

    def test_route_is_frozen(self):
        route = Route(method="GET", path="/pets")
        with pytest.raises(ValidationError):
            route.path = "/other"
