import json
from pathlib import Path

import pytest
import yaml

from api_spec_builder.builder.builder import Builder
from api_spec_builder.builder.options import path_param, response
from api_spec_builder.document.base import OAS2Document, OAS3Document
from api_spec_builder.document.encode import read_document, to_json, to_yaml, write_document

FIXTURES = Path(__file__).parent / "fixtures"


def _document(version: str = "3.0.3"):
    return (
        Builder(version)
        .set_title("Pets")
        .set_version("1.0.0")
        .add_operation(
            "get", "/pets/{id}",
            operation_id="getPet",
            parameters=[path_param("id", int)],
            responses=[response(200, description="Café")],
        )
        .build()
    )


class TestEncoders:
    def test_json_uses_openapi_names(self):
        data = json.loads(to_json(_document()))
        assert data["openapi"] == "3.0.3"
        op = data["paths"]["/pets/{id}"]["get"]
        assert op["operationId"] == "getPet"
        assert op["parameters"][0]["in"] == "path"
        assert op["parameters"][0]["schema"] == {"type": "integer", "format": "int64"}

    def test_yaml_keeps_key_order_and_unicode(self):
        text = to_yaml(_document())
        assert text.startswith("openapi: 3.0.3")
        assert "Café" in text
        assert yaml.safe_load(text)["info"]["title"] == "Pets"

    def test_unset_fields_are_omitted(self):
        data = json.loads(to_json(_document()))
        assert "components" not in data
        assert "servers" not in data


class TestWriteDocument:
    def test_json_by_suffix(self, tmp_path):
        out = tmp_path / "openapi.json"
        write_document(_document(), out)
        assert json.loads(out.read_text(encoding="utf-8"))["info"]["title"] == "Pets"

    @pytest.mark.parametrize("name", ["openapi.yaml", "openapi.yml", "openapi.txt"])
    def test_yaml_otherwise(self, tmp_path, name):
        out = tmp_path / name
        write_document(_document("2.0"), out)
        assert yaml.safe_load(out.read_text(encoding="utf-8"))["swagger"] == "2.0"

    def test_creates_parent_directories(self, tmp_path):
        out = tmp_path / "docs" / "v1" / "openapi.yaml"
        write_document(_document(), out)
        assert out.exists()


class TestReadDocument:
    def test_oas3_fixture(self):
        doc = read_document(FIXTURES / "petstore.yaml")
        assert isinstance(doc, OAS3Document)
        assert doc.info.title == "Petstore"
        # unquoted YAML status codes load as ints
        assert set(doc.paths["/pets"].get.responses) == {"200"}
        assert doc.components.schemas["Pet"].required == ["id", "name"]
        assert doc.components.security_schemes["api_key"].in_ == "header"

    def test_swagger_fixture(self):
        doc = read_document(FIXTURES / "petstore_swagger.yaml")
        assert isinstance(doc, OAS2Document)
        assert doc.base_path == "/v1"
        assert doc.paths["/pets"].get.parameters[0].format == "int32"

    def test_written_document_reads_back(self, tmp_path):
        out = tmp_path / "openapi.json"
        original = _document()
        write_document(original, out)
        assert read_document(out).to_dict() == original.to_dict()

    def test_not_openapi(self, tmp_path):
        f = tmp_path / "config.yaml"
        f.write_text("name: not an api\n", encoding="utf-8")
        with pytest.raises(ValueError, match="neither"):
            read_document(f)

    def test_not_a_mapping(self, tmp_path):
        f = tmp_path / "list.yaml"
        f.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            read_document(f)
