"""JSON / YAML encoding of built documents.

Documents are dumped to plain structures first, so the encoders never see
builder internals.
"""

import json
from pathlib import Path

import yaml

from api_spec_builder.document.base import OAS2Document, OAS3Document

Document = OAS2Document | OAS3Document


def to_json(doc: Document, indent: int = 2) -> str:
    return json.dumps(doc.to_dict(), indent=indent, ensure_ascii=False)


def to_yaml(doc: Document) -> str:
    return yaml.safe_dump(doc.to_dict(), sort_keys=False, allow_unicode=True)


def write_document(doc: Document, path: Path) -> None:
    """Write a document to disk. ``.json`` files get JSON, everything else YAML."""
    if path.suffix.lower() == ".json":
        text = to_json(doc)
    else:
        text = to_yaml(doc)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def read_document(path: Path) -> Document:
    """Load an OpenAPI 3.x or Swagger 2.0 file (YAML or JSON) into a document model."""
    text = path.read_text(encoding="utf-8")
    # JSON is a subset of YAML, so one loader covers both
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain an OpenAPI document")

    if "swagger" in data:
        return OAS2Document.model_validate(data)
    if "openapi" in data:
        return OAS3Document.model_validate(data)
    raise ValueError(f"{path} has neither an 'openapi' nor a 'swagger' field")
