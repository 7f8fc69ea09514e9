from __future__ import annotations

import json
from pathlib import Path

import allure
import pytest
from conftest import write_worker

from drop_dispatch.dispatch.errors import SchemaUnavailableError
from drop_dispatch.dispatch.schema import SidecarSchemaProvider, schema_path_for

pytestmark = [
    allure.epic("Dispatch Engine"),
    allure.feature("Parameter Schema"),
]


def test_sidecar_schema_keeps_declaration_order(tmp_path: Path) -> None:
    worker = write_worker(
        tmp_path,
        parameters=[
            {"name": "Zeta", "mandatory": True},
            {"name": "Alpha", "default": "a"},
            {"name": "ScriptName"},
            {"name": "Copies", "type": "int", "default": 2},
        ],
    )

    schema = SidecarSchemaProvider().get_schema(worker)

    assert schema.names == ("Zeta", "Alpha", "ScriptName", "Copies")
    assert schema.mandatory == frozenset({"Zeta"})
    assert schema.declared_defaults == {"Alpha": "a", "Copies": "2"}
    assert schema.type_of("Copies") == "int"
    assert schema.type_of("Alpha") == "string"


def test_schema_path_sits_next_to_worker() -> None:
    assert schema_path_for(Path("/scripts/get_printers.py")) == Path(
        "/scripts/get_printers.params.json",
    )


def test_schema_is_cached_per_worker(tmp_path: Path) -> None:
    worker = write_worker(tmp_path)
    provider = SidecarSchemaProvider()
    first = provider.get_schema(worker)

    schema_path_for(worker).unlink()

    assert provider.get_schema(worker) is first


def test_missing_sidecar_is_schema_unavailable(tmp_path: Path) -> None:
    worker = tmp_path / "worker.py"
    worker.write_text("", "utf-8")

    with pytest.raises(SchemaUnavailableError, match=r"worker\.params\.json"):
        SidecarSchemaProvider().get_schema(worker)


@pytest.mark.parametrize(
    ("document", "message"),
    [
        ("[]", "not a JSON object"),
        ("{not json", "not a JSON object"),
        (json.dumps({"parameters": {}}), "'parameters' must be an array"),
        (json.dumps({"parameters": [{"mandatory": True}]}), "name must be a non-empty string"),
        (json.dumps({"parameters": [{"name": "A"}, {"name": "A"}]}), "duplicate parameter 'A'"),
        (json.dumps({"parameters": [{"name": "A", "type": "date"}]}), "unsupported type 'date'"),
    ],
)
def test_malformed_sidecar_is_schema_unavailable(
    tmp_path: Path,
    document: str,
    message: str,
) -> None:
    worker = tmp_path / "worker.py"
    worker.write_text("", "utf-8")
    schema_path_for(worker).write_text(document, "utf-8")

    with pytest.raises(SchemaUnavailableError, match=message):
        SidecarSchemaProvider().get_schema(worker)


def test_schema_summary_describes_every_parameter(tmp_path: Path) -> None:
    schema = SidecarSchemaProvider().get_schema(write_worker(tmp_path))

    assert schema.summary()[0] == {
        "name": "PrinterName",
        "mandatory": True,
        "default": None,
        "type": "string",
    }
    assert schema.summary()[3]["default"] == "A4"
