from __future__ import annotations

from pathlib import Path

import allure
import pytest
from conftest import printer_schema, write_worker

from drop_dispatch.dispatch.contracts import MappingEntry
from drop_dispatch.dispatch.errors import AmbiguousMatchError, ConfigError, NoMatchError
from drop_dispatch.dispatch.models import WorkerConfig
from drop_dispatch.dispatch.registry import ScriptRegistry
from drop_dispatch.dispatch.schema import SidecarSchemaProvider

pytestmark = [
    allure.epic("Dispatch Engine"),
    allure.feature("Script Registry"),
]


def _config(folder: Path, name: str = "Get printers (BNL)") -> WorkerConfig:
    return WorkerConfig(
        folder_key=folder,
        worker_path=folder / "worker.py",
        default_parameters={"ScriptName": name},
        schema=printer_schema(),
    )


def _entry(folder: Path, worker: Path, **defaults: str) -> MappingEntry:
    return MappingEntry(
        folder=folder,
        worker=worker,
        default_parameters=defaults or {"ScriptName": "Get printers (BNL)"},
    )


def test_resolve_exact_folder(tmp_path: Path) -> None:
    registry = ScriptRegistry([_config(tmp_path / "a", "A"), _config(tmp_path / "b", "B")])

    assert registry.resolve(tmp_path / "b").script_name == "B"


def test_resolve_nested_folder_uses_containing_mapping(tmp_path: Path) -> None:
    registry = ScriptRegistry([_config(tmp_path / "printers", "P"), _config(tmp_path / "other")])

    assert registry.resolve(tmp_path / "printers" / "Weekly").script_name == "P"
    assert registry.resolve(tmp_path / "printers" / "Urgent" / "Today").script_name == "P"


def test_resolve_exact_match_wins_over_containing_mapping(tmp_path: Path) -> None:
    registry = ScriptRegistry(
        [
            _config(tmp_path / "printers", "outer"),
            _config(tmp_path / "printers" / "Weekly", "inner"),
        ],
    )

    assert registry.resolve(tmp_path / "printers" / "Weekly").script_name == "inner"


def test_resolve_unrelated_folder_is_no_match(tmp_path: Path) -> None:
    registry = ScriptRegistry([_config(tmp_path / "printers")])

    with pytest.raises(NoMatchError, match="printers-old"):
        registry.resolve(tmp_path / "printers-old")


def test_resolve_sibling_prefix_is_not_containment(tmp_path: Path) -> None:
    registry = ScriptRegistry([_config(tmp_path / "print")])

    with pytest.raises(NoMatchError):
        registry.resolve(tmp_path / "printers")


def test_resolve_two_containing_mappings_is_ambiguous(tmp_path: Path) -> None:
    registry = ScriptRegistry(
        [
            _config(tmp_path / "printers", "outer"),
            _config(tmp_path / "printers" / "Weekly", "inner"),
        ],
    )

    with pytest.raises(AmbiguousMatchError) as raised:
        registry.resolve(tmp_path / "printers" / "Weekly" / "Monday")

    assert raised.value.candidates == (tmp_path / "printers" / "Weekly", tmp_path / "printers")


def test_resolve_all_rejects_first_unmapped_folder(tmp_path: Path) -> None:
    registry = ScriptRegistry([_config(tmp_path / "printers")])

    with pytest.raises(NoMatchError) as raised:
        registry.resolve_all([tmp_path / "printers", tmp_path / "unmapped"])

    assert raised.value.folder == tmp_path / "unmapped"


def test_validate_builds_configs_from_sidecar_schema(tmp_path: Path) -> None:
    worker = write_worker(tmp_path / "workers")
    folder = tmp_path / "drop"
    folder.mkdir()

    registry = ScriptRegistry.validate(
        [_entry(folder, worker, ScriptName="Printers", PrinterColor="red")],
        SidecarSchemaProvider(),
    )

    config = registry.resolve(folder)
    assert config.worker_path == worker
    assert config.schema.names == ("PrinterName", "PrinterColor", "ScriptName", "PaperSize")
    assert config.default_parameters == {"ScriptName": "Printers", "PrinterColor": "red"}


@pytest.mark.parametrize(
    ("mutate", "message"),
    [
        (
            lambda e, tmp: MappingEntry(tmp / "missing", e.worker, e.default_parameters),
            "does not exist",
        ),
        (lambda e, tmp: MappingEntry(e.folder, None, e.default_parameters), "no worker configured"),
        (lambda e, tmp: MappingEntry(e.folder, e.worker, None), "no default parameters"),
        (
            lambda e, tmp: MappingEntry(e.folder, tmp / "nope.py", e.default_parameters),
            "nope.py' does not exist",
        ),
        (
            lambda e, tmp: MappingEntry(e.folder, e.worker, {"ScriptName": "x", "Colour": "red"}),
            "'Colour' is not accepted",
        ),
        (
            lambda e, tmp: MappingEntry(e.folder, e.worker, {"PrinterColor": "red"}),
            "'ScriptName' is missing or empty",
        ),
        (
            lambda e, tmp: MappingEntry(e.folder, e.worker, {"ScriptName": "  "}),
            "'ScriptName' is missing or empty",
        ),
    ],
)
def test_validate_rejects_invalid_mapping(tmp_path: Path, mutate, message: str) -> None:
    worker = write_worker(tmp_path / "workers")
    folder = tmp_path / "drop"
    folder.mkdir()
    entry = mutate(_entry(folder, worker), tmp_path)

    with pytest.raises(ConfigError, match=message):
        ScriptRegistry.validate([entry], SidecarSchemaProvider())


def test_validate_rejects_worker_without_schema(tmp_path: Path) -> None:
    worker = tmp_path / "plain.py"
    worker.write_text("print('hi')\n", "utf-8")
    folder = tmp_path / "drop"
    folder.mkdir()

    with pytest.raises(ConfigError, match="No parameter schema"):
        ScriptRegistry.validate([_entry(folder, worker)], SidecarSchemaProvider())


def test_validate_rejects_duplicate_folder(tmp_path: Path) -> None:
    worker = write_worker(tmp_path / "workers")
    folder = tmp_path / "drop"
    folder.mkdir()

    with pytest.raises(ConfigError, match="mapped more than once"):
        ScriptRegistry.validate(
            [_entry(folder, worker), _entry(folder / ".." / "drop", worker)],
            SidecarSchemaProvider(),
        )


def test_validate_rejects_empty_mapping() -> None:
    with pytest.raises(ConfigError, match="No worker mappings"):
        ScriptRegistry.validate([], SidecarSchemaProvider())
