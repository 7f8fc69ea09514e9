from __future__ import annotations

from pathlib import Path

import allure
import pytest
from conftest import printer_schema

from drop_dispatch.dispatch.errors import InputRejectedError
from drop_dispatch.dispatch.models import ParameterSchema, WorkerConfig
from drop_dispatch.dispatch.resolver import ParameterResolver, resolve_arguments

pytestmark = [
    allure.epic("Dispatch Engine"),
    allure.feature("Parameter Resolution"),
]

_WORKER = Path("/scripts/get_printers.py")
_FOLDER_DEFAULTS = {"ScriptName": "Get printers (BNL)", "PrinterColor": "red"}


def _printer_config(folder: str = "/drop/printers") -> WorkerConfig:
    return WorkerConfig(
        folder_key=Path(folder),
        worker_path=_WORKER,
        default_parameters=dict(_FOLDER_DEFAULTS),
        schema=printer_schema(),
    )


def test_printer_scenario_merges_three_layers_positionally() -> None:
    invocation = resolve_arguments(
        worker_path=_WORKER,
        schema=printer_schema(),
        folder_defaults=_FOLDER_DEFAULTS,
        user_input={"PrinterName": "MyCustomPrinter"},
        job_name="Get printers (BNL)",
    )

    assert invocation.arguments == ("MyCustomPrinter", "red", "Get printers (BNL)", "A4")
    assert invocation.parameter_names == ("PrinterName", "PrinterColor", "ScriptName", "PaperSize")
    assert invocation.job_name == "Get printers (BNL)"
    assert invocation.worker_path == _WORKER


def test_user_value_overrides_folder_default_which_overrides_declared_default() -> None:
    schema = ParameterSchema(
        names=("A", "B", "C", "ScriptName"),
        declared_defaults={"A": "declared-a", "B": "declared-b", "C": "declared-c"},
    )

    invocation = resolve_arguments(
        worker_path=_WORKER,
        schema=schema,
        folder_defaults={"ScriptName": "job", "B": "folder-b", "C": "folder-c"},
        user_input={"C": "user-c"},
        job_name="job",
    )

    assert invocation.arguments == ("declared-a", "folder-b", "user-c", "job")


def test_absent_values_keep_their_position_as_none() -> None:
    invocation = resolve_arguments(
        worker_path=_WORKER,
        schema=printer_schema(),
        folder_defaults={"ScriptName": "Get printers (BNL)"},
        user_input={},
        job_name="Get printers (BNL)",
    )

    assert invocation.arguments == (None, None, "Get printers (BNL)", "A4")


def test_unknown_keys_are_rejected_with_all_names_sorted() -> None:
    with pytest.raises(InputRejectedError) as raised:
        resolve_arguments(
            worker_path=_WORKER,
            schema=printer_schema(),
            folder_defaults=_FOLDER_DEFAULTS,
            user_input={"UnknownParameter": "x", "PrinterName": "p", "AnotherOne": "y"},
            job_name="Get printers (BNL)",
        )

    message = str(raised.value)
    assert "'AnotherOne', 'UnknownParameter'" in message
    assert str(_WORKER) in message


def test_user_supplied_script_name_is_ignored() -> None:
    invocation = resolve_arguments(
        worker_path=_WORKER,
        schema=printer_schema(),
        folder_defaults=_FOLDER_DEFAULTS,
        user_input={"PrinterName": "p", "ScriptName": "Hijacked"},
        job_name="Get printers (BNL)",
    )

    assert invocation.arguments[2] == "Get printers (BNL)"


def test_resolution_is_idempotent() -> None:
    kwargs = {
        "worker_path": _WORKER,
        "schema": printer_schema(),
        "folder_defaults": _FOLDER_DEFAULTS,
        "user_input": {"PrinterName": "p", "PaperSize": "A3"},
        "job_name": "Get printers (BNL)",
    }

    assert resolve_arguments(**kwargs) == resolve_arguments(**kwargs)


def test_job_names_are_suffixed_per_worker_in_resolution_order() -> None:
    resolver = ParameterResolver()
    config = _printer_config()

    names = [
        resolver.resolve(config, {"PrinterName": f"Printer{index}"}).job_name
        for index in range(1, 5)
    ]

    assert names == [
        "Get printers (BNL)",
        "Get printers (BNL) 1",
        "Get printers (BNL) 2",
        "Get printers (BNL) 3",
    ]


def test_suffixed_job_name_is_passed_as_script_name_argument() -> None:
    resolver = ParameterResolver()
    config = _printer_config()

    first = resolver.resolve(config, {"PrinterName": "Printer1"})
    second = resolver.resolve(config, {"PrinterName": "Printer2"})

    assert first.arguments == ("Printer1", "red", "Get printers (BNL)", "A4")
    assert second.arguments == ("Printer2", "red", "Get printers (BNL) 1", "A4")


def test_rejected_input_does_not_consume_a_job_name() -> None:
    resolver = ParameterResolver()
    config = _printer_config()

    resolver.resolve(config, {"PrinterName": "Printer1"})
    with pytest.raises(InputRejectedError):
        resolver.resolve(config, {"UnknownParameter": "x"})
    third = resolver.resolve(config, {"PrinterName": "Printer3"})

    assert third.job_name == "Get printers (BNL) 1"


def test_job_name_counters_are_independent_per_worker() -> None:
    resolver = ParameterResolver()
    printers = _printer_config("/drop/printers")
    other = WorkerConfig(
        folder_key=Path("/drop/other"),
        worker_path=Path("/scripts/other.py"),
        default_parameters={"ScriptName": "Other"},
        schema=printer_schema(),
    )

    assert resolver.resolve(printers, {}).job_name == "Get printers (BNL)"
    assert resolver.resolve(other, {}).job_name == "Other"
    assert resolver.resolve(printers, {}).job_name == "Get printers (BNL) 1"
    assert resolver.resolve(other, {}).job_name == "Other 1"


def test_new_resolver_restarts_job_name_counter() -> None:
    config = _printer_config()
    ParameterResolver().resolve(config, {})

    assert ParameterResolver().resolve(config, {}).job_name == "Get printers (BNL)"
