"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from drop_dispatch.dispatch.errors import LaunchError
from drop_dispatch.dispatch.models import ErrorInfo, JobState, ParameterSchema
from drop_dispatch.dispatch.sinks import Priority

PRINTER_PARAMETERS = [
    {"name": "PrinterName", "mandatory": True},
    {"name": "PrinterColor", "mandatory": True},
    {"name": "ScriptName"},
    {"name": "PaperSize", "default": "A4"},
]

_WORKER_SOURCE = (
    "from drop_dispatch.dispatch.backend.echo_worker import main\n"
    "\n"
    "raise SystemExit(main())\n"
)


def printer_schema() -> ParameterSchema:
    return ParameterSchema(
        names=("PrinterName", "PrinterColor", "ScriptName", "PaperSize"),
        mandatory=frozenset({"PrinterName", "PrinterColor"}),
        declared_defaults={"PaperSize": "A4"},
    )


def write_worker(
    directory: Path,
    name: str = "get_printers.py",
    parameters: list[dict[str, object]] | None = None,
) -> Path:
    """Write an echo worker script with its parameter sidecar."""

    directory.mkdir(parents=True, exist_ok=True)
    worker = directory / name
    worker.write_text(_WORKER_SOURCE, "utf-8")
    sidecar = directory / f"{worker.stem}.params.json"
    sidecar.write_text(json.dumps({"parameters": parameters or PRINTER_PARAMETERS}), "utf-8")
    return worker


def write_mapping(path: Path, workers: list[dict[str, object]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"workers": workers}), "utf-8")
    return path


def write_input(folder: Path, name: str, payload: object) -> Path:
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / name
    path.write_text(json.dumps(payload), "utf-8")
    return path


@pytest.fixture()
def printer_worker(tmp_path: Path) -> Path:
    return write_worker(tmp_path / "workers")


@pytest.fixture()
def printer_setup(tmp_path: Path, printer_worker: Path) -> dict[str, Path]:
    """Drop folder mapped to the printer worker plus its mapping file."""

    drop_folder = tmp_path / "drop" / "Get printers"
    drop_folder.mkdir(parents=True)
    mapping_file = write_mapping(
        tmp_path / "config" / "workers.json",
        [
            {
                "folder": str(drop_folder),
                "worker": str(printer_worker),
                "default_parameters": {
                    "ScriptName": "Get printers (BNL)",
                    "PrinterColor": "red",
                },
            },
        ],
    )
    return {"drop_folder": drop_folder, "mapping_file": mapping_file, "worker": printer_worker}


class FakeHandle:
    """In-memory job handle with a fixed state."""

    def __init__(
        self,
        name: str,
        state: JobState = JobState.RUNNING,
        error: ErrorInfo | None = None,
    ) -> None:
        self._name = name
        self._state = state
        self._error = error
        self.released = False
        self.waited = False
        self.inspections = 0

    @property
    def name(self) -> str:
        return self._name

    def state(self) -> JobState:
        self.inspections += 1
        return self._state

    def drain_error(self) -> ErrorInfo | None:
        return self._error

    def wait(self, timeout: float | None = None) -> JobState:  # noqa: ARG002
        self.waited = True
        if self._state == JobState.RUNNING:
            self._state = JobState.SUCCEEDED
        return self._state

    def release(self) -> None:
        self.released = True


@dataclass
class FakeLauncher:
    """Launcher returning fake handles; per-job state keyed by job name."""

    states: dict[str, tuple[JobState, ErrorInfo | None]] = field(default_factory=dict)
    launch_errors: dict[str, str] = field(default_factory=dict)
    started: list[tuple[Path, str, list[str | None]]] = field(default_factory=list)
    handles: dict[str, FakeHandle] = field(default_factory=dict)

    def start(self, worker_path: Path, name: str, arguments: Sequence[str | None]) -> FakeHandle:
        if name in self.launch_errors:
            raise LaunchError(self.launch_errors[name])
        self.started.append((worker_path, name, list(arguments)))
        state, error = self.states.get(name, (JobState.RUNNING, None))
        handle = FakeHandle(name, state, error)
        self.handles[name] = handle
        return handle


@dataclass
class RecordingNotifier:
    """Notifier that keeps every notification in memory."""

    sent: list[dict[str, object]] = field(default_factory=list)

    def notify(
        self,
        recipient: str,
        subject: str,
        priority: Priority,
        body: str,
        attachments: Sequence[Path] = (),
    ) -> None:
        self.sent.append(
            {
                "recipient": recipient,
                "subject": subject,
                "priority": priority,
                "body": body,
                "attachments": list(attachments),
            },
        )
