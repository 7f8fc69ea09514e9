"""Subprocess-based launch mechanism for worker executables."""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import sys
import time
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

from drop_dispatch.dispatch.errors import LaunchError, SchemaUnavailableError
from drop_dispatch.dispatch.failure_classifier import (
    PARAMETER_BINDING_TAG,
    classify_worker_failure,
)
from drop_dispatch.dispatch.models import ErrorInfo, JobState, ParameterSchema
from drop_dispatch.dispatch.schema import SchemaProvider

logger = logging.getLogger(__name__)

JOB_NAME_ENV = "DROP_DISPATCH_JOB_NAME"
_TRUE_VALUES = frozenset({"1", "true", "yes", "on", "$true"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", "$false"})
_MAX_ERROR_CHARS = 4_000
DEFAULT_OUTPUT_RETENTION_SECONDS = 24 * 60 * 60


class SubprocessLauncher:
    """Bind positional arguments against the worker schema and start it as a process.

    Binding happens before anything is spawned: a missing mandatory value
    yields a blocked handle, a value that does not convert to its declared
    type yields a failed handle tagged as a parameter binding error.

    Output folders of jobs still running at release time are left behind;
    folders older than the retention age are pruned before the first spawn.
    """

    def __init__(
        self,
        *,
        schema_provider: SchemaProvider,
        output_root: Path,
        python_executable: str | None = None,
        output_retention_seconds: float = DEFAULT_OUTPUT_RETENTION_SECONDS,
    ) -> None:
        self.schema_provider = schema_provider
        self.output_root = output_root
        self.python_executable = python_executable or sys.executable
        self.output_retention_seconds = output_retention_seconds
        self._pruned = False

    def start(
        self,
        worker_path: Path,
        name: str,
        arguments: Sequence[str | None],
    ) -> BlockedJobHandle | FailedJobHandle | SubprocessJobHandle:
        try:
            schema = self.schema_provider.get_schema(worker_path)
        except SchemaUnavailableError as error:
            raise LaunchError(str(error)) from error

        missing = _missing_mandatory(schema, arguments)
        if missing:
            logger.info(
                "Job %r blocked, missing mandatory parameter(s): %s",
                name,
                ", ".join(missing),
            )
            return BlockedJobHandle(name=name, missing=tuple(missing))

        binding_error = _check_types(schema, arguments)
        if binding_error is not None:
            logger.info("Job %r failed to bind: %s", name, binding_error)
            return FailedJobHandle(
                name=name,
                error=ErrorInfo(message=binding_error, classification_tag=PARAMETER_BINDING_TAG),
            )

        return self._spawn(worker_path, name, arguments)

    def _spawn(
        self,
        worker_path: Path,
        name: str,
        arguments: Sequence[str | None],
    ) -> SubprocessJobHandle:
        if not self._pruned:
            self.prune_output()
            self._pruned = True
        run_args = self.build_run_args(worker_path, arguments)
        output_dir = self.output_root / _output_dir_name(name)
        output_dir.mkdir(parents=True, exist_ok=True)
        stdout_path = output_dir / "stdout.log"
        stderr_path = output_dir / "stderr.log"

        env = os.environ.copy()
        env[JOB_NAME_ENV] = name

        try:
            with (
                stdout_path.open("w", encoding="utf-8") as stdout_handle,
                stderr_path.open("w", encoding="utf-8") as stderr_handle,
            ):
                process = subprocess.Popen(  # noqa: S603
                    run_args,
                    env=env,
                    stdin=subprocess.DEVNULL,
                    stdout=stdout_handle,
                    stderr=stderr_handle,
                    text=True,
                )
        except FileNotFoundError as error:
            shutil.rmtree(output_dir, ignore_errors=True)
            raise LaunchError(f"Worker '{worker_path}' not found: {error}") from error
        except OSError as error:
            shutil.rmtree(output_dir, ignore_errors=True)
            raise LaunchError(f"Worker '{worker_path}' failed to start: {error}") from error

        logger.debug("Started job %r as pid %s", name, process.pid)
        return SubprocessJobHandle(
            name=name,
            process=process,
            output_dir=output_dir,
            stderr_path=stderr_path,
        )

    def prune_output(self, now: float | None = None) -> list[Path]:
        """Remove job output folders not modified within the retention age."""

        if not self.output_root.is_dir():
            return []
        cutoff = (time.time() if now is None else now) - self.output_retention_seconds
        removed: list[Path] = []
        for path in sorted(self.output_root.iterdir()):
            try:
                if not path.is_dir() or _last_modified(path) >= cutoff:
                    continue
                shutil.rmtree(path)
            except OSError as error:
                logger.warning("Could not prune job output %s: %s", path, error)
                continue
            removed.append(path)
        if removed:
            logger.info(
                "Pruned %d stale job output folder(s) in %s",
                len(removed),
                self.output_root,
            )
        return removed

    def build_run_args(self, worker_path: Path, arguments: Sequence[str | None]) -> list[str]:
        """Command line for one job; `None` placeholders become empty arguments."""

        positional = ["" if value is None else value for value in arguments]
        if worker_path.suffix.lower() == ".py":
            return [self.python_executable, str(worker_path), *positional]
        return [str(worker_path), *positional]


class SubprocessJobHandle:
    """Handle to a worker running as a child process."""

    def __init__(
        self,
        *,
        name: str,
        process: subprocess.Popen[str],
        output_dir: Path,
        stderr_path: Path,
    ) -> None:
        self._name = name
        self._process = process
        self._output_dir = output_dir
        self._stderr_path = stderr_path

    @property
    def name(self) -> str:
        return self._name

    @property
    def pid(self) -> int:
        return self._process.pid

    def state(self) -> JobState:
        return _state_for(self._process.poll())

    def drain_error(self) -> ErrorInfo | None:
        returncode = self._process.poll()
        if returncode is None or returncode == 0:
            return None
        stderr = _read_tail(self._stderr_path)
        classified = classify_worker_failure(exit_code=returncode, stderr=stderr)
        message = stderr.strip() or f"Worker exited with code {returncode}"
        return ErrorInfo(message=message, classification_tag=classified.classification_tag)

    def wait(self, timeout: float | None = None) -> JobState:
        try:
            returncode = self._process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return JobState.RUNNING
        return _state_for(returncode)

    def release(self) -> None:
        # a running job keeps writing to its output files
        if self._process.poll() is None:
            return
        shutil.rmtree(self._output_dir, ignore_errors=True)


class BlockedJobHandle:
    """Job that never started because mandatory parameters were not supplied."""

    def __init__(self, *, name: str, missing: tuple[str, ...]) -> None:
        self._name = name
        self.missing = missing

    @property
    def name(self) -> str:
        return self._name

    def state(self) -> JobState:
        return JobState.BLOCKED

    def drain_error(self) -> ErrorInfo | None:
        return None

    def wait(self, timeout: float | None = None) -> JobState:  # noqa: ARG002
        return JobState.BLOCKED

    def release(self) -> None:
        return None


class FailedJobHandle:
    """Job whose arguments could not be bound to the worker parameters."""

    def __init__(self, *, name: str, error: ErrorInfo) -> None:
        self._name = name
        self._error = error

    @property
    def name(self) -> str:
        return self._name

    def state(self) -> JobState:
        return JobState.FAILED

    def drain_error(self) -> ErrorInfo | None:
        return self._error

    def wait(self, timeout: float | None = None) -> JobState:  # noqa: ARG002
        return JobState.FAILED

    def release(self) -> None:
        return None


def coerce_value(value: str, declared_type: str) -> object:
    """Convert one argument to its declared type; raise ValueError when it does not fit."""

    if declared_type == "int":
        return int(value.strip())
    if declared_type == "float":
        return float(value.strip())
    if declared_type == "bool":
        normalized = value.strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
        raise ValueError(f"invalid boolean value: {value!r}")
    return value


def _missing_mandatory(schema: ParameterSchema, arguments: Sequence[str | None]) -> list[str]:
    missing: list[str] = []
    for name, value in zip(schema.names, arguments, strict=False):
        if name in schema.mandatory and (value is None or not value.strip()):
            missing.append(name)
    return missing


def _check_types(schema: ParameterSchema, arguments: Sequence[str | None]) -> str | None:
    for name, value in zip(schema.names, arguments, strict=False):
        if value is None or not value.strip():
            continue
        declared_type = schema.type_of(name)
        try:
            coerce_value(value, declared_type)
        except ValueError:
            return (
                f"Cannot bind parameter '{name}': cannot convert value {value!r} "
                f"to type '{declared_type}'"
            )
    return None


def _state_for(returncode: int | None) -> JobState:
    if returncode is None:
        return JobState.RUNNING
    if returncode == 0:
        return JobState.SUCCEEDED
    return JobState.FAILED


def _read_tail(path: Path) -> str:
    try:
        text = path.read_text("utf-8", errors="replace")
    except FileNotFoundError:
        return ""
    return text[-_MAX_ERROR_CHARS:]


def _last_modified(folder: Path) -> float:
    # a running job keeps touching its log files, not the folder itself
    return max(
        [folder.stat().st_mtime, *(child.stat().st_mtime for child in folder.iterdir())],
    )


def _output_dir_name(name: str) -> str:
    stamp = datetime.now(tz=UTC).strftime("%Y%m%dT%H%M%S%fZ")
    slug = re.sub(r"[^A-Za-z0-9._-]+", "-", name).strip("-") or "job"
    return f"{stamp}-{slug}"
