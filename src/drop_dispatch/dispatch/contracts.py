"""File-based contracts: worker mapping file, input files, and error artifacts."""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from drop_dispatch.dispatch.errors import ConfigError, InputRejectedError
from drop_dispatch.dispatch.models import JobOutcome, ParameterSchema, ResolvedInvocation

ERROR_ARTIFACT_SUFFIX = "_ERROR.json"


@dataclass(slots=True)
class MappingEntry:
    """Raw, unvalidated folder-to-worker mapping as read from configuration."""

    folder: Path | None
    worker: Path | None
    default_parameters: dict[str, str] | None


def write_json(path: Path, payload: dict[str, Any]) -> None:
    """Persist JSON payload using deterministic formatting."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True), "utf-8")


def load_json(path: Path) -> dict[str, Any]:
    """Load JSON document and validate top-level object type."""

    payload = json.loads(path.read_text("utf-8-sig"))
    if not isinstance(payload, dict):
        raise TypeError(f"Expected JSON object in {path}")
    return payload


def read_mapping_file(path: Path) -> list[MappingEntry]:
    """Read worker mappings; relative paths are taken from the file's directory."""

    try:
        raw = load_json(path)
    except FileNotFoundError as error:
        raise ConfigError(f"Worker mapping file not found: {path}") from error
    except (json.JSONDecodeError, TypeError) as error:
        raise ConfigError(f"Worker mapping file {path} is not a JSON object: {error}") from error

    raw_workers = raw.get("workers")
    if not isinstance(raw_workers, list):
        raise ConfigError(f"Worker mapping file {path}: 'workers' must be an array")

    base_dir = path.parent
    entries: list[MappingEntry] = []
    for index, item in enumerate(raw_workers):
        if not isinstance(item, dict):
            raise ConfigError(f"Worker mapping file {path}: workers[{index}] must be an object")
        defaults = item.get("default_parameters")
        if defaults is not None:
            if not isinstance(defaults, dict):
                raise ConfigError(
                    f"Worker mapping file {path}: workers[{index}].default_parameters "
                    "must be an object",
                )
            defaults = {str(key): _stringify(value) for key, value in defaults.items()}
        entries.append(
            MappingEntry(
                folder=_optional_path(item.get("folder"), base_dir),
                worker=_optional_path(item.get("worker"), base_dir),
                default_parameters=defaults,
            ),
        )
    return entries


def iter_input_files(folder: Path, extension: str = ".json") -> Iterator[Path]:
    """Yield input files of one drop folder in stable file-name order.

    Sub-folders and files with any other extension are left alone.
    """

    wanted = extension.lower()
    entries = sorted(folder.iterdir(), key=lambda entry: entry.name.lower())
    for entry in entries:
        if entry.is_file() and entry.suffix.lower() == wanted:
            yield entry


def read_user_input(path: Path) -> dict[str, str]:
    """Parse one input file into user-supplied parameter values."""

    try:
        raw = json.loads(path.read_text("utf-8-sig"))
    except json.JSONDecodeError as error:
        raise InputRejectedError(f"Input file '{path.name}' is not valid JSON: {error}") from error
    except UnicodeDecodeError as error:
        raise InputRejectedError(f"Input file '{path.name}' is not UTF-8 text: {error}") from error
    except OSError as error:
        raise InputRejectedError(f"Input file '{path.name}' cannot be read: {error}") from error
    if not isinstance(raw, dict):
        raise InputRejectedError(
            f"Input file '{path.name}' must contain a JSON object of parameter names and values",
        )

    values: dict[str, str] = {}
    for key, value in raw.items():
        if value is None:
            continue
        if isinstance(value, dict):
            raise InputRejectedError(
                f"Input file '{path.name}': value of parameter '{key}' must not be an object",
            )
        values[key] = _stringify(value)
    return values


def build_error_payload(  # noqa: PLR0913
    *,
    input_file: Path,
    worker_path: Path | None,
    outcome: JobOutcome,
    invocation: ResolvedInvocation | None = None,
    schema: ParameterSchema | None = None,
    user_input: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Describe one per-file failure with everything needed to diagnose it."""

    return {
        "input_file": str(input_file),
        "worker": str(worker_path) if worker_path is not None else None,
        "outcome": outcome.kind.value,
        "error": outcome.message,
        "job_name": invocation.job_name if invocation is not None else None,
        "arguments": invocation.named_arguments() if invocation is not None else [],
        "schema": schema.summary() if schema is not None else [],
        "user_input": user_input or {},
    }


def error_artifact_path(archive_path: Path) -> Path:
    return archive_path.with_name(f"{archive_path.stem}{ERROR_ARTIFACT_SUFFIX}")


def write_error_artifact(archive_path: Path, payload: dict[str, Any]) -> Path:
    """Write the error artifact next to the archived input file."""

    path = error_artifact_path(archive_path)
    write_json(path, payload)
    return path


def _optional_path(value: object, base_dir: Path) -> Path | None:
    if not isinstance(value, str) or not value.strip():
        return None
    path = Path(value.strip()).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def _stringify(value: object) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)
