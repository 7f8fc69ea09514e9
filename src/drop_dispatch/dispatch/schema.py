"""Worker parameter schemas read from sidecar files.

A worker `get_printers.py` declares its parameters in `get_printers.params.json`:

    {
      "parameters": [
        {"name": "PrinterName", "mandatory": true},
        {"name": "ScriptName"},
        {"name": "Copies", "type": "int", "default": "1"}
      ]
    }

Declaration order is positional order at launch.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from drop_dispatch.dispatch.contracts import load_json
from drop_dispatch.dispatch.errors import SchemaUnavailableError
from drop_dispatch.dispatch.models import ParameterSchema

logger = logging.getLogger(__name__)

SCHEMA_SUFFIX = ".params.json"
SUPPORTED_TYPES = ("string", "int", "float", "bool")


class SchemaProvider(Protocol):
    """Protocol implemented by parameter schema sources."""

    def get_schema(self, worker_path: Path) -> ParameterSchema:
        """Return the declared parameters of `worker_path`."""


def schema_path_for(worker_path: Path) -> Path:
    return worker_path.with_name(f"{worker_path.stem}{SCHEMA_SUFFIX}")


class SidecarSchemaProvider:
    """Read `<worker stem>.params.json` next to the worker, once per worker."""

    def __init__(self) -> None:
        self._cache: dict[Path, ParameterSchema] = {}

    def get_schema(self, worker_path: Path) -> ParameterSchema:
        key = worker_path.resolve()
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        schema = read_schema_file(schema_path_for(worker_path), worker_path=worker_path)
        logger.debug("Loaded parameter schema for %s: %s", worker_path, ", ".join(schema.names))
        self._cache[key] = schema
        return schema


def read_schema_file(path: Path, *, worker_path: Path) -> ParameterSchema:
    """Deserialize and validate a parameter schema document."""

    try:
        raw = load_json(path)
    except FileNotFoundError as error:
        raise SchemaUnavailableError(
            f"No parameter schema for worker '{worker_path}' (expected {path.name})",
        ) from error
    except (json.JSONDecodeError, TypeError) as error:
        raise SchemaUnavailableError(
            f"Parameter schema {path} of worker '{worker_path}' is not a JSON object: {error}",
        ) from error

    raw_parameters = raw.get("parameters")
    if not isinstance(raw_parameters, list):
        raise SchemaUnavailableError(f"Parameter schema {path}: 'parameters' must be an array")

    names: list[str] = []
    mandatory: set[str] = set()
    defaults: dict[str, str] = {}
    types: dict[str, str] = {}
    for index, item in enumerate(raw_parameters):
        if not isinstance(item, dict):
            raise SchemaUnavailableError(
                f"Parameter schema {path}: parameters[{index}] must be an object",
            )
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            raise SchemaUnavailableError(
                f"Parameter schema {path}: parameters[{index}].name must be a non-empty string",
            )
        if name in names:
            raise SchemaUnavailableError(f"Parameter schema {path}: duplicate parameter '{name}'")
        names.append(name)
        if item.get("mandatory", False) is True:
            mandatory.add(name)
        default = item.get("default")
        if default is not None:
            defaults[name] = default if isinstance(default, str) else json.dumps(default)
        declared_type = item.get("type", "string")
        if declared_type not in SUPPORTED_TYPES:
            raise SchemaUnavailableError(
                f"Parameter schema {path}: parameter '{name}' has unsupported type "
                f"{declared_type!r} (expected one of {', '.join(SUPPORTED_TYPES)})",
            )
        if declared_type != "string":
            types[name] = declared_type

    return ParameterSchema(
        names=tuple(names),
        mandatory=frozenset(mandatory),
        declared_defaults=defaults,
        types=types,
    )
