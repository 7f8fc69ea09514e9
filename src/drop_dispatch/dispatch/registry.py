"""Folder-to-worker registry with prefix-based folder hierarchy resolution."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Sequence
from pathlib import Path

from drop_dispatch.dispatch.contracts import MappingEntry
from drop_dispatch.dispatch.errors import (
    AmbiguousMatchError,
    ConfigError,
    NoMatchError,
    SchemaUnavailableError,
)
from drop_dispatch.dispatch.models import SCRIPT_NAME_PARAMETER, WorkerConfig
from drop_dispatch.dispatch.schema import SchemaProvider

logger = logging.getLogger(__name__)


class ScriptRegistry:
    """Validated, read-only set of worker configurations keyed by folder.

    A drop folder maps to the configuration whose folder key equals it or
    strictly contains it, so nested sub-folders ("Weekly", "Urgent") share the
    worker and defaults of their top-level folder.
    """

    def __init__(self, configs: Sequence[WorkerConfig]) -> None:
        self._configs = tuple(configs)
        self._keys = tuple(normalize_folder(config.folder_key) for config in self._configs)

    @property
    def configs(self) -> tuple[WorkerConfig, ...]:
        return self._configs

    @classmethod
    def validate(
        cls,
        mappings: Iterable[MappingEntry],
        schema_provider: SchemaProvider,
    ) -> ScriptRegistry:
        """Build a registry, failing on the first invalid mapping."""

        configs: list[WorkerConfig] = []
        seen: dict[Path, Path] = {}
        for entry in mappings:
            config = _validate_entry(entry, schema_provider)
            key = normalize_folder(config.folder_key)
            if key in seen:
                raise ConfigError(
                    f"Folder '{config.folder_key}' is mapped more than once "
                    f"(also as '{seen[key]}')",
                )
            seen[key] = config.folder_key
            configs.append(config)
        if not configs:
            raise ConfigError("No worker mappings configured.")
        logger.info("Validated %d worker mapping(s)", len(configs))
        return cls(configs)

    def resolve(self, drop_folder: Path) -> WorkerConfig:
        """Return the one configuration whose folder key equals or contains `drop_folder`."""

        target = normalize_folder(drop_folder)
        for key, config in zip(self._keys, self._configs, strict=True):
            if key == target:
                return config

        matches = [
            (key, config)
            for key, config in zip(self._keys, self._configs, strict=True)
            if target.is_relative_to(key)
        ]
        if not matches:
            raise NoMatchError(
                f"No worker is mapped to drop folder '{drop_folder}' or any of its parents",
                folder=drop_folder,
            )
        if len(matches) > 1:
            # deepest first for a readable message
            matches.sort(key=lambda match: len(match[0].parts), reverse=True)
            candidates = tuple(config.folder_key for _, config in matches)
            raise AmbiguousMatchError(
                f"Drop folder '{drop_folder}' is contained in more than one mapped folder: "
                + ", ".join(f"'{candidate}'" for candidate in candidates),
                folder=drop_folder,
                candidates=candidates,
            )
        return matches[0][1]

    def resolve_all(self, drop_folders: Iterable[Path]) -> dict[Path, WorkerConfig]:
        """Resolve every drop folder up front so a bad folder aborts before dispatch."""

        return {folder: self.resolve(folder) for folder in drop_folders}


def _validate_entry(entry: MappingEntry, schema_provider: SchemaProvider) -> WorkerConfig:
    if entry.folder is None:
        raise ConfigError("Worker mapping without a folder.")
    folder = entry.folder
    if not folder.is_dir():
        raise ConfigError(f"Folder '{folder}' does not exist.")
    if entry.worker is None:
        raise ConfigError(f"Folder '{folder}': no worker configured.")
    if entry.default_parameters is None:
        raise ConfigError(f"Folder '{folder}': no default parameters configured.")
    if not entry.worker.is_file():
        raise ConfigError(f"Folder '{folder}': worker '{entry.worker}' does not exist.")

    try:
        schema = schema_provider.get_schema(entry.worker)
    except SchemaUnavailableError as error:
        raise ConfigError(f"Folder '{folder}': {error}") from error

    declared = set(schema.names)
    for key in entry.default_parameters:
        if key not in declared:
            raise ConfigError(
                f"Folder '{folder}': default parameter '{key}' is not accepted by "
                f"worker '{entry.worker}'. Valid parameters: {', '.join(schema.names)}",
            )
    if SCRIPT_NAME_PARAMETER not in declared:
        raise ConfigError(
            f"Folder '{folder}': worker '{entry.worker}' does not declare the "
            f"'{SCRIPT_NAME_PARAMETER}' parameter.",
        )
    script_name = entry.default_parameters.get(SCRIPT_NAME_PARAMETER, "")
    if not script_name.strip():
        raise ConfigError(
            f"Folder '{folder}': default parameter '{SCRIPT_NAME_PARAMETER}' is missing or empty.",
        )

    return WorkerConfig(
        folder_key=folder,
        worker_path=entry.worker,
        default_parameters=dict(entry.default_parameters),
        schema=schema,
    )


def normalize_folder(path: Path) -> Path:
    """Comparison key of a folder: absolute and case-normalized."""

    return Path(os.path.normcase(os.path.abspath(path)))
