"""Controllers for dispatch CLI commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from drop_dispatch.config import Settings
from drop_dispatch.dispatch.backend import SubprocessLauncher
from drop_dispatch.dispatch.contracts import read_mapping_file
from drop_dispatch.dispatch.dispatcher import Dispatcher, DispatchPass
from drop_dispatch.dispatch.errors import ConfigError, ResolutionError, SchemaUnavailableError
from drop_dispatch.dispatch.registry import ScriptRegistry
from drop_dispatch.dispatch.reporting import FailureReporter
from drop_dispatch.dispatch.schema import SidecarSchemaProvider
from drop_dispatch.dispatch.sinks import AuditTrail, FileArchiver, Notifier, build_notifier
from drop_dispatch.dispatch.supervisor import Supervisor

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DispatchRunCommand:
    """CLI input for one dispatch pass."""

    drop_folders: tuple[Path, ...]
    mapping_file: Path | None
    archive: bool | None = None
    settle_seconds: float | None = None
    wait_for_jobs: bool | None = None


@dataclass(slots=True)
class ValidateMappingCommand:
    """CLI input for configuration validation."""

    mapping_file: Path | None
    drop_folders: tuple[Path, ...] = ()


@dataclass(slots=True)
class ShowSchemaCommand:
    """CLI input for worker schema inspection."""

    worker: Path


@dataclass(slots=True)
class DispatchRunResult:
    """Dispatch report to render in CLI."""

    lines: list[str]
    success: bool


class DispatchCliController:
    """Coordinates configuration, dispatch, and inspection CLI operations."""

    def __init__(self, notifier: Notifier | None = None) -> None:
        self._notifier = notifier

    def run(self, command: DispatchRunCommand) -> DispatchRunResult:
        try:
            settings = _settings(command.mapping_file)
            if command.archive is not None:
                settings.dispatch.archive = command.archive
            if command.settle_seconds is not None:
                settings.dispatch.settle_seconds = command.settle_seconds
            if command.wait_for_jobs is not None:
                settings.dispatch.wait_for_jobs = command.wait_for_jobs
            settings.validate()
            mapping_file = settings.require_mapping_file()
        except ValueError as error:
            return DispatchRunResult(lines=[f"Invalid settings: {error}"], success=False)

        schema_provider = SidecarSchemaProvider()
        reporter = FailureReporter(
            archiver=FileArchiver(),
            notifier=(
                self._notifier
                if self._notifier is not None
                else build_notifier(settings.notification)
            ),
            audit=AuditTrail(),
            archive=settings.dispatch.archive,
            failure_recipient=settings.notification.effective_failure_recipient,
            admin_recipient=settings.notification.admin_recipient,
        )

        try:
            registry = ScriptRegistry.validate(
                read_mapping_file(mapping_file),
                schema_provider,
            )
            dispatch_pass = DispatchPass(
                registry=registry,
                dispatcher=Dispatcher(
                    SubprocessLauncher(
                        schema_provider=schema_provider,
                        output_root=settings.dispatch.job_output_root,
                        python_executable=settings.dispatch.python_executable,
                        output_retention_seconds=settings.dispatch.output_retention_hours * 3600,
                    ),
                ),
                supervisor=Supervisor(
                    reporter=reporter,
                    settle_seconds=settings.dispatch.settle_seconds,
                    wait_for_jobs=settings.dispatch.wait_for_jobs,
                ),
                reporter=reporter,
                input_extension=settings.dispatch.input_extension,
            )
            summary = dispatch_pass.run(command.drop_folders)
        except (ConfigError, ResolutionError) as error:
            logger.error("Dispatch aborted: %s", error)
            reporter.report_fatal(error)
            return DispatchRunResult(lines=[f"Dispatch aborted: {error}"], success=False)

        return DispatchRunResult(
            lines=[
                "Dispatch summary: "
                f"files={summary.input_files} launched={summary.launched} "
                f"accepted={summary.accepted} blocked={summary.blocked} "
                f"binding_errors={summary.binding_errors} "
                f"runtime_errors={summary.runtime_errors} rejected={summary.rejected} "
                f"archive={'on' if settings.dispatch.archive else 'off'}",
            ],
            success=True,
        )

    def validate(self, command: ValidateMappingCommand) -> DispatchRunResult:
        try:
            settings = _settings(command.mapping_file)
            settings.validate()
            mapping_file = settings.require_mapping_file()
        except ValueError as error:
            return DispatchRunResult(lines=[f"Invalid settings: {error}"], success=False)
        try:
            registry = ScriptRegistry.validate(
                read_mapping_file(mapping_file),
                SidecarSchemaProvider(),
            )
            resolved = registry.resolve_all(command.drop_folders)
        except (ConfigError, ResolutionError) as error:
            return DispatchRunResult(lines=[f"Invalid configuration: {error}"], success=False)

        lines = [f"Worker mappings: {len(registry.configs)}"]
        for config in registry.configs:
            lines.append(
                f"  {config.folder_key} -> {config.worker_path} "
                f"ScriptName={config.script_name!r} parameters={','.join(config.schema.names)}",
            )
        for folder, config in resolved.items():
            lines.append(f"  drop folder {folder} -> {config.script_name!r}")
        return DispatchRunResult(lines=lines, success=True)

    def show_schema(self, command: ShowSchemaCommand) -> DispatchRunResult:
        try:
            schema = SidecarSchemaProvider().get_schema(command.worker)
        except SchemaUnavailableError as error:
            return DispatchRunResult(lines=[str(error)], success=False)

        lines = [f"Worker: {command.worker}", f"Parameters: {len(schema.names)}"]
        for position, parameter in enumerate(schema.summary()):
            default = parameter["default"]
            lines.append(
                f"  {position}: {parameter['name']} type={parameter['type']} "
                f"mandatory={'yes' if parameter['mandatory'] else 'no'} "
                f"default={default if default is not None else '-'}",
            )
        return DispatchRunResult(lines=lines, success=True)


def _settings(mapping_file: Path | None) -> Settings:
    return Settings.from_env(mapping_file=mapping_file)
