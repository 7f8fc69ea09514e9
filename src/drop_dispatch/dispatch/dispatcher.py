"""Dispatch pass: resolve, launch, and supervise the input files of all drop folders."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from drop_dispatch.dispatch.backend.base import Launcher
from drop_dispatch.dispatch.contracts import iter_input_files, read_user_input
from drop_dispatch.dispatch.errors import InputRejectedError, LaunchError
from drop_dispatch.dispatch.models import (
    DispatchSummary,
    JobOutcome,
    JobRecord,
    ParameterSchema,
    ResolvedInvocation,
    WorkerConfig,
)
from drop_dispatch.dispatch.registry import ScriptRegistry, normalize_folder
from drop_dispatch.dispatch.reporting import FailureReporter, describe_invocation
from drop_dispatch.dispatch.resolver import ParameterResolver
from drop_dispatch.dispatch.supervisor import Supervisor

logger = logging.getLogger(__name__)


class Dispatcher:
    """Start one job per resolved invocation without waiting for it."""

    def __init__(self, launcher: Launcher) -> None:
        self.launcher = launcher

    def launch(
        self,
        invocation: ResolvedInvocation,
        *,
        input_file: Path,
        schema: ParameterSchema,
    ) -> JobRecord:
        logger.info(
            "Launching %r for '%s': worker '%s' arguments [%s]",
            invocation.job_name,
            input_file,
            invocation.worker_path,
            describe_invocation(invocation),
        )
        record = JobRecord(invocation=invocation, input_file=input_file, schema=schema)
        try:
            record.handle = self.launcher.start(
                invocation.worker_path,
                invocation.job_name,
                list(invocation.arguments),
            )
        except LaunchError as error:
            logger.error("Launch of %r failed: %s", invocation.job_name, error)
            record.outcome = JobOutcome.runtime_error(str(error))
        return record


class DispatchPass:
    """Single entry point: one sequential pass over a set of drop folders.

    Every drop folder is resolved before the first file is read, so an
    unmapped or ambiguous folder aborts the pass with a `ResolutionError`
    without touching any input.  Per-file problems never abort the pass.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        registry: ScriptRegistry,
        dispatcher: Dispatcher,
        supervisor: Supervisor,
        reporter: FailureReporter,
        input_extension: str = ".json",
    ) -> None:
        self.registry = registry
        self.dispatcher = dispatcher
        self.supervisor = supervisor
        self.reporter = reporter
        self.input_extension = input_extension

    def run(self, drop_folders: Sequence[Path]) -> DispatchSummary:
        folders = _unique_folders(drop_folders)
        configs = self.registry.resolve_all(folders)
        resolver = ParameterResolver()
        summary = DispatchSummary()
        records: list[JobRecord] = []

        for folder in folders:
            config = configs[folder]
            for input_file in iter_input_files(folder, self.input_extension):
                summary.input_files += 1
                record = self._dispatch_file(input_file, config, resolver)
                if record is None:
                    summary.rejected += 1
                    continue
                records.append(record)
                if record.handle is not None:
                    summary.launched += 1

        for outcome in self.supervisor.supervise(records):
            summary.count(outcome)

        logger.info(
            "Dispatch pass finished: files=%d launched=%d accepted=%d failed=%d",
            summary.input_files,
            summary.launched,
            summary.accepted,
            summary.failed,
        )
        return summary

    def _dispatch_file(
        self,
        input_file: Path,
        config: WorkerConfig,
        resolver: ParameterResolver,
    ) -> JobRecord | None:
        user_input: dict[str, str] | None = None
        try:
            user_input = read_user_input(input_file)
            invocation = resolver.resolve(config, user_input)
        except InputRejectedError as error:
            logger.warning("Rejected '%s': %s", input_file, error)
            self.reporter.report_rejected(
                input_file=input_file,
                worker_path=config.worker_path,
                outcome=JobOutcome.input_rejected(str(error)),
                schema=config.schema,
                user_input=user_input,
            )
            return None

        record = self.dispatcher.launch(invocation, input_file=input_file, schema=config.schema)
        try:
            record.archive_path = self.reporter.consume(input_file)
        except OSError as error:
            logger.error("Could not archive '%s' after launch: %s", input_file, error)
        return record


def _unique_folders(drop_folders: Sequence[Path]) -> list[Path]:
    """Drop repeated folders, including aliases of one path, keeping first-seen order."""

    seen: set[Path] = set()
    folders: list[Path] = []
    for folder in drop_folders:
        key = normalize_folder(folder)
        if key in seen:
            logger.debug("Ignoring repeated drop folder '%s'", folder)
            continue
        seen.add(key)
        folders.append(folder)
    return folders
