"""Two-mode failure reporting: error artifacts in archive mode, notifications otherwise."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from drop_dispatch.dispatch.contracts import build_error_payload
from drop_dispatch.dispatch.errors import DispatchError, NotificationError
from drop_dispatch.dispatch.models import (
    JobOutcome,
    JobRecord,
    ParameterSchema,
    ResolvedInvocation,
)
from drop_dispatch.dispatch.sinks import AuditKind, AuditTrail, FileArchiver, Notifier, Priority

logger = logging.getLogger(__name__)


class FailureReporter:
    """Apply the archive-mode policy to consumed, rejected, and failed input files.

    Archive mode on: every consumed input file is moved to the archive and each
    failure gets a sibling `_ERROR.json` artifact.  Archive mode off: a
    rejected input file stays where it is, and every failure is notified
    immediately with the input file attached.  A failure whose input file
    could not be archived is notified as in archive mode off.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        archiver: FileArchiver,
        notifier: Notifier,
        audit: AuditTrail,
        archive: bool,
        failure_recipient: str,
        admin_recipient: str,
    ) -> None:
        self.archiver = archiver
        self.notifier = notifier
        self.audit = audit
        self.archive = archive
        self.failure_recipient = failure_recipient
        self.admin_recipient = admin_recipient

    def consume(self, input_file: Path) -> Path | None:
        """Take a launched input file out of the drop folder in archive mode."""

        if not self.archive:
            return None
        return self.archiver.archive(input_file)

    def report_rejected(  # noqa: PLR0913
        self,
        *,
        input_file: Path,
        worker_path: Path,
        outcome: JobOutcome,
        schema: ParameterSchema | None,
        user_input: dict[str, str] | None,
    ) -> None:
        payload = build_error_payload(
            input_file=input_file,
            worker_path=worker_path,
            outcome=outcome,
            schema=schema,
            user_input=user_input,
        )
        self.audit.record(AuditKind.ERROR, f"Input file '{input_file}' rejected: {outcome.message}")
        if self.archive:
            try:
                archive_path = self.archiver.archive(input_file)
                self.archiver.write_error_artifact(archive_path, payload)
            except OSError as error:
                logger.error("Could not archive rejected '%s': %s", input_file, error)
            else:
                return
        self._notify(
            subject=f"Input file rejected - {input_file.name}",
            payload=payload,
            attachments=(input_file,) if input_file.exists() else (),
        )

    def report_failure(self, record: JobRecord, outcome: JobOutcome) -> None:
        payload = build_error_payload(
            input_file=record.input_file,
            worker_path=record.invocation.worker_path,
            outcome=outcome,
            invocation=record.invocation,
            schema=record.schema,
        )
        self.audit.record(
            AuditKind.ERROR,
            f"Job '{record.invocation.job_name}' for '{record.input_file}' "
            f"{outcome.kind.value}: {outcome.message}",
        )
        if record.archive_path is not None:
            try:
                self.archiver.write_error_artifact(record.archive_path, payload)
            except OSError as error:
                logger.error(
                    "Could not write error artifact for '%s': %s",
                    record.input_file,
                    error,
                )
            else:
                return
        self._notify(
            subject=f"Job failed - {record.invocation.job_name}",
            payload=payload,
            attachments=(record.input_file,) if record.input_file.exists() else (),
        )
        if record.archive_path is None:
            self._remove(record.input_file)

    def report_accepted(self, record: JobRecord) -> None:
        self.audit.record(
            AuditKind.INFORMATION,
            f"Job '{record.invocation.job_name}' started for '{record.input_file}'",
        )
        # a launched file left in the drop folder would be dispatched again
        if record.archive_path is None:
            self._remove(record.input_file)

    def report_fatal(self, error: DispatchError) -> None:
        """Tell the administrator that the run was aborted."""

        self.audit.record(AuditKind.ERROR, f"Dispatch aborted: {error}")
        try:
            self.notifier.notify(
                self.admin_recipient,
                "FAILURE - drop folder dispatch aborted",
                Priority.HIGH,
                f"The dispatch run was aborted before any input file was processed.\n\n{error}\n",
            )
        except NotificationError as notify_error:
            logger.error("%s", notify_error)

    def _notify(
        self,
        *,
        subject: str,
        payload: dict[str, Any],
        attachments: tuple[Path, ...],
    ) -> None:
        try:
            self.notifier.notify(
                self.failure_recipient,
                subject,
                Priority.HIGH,
                render_failure_body(payload),
                attachments,
            )
        except NotificationError as error:
            logger.error("%s", error)

    def _remove(self, input_file: Path) -> None:
        try:
            self.archiver.remove(input_file)
        except OSError as error:
            logger.error("Could not remove '%s': %s", input_file, error)


def render_failure_body(payload: dict[str, Any]) -> str:
    """Plain-text description of one failure."""

    lines = [
        f"Input file: {payload['input_file']}",
        f"Worker: {payload['worker'] or '-'}",
        f"Job name: {payload['job_name'] or '-'}",
        f"Outcome: {payload['outcome']}",
        f"Error: {payload['error'] or '-'}",
    ]
    if payload["arguments"]:
        lines.append("Arguments:")
        lines.extend(
            f"  {argument['name']} = {_display(argument['value'])}"
            for argument in payload["arguments"]
        )
    if payload["user_input"]:
        lines.append("Input values:")
        lines.extend(f"  {key} = {value}" for key, value in payload["user_input"].items())
    if payload["schema"]:
        lines.append("Worker parameters:")
        for parameter in payload["schema"]:
            flags = ["mandatory"] if parameter["mandatory"] else []
            if parameter["default"] is not None:
                flags.append(f"default {parameter['default']!r}")
            if parameter["type"] != "string":
                flags.append(str(parameter["type"]))
            suffix = f" ({', '.join(flags)})" if flags else ""
            lines.append(f"  {parameter['name']}{suffix}")
    return "\n".join(lines) + "\n"


def describe_invocation(invocation: ResolvedInvocation) -> str:
    """One-line argument listing for launch logs."""

    return ", ".join(
        f"{argument['name']}={argument['value']!r}" for argument in invocation.named_arguments()
    )


def _display(value: str | None) -> str:
    return "<none>" if value is None else value
