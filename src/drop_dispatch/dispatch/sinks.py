"""Archival, notification, and audit sinks for dispatch outcomes."""

from __future__ import annotations

import logging
import shutil
import smtplib
from collections.abc import Sequence
from datetime import UTC, datetime
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

from drop_dispatch.config import NotificationSettings
from drop_dispatch.dispatch.contracts import write_error_artifact
from drop_dispatch.dispatch.errors import NotificationError

logger = logging.getLogger(__name__)

ARCHIVE_FOLDER_NAME = "Archive"
AUDIT_LOGGER_NAME = "drop_dispatch.audit"


class Priority(str, Enum):
    """Notification priority."""

    NORMAL = "normal"
    HIGH = "high"


class AuditKind(str, Enum):
    """Audit entry kinds."""

    INFORMATION = "information"
    WARNING = "warning"
    ERROR = "error"


class Notifier(Protocol):
    """Protocol implemented by notification channels."""

    def notify(
        self,
        recipient: str,
        subject: str,
        priority: Priority,
        body: str,
        attachments: Sequence[Path] = (),
    ) -> None:
        """Deliver one notification; raise NotificationError on failure."""


class FileArchiver:
    """Move consumed input files into the `Archive` folder of their drop folder."""

    def __init__(self, folder_name: str = ARCHIVE_FOLDER_NAME) -> None:
        self.folder_name = folder_name

    def archive(self, input_file: Path) -> Path:
        archive_dir = input_file.parent / self.folder_name
        archive_dir.mkdir(parents=True, exist_ok=True)
        target = archive_dir / input_file.name
        if target.exists():
            stamp = datetime.now(tz=UTC).strftime("%Y%m%d_%H%M%S_%f")
            target = archive_dir / f"{stamp}_{input_file.name}"
        shutil.move(str(input_file), target)
        logger.debug("Archived %s to %s", input_file, target)
        return target

    def remove(self, input_file: Path) -> None:
        input_file.unlink(missing_ok=True)

    def write_error_artifact(self, archive_path: Path, payload: dict[str, Any]) -> Path:
        return write_error_artifact(archive_path, payload)


class LogNotifier:
    """Write notifications to the log when no mail server is configured."""

    def notify(
        self,
        recipient: str,
        subject: str,
        priority: Priority,
        body: str,
        attachments: Sequence[Path] = (),
    ) -> None:
        log = logger.error if priority == Priority.HIGH else logger.warning
        log(
            "Notification for %s: %s\n%s%s",
            recipient or "<no recipient>",
            subject,
            body,
            "".join(f"\nAttachment: {path}" for path in attachments),
        )


class SmtpNotifier:
    """Send notifications by e-mail."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        smtp_host: str,
        from_address: str,
        smtp_port: int = 25,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        use_tls: bool = False,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_password = smtp_password
        self.from_address = from_address
        self.use_tls = use_tls
        self.timeout_seconds = timeout_seconds

    def build_message(
        self,
        recipient: str,
        subject: str,
        priority: Priority,
        body: str,
        attachments: Sequence[Path] = (),
    ) -> MIMEMultipart:
        message = MIMEMultipart()
        message["Subject"] = subject
        message["From"] = self.from_address
        message["To"] = recipient
        if priority == Priority.HIGH:
            message["X-Priority"] = "1"
            message["Importance"] = "high"
        message.attach(MIMEText(body, "plain", "utf-8"))
        for path in attachments:
            if not path.is_file():
                continue
            part = MIMEApplication(path.read_bytes(), Name=path.name)
            part["Content-Disposition"] = f'attachment; filename="{path.name}"'
            message.attach(part)
        return message

    def notify(
        self,
        recipient: str,
        subject: str,
        priority: Priority,
        body: str,
        attachments: Sequence[Path] = (),
    ) -> None:
        message = self.build_message(recipient, subject, priority, body, attachments)
        try:
            with smtplib.SMTP(
                self.smtp_host,
                self.smtp_port,
                timeout=self.timeout_seconds,
            ) as server:
                if self.use_tls:
                    server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.sendmail(self.from_address, [recipient], message.as_string())
        except (smtplib.SMTPException, OSError) as error:
            raise NotificationError(
                f"Failed to send notification {subject!r} to {recipient}: {error}",
            ) from error


class AuditTrail:
    """Audit entries written to a dedicated logger."""

    def __init__(self, audit_logger: logging.Logger | None = None) -> None:
        self._logger = audit_logger or logging.getLogger(AUDIT_LOGGER_NAME)

    def record(self, entry_kind: AuditKind, message: str) -> None:
        if entry_kind == AuditKind.ERROR:
            self._logger.error(message)
        elif entry_kind == AuditKind.WARNING:
            self._logger.warning(message)
        else:
            self._logger.info(message)


def build_notifier(settings: NotificationSettings) -> SmtpNotifier | LogNotifier:
    """Mail notifier when an SMTP host is configured, log notifier otherwise."""

    if not settings.smtp_host:
        return LogNotifier()
    return SmtpNotifier(
        smtp_host=settings.smtp_host,
        smtp_port=settings.smtp_port,
        from_address=settings.from_address,
        smtp_user=settings.smtp_user,
        smtp_password=settings.smtp_password,
        use_tls=settings.use_tls,
    )
