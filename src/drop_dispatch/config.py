"""Runtime configuration for the drop-folder dispatcher."""

from __future__ import annotations

import math
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_SETTLE_SECONDS = 5.0
DEFAULT_INPUT_EXTENSION = ".json"
DEFAULT_OUTPUT_RETENTION_HOURS = 24.0


@dataclass(slots=True)
class DispatchSettings:
    """Dispatch pass and supervision settings."""

    settle_seconds: float = DEFAULT_SETTLE_SECONDS
    input_extension: str = DEFAULT_INPUT_EXTENSION
    archive: bool = True
    wait_for_jobs: bool = False
    job_output_root: Path = field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "drop-dispatch",
    )
    python_executable: str | None = None
    output_retention_hours: float = DEFAULT_OUTPUT_RETENTION_HOURS


@dataclass(slots=True)
class NotificationSettings:
    """Mail settings for administrator and failure notifications."""

    smtp_host: str = ""
    smtp_port: int = 25
    smtp_user: str | None = None
    smtp_password: str | None = None
    use_tls: bool = False
    from_address: str = "drop-dispatch@localhost"
    admin_recipient: str = ""
    failure_recipient: str = ""

    @property
    def effective_failure_recipient(self) -> str:
        return self.failure_recipient or self.admin_recipient


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    mapping_file: Path | None = None
    log_folder: Path | None = None
    dispatch: DispatchSettings = field(default_factory=DispatchSettings)
    notification: NotificationSettings = field(default_factory=NotificationSettings)

    @classmethod
    def from_env(cls, mapping_file: Path | None = None) -> Settings:
        """Load settings from environment with defaults for local use."""

        env_mapping = os.getenv("DROP_DISPATCH_MAPPING_FILE", "").strip()
        env_log_folder = os.getenv("DROP_DISPATCH_LOG_FOLDER", "").strip()
        env_output_root = os.getenv("DROP_DISPATCH_JOB_OUTPUT_ROOT", "").strip()
        return cls(
            mapping_file=mapping_file or (Path(env_mapping) if env_mapping else None),
            log_folder=Path(env_log_folder) if env_log_folder else None,
            dispatch=DispatchSettings(
                settle_seconds=float(
                    os.getenv("DROP_DISPATCH_SETTLE_SECONDS", str(DEFAULT_SETTLE_SECONDS)),
                ),
                input_extension=_normalize_extension(
                    os.getenv("DROP_DISPATCH_INPUT_EXTENSION", DEFAULT_INPUT_EXTENSION),
                ),
                archive=_env_bool("DROP_DISPATCH_ARCHIVE", default=True),
                wait_for_jobs=_env_bool("DROP_DISPATCH_WAIT_FOR_JOBS", default=False),
                job_output_root=(
                    Path(env_output_root)
                    if env_output_root
                    else Path(tempfile.gettempdir()) / "drop-dispatch"
                ),
                python_executable=os.getenv("DROP_DISPATCH_PYTHON") or None,
                output_retention_hours=float(
                    os.getenv(
                        "DROP_DISPATCH_OUTPUT_RETENTION_HOURS",
                        str(DEFAULT_OUTPUT_RETENTION_HOURS),
                    ),
                ),
            ),
            notification=NotificationSettings(
                smtp_host=os.getenv("DROP_DISPATCH_SMTP_HOST", "").strip(),
                smtp_port=int(os.getenv("DROP_DISPATCH_SMTP_PORT", "25")),
                smtp_user=os.getenv("DROP_DISPATCH_SMTP_USER") or None,
                smtp_password=os.getenv("DROP_DISPATCH_SMTP_PASSWORD") or None,
                use_tls=_env_bool("DROP_DISPATCH_SMTP_TLS", default=False),
                from_address=os.getenv("DROP_DISPATCH_MAIL_FROM", "drop-dispatch@localhost"),
                admin_recipient=os.getenv("DROP_DISPATCH_ADMIN_EMAIL", "").strip(),
                failure_recipient=os.getenv("DROP_DISPATCH_FAILURE_EMAIL", "").strip(),
            ),
        )

    def require_mapping_file(self) -> Path:
        """Return the worker mapping file or raise ValueError when none is configured."""

        if self.mapping_file is None:
            raise ValueError(
                "A worker mapping file is required. "
                "Set DROP_DISPATCH_MAPPING_FILE or pass --mapping-file.",
            )
        return self.mapping_file

    def validate(self) -> None:
        """Raise configuration error if settings are unusable."""

        self.require_mapping_file()
        if not math.isfinite(self.dispatch.settle_seconds) or self.dispatch.settle_seconds < 0:
            raise ValueError("DROP_DISPATCH_SETTLE_SECONDS must be a finite number >= 0.")
        retention = self.dispatch.output_retention_hours
        if not math.isfinite(retention) or retention <= 0:
            raise ValueError("DROP_DISPATCH_OUTPUT_RETENTION_HOURS must be a finite number > 0.")
        extension = self.dispatch.input_extension
        if not extension.startswith(".") or len(extension) < 2:  # noqa: PLR2004
            raise ValueError(f"Invalid input extension: {extension!r}. Expected e.g. '.json'.")
        if self.notification.smtp_port <= 0:
            raise ValueError("DROP_DISPATCH_SMTP_PORT must be a positive integer.")
        if self.notification.smtp_host and not self.notification.admin_recipient:
            raise ValueError(
                "DROP_DISPATCH_ADMIN_EMAIL is required when DROP_DISPATCH_SMTP_HOST is set.",
            )


def _normalize_extension(value: str) -> str:
    normalized = value.strip().lower()
    if normalized and not normalized.startswith("."):
        normalized = f".{normalized}"
    return normalized


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
