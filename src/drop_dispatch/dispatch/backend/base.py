"""Launch mechanism interface for dispatched jobs."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from drop_dispatch.dispatch.models import ErrorInfo, JobState


class JobHandle(Protocol):
    """Handle to one asynchronously started job."""

    @property
    def name(self) -> str:
        """Job name the handle was started with."""

    def state(self) -> JobState:
        """Current state without blocking."""

    def drain_error(self) -> ErrorInfo | None:
        """Error output of a failed job, or None if there is none."""

    def wait(self, timeout: float | None = None) -> JobState:
        """Block until the job leaves the running state or `timeout` elapses."""

    def release(self) -> None:
        """Reclaim resources held for the job."""


class Launcher(Protocol):
    """Protocol implemented by launch mechanisms."""

    def start(self, worker_path: Path, name: str, arguments: Sequence[str | None]) -> JobHandle:
        """Start the worker without waiting for it; raise LaunchError if it cannot start."""
