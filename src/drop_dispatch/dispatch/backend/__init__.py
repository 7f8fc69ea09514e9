"""Launch mechanism implementations."""

from drop_dispatch.dispatch.backend.base import JobHandle, Launcher
from drop_dispatch.dispatch.backend.subprocess_backend import (
    BlockedJobHandle,
    FailedJobHandle,
    SubprocessJobHandle,
    SubprocessLauncher,
)

__all__ = [
    "BlockedJobHandle",
    "FailedJobHandle",
    "JobHandle",
    "Launcher",
    "SubprocessJobHandle",
    "SubprocessLauncher",
]
