"""Error taxonomy for the dispatch engine.

`ConfigError` and `ResolutionError` are fatal for a run.  The remaining errors
are per-file: they are reported for the offending input file and the pass
continues with the next one.
"""

from __future__ import annotations

from pathlib import Path


class DispatchError(Exception):
    """Base class for dispatch errors."""


class ConfigError(DispatchError):
    """Invalid worker mapping; aborts the run before anything is dispatched."""


class ResolutionError(DispatchError):
    """A drop folder does not map to exactly one worker."""

    def __init__(self, message: str, *, folder: Path) -> None:
        super().__init__(message)
        self.folder = folder


class NoMatchError(ResolutionError):
    """No mapping contains the drop folder."""


class AmbiguousMatchError(ResolutionError):
    """More than one mapping contains the drop folder."""

    def __init__(self, message: str, *, folder: Path, candidates: tuple[Path, ...]) -> None:
        super().__init__(message, folder=folder)
        self.candidates = candidates


class SchemaUnavailableError(DispatchError):
    """The worker's parameter schema cannot be read."""


class InputRejectedError(DispatchError):
    """Input file is malformed or names parameters the worker does not declare."""


class LaunchError(DispatchError):
    """Worker process could not be started."""


class NotificationError(DispatchError):
    """A notification could not be delivered."""
