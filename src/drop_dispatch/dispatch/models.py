"""Domain models for folder resolution, parameter merge, and job supervision."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from drop_dispatch.dispatch.backend.base import JobHandle

SCRIPT_NAME_PARAMETER = "ScriptName"
BLOCKED_MESSAGE = "have you provided all mandatory parameters?"


class JobState(str, Enum):
    """Polled state of a launched job."""

    PENDING = "pending"
    BLOCKED = "blocked"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class OutcomeKind(str, Enum):
    """Classified result of one input file."""

    ACCEPTED = "accepted"
    BLOCKED = "blocked"
    PARAMETER_BINDING_ERROR = "parameter_binding_error"
    RUNTIME_ERROR = "runtime_error"
    INPUT_REJECTED = "input_rejected"


@dataclass(frozen=True, slots=True)
class ParameterSchema:
    """Declared parameters of one worker, in positional order."""

    names: tuple[str, ...]
    mandatory: frozenset[str] = frozenset()
    declared_defaults: dict[str, str] = field(default_factory=dict)
    types: dict[str, str] = field(default_factory=dict)

    def type_of(self, name: str) -> str:
        return self.types.get(name, "string")

    def summary(self) -> list[dict[str, object]]:
        """Describe every parameter for error artifacts."""

        return [
            {
                "name": name,
                "mandatory": name in self.mandatory,
                "default": self.declared_defaults.get(name),
                "type": self.type_of(name),
            }
            for name in self.names
        ]


@dataclass(frozen=True, slots=True)
class WorkerConfig:
    """Validated mapping of one drop folder tree to a worker."""

    folder_key: Path
    worker_path: Path
    default_parameters: dict[str, str]
    schema: ParameterSchema

    @property
    def script_name(self) -> str:
        return self.default_parameters[SCRIPT_NAME_PARAMETER]


@dataclass(frozen=True, slots=True)
class ResolvedInvocation:
    """Worker call ready to launch: `arguments[i]` binds `parameter_names[i]`."""

    worker_path: Path
    job_name: str
    arguments: tuple[str | None, ...]
    parameter_names: tuple[str, ...] = ()

    def named_arguments(self) -> list[dict[str, str | None]]:
        return [
            {"name": name, "value": value}
            for name, value in zip(self.parameter_names, self.arguments, strict=False)
        ]


@dataclass(slots=True)
class ErrorInfo:
    """Error drained from a failed job."""

    message: str
    classification_tag: str


@dataclass(frozen=True, slots=True)
class JobOutcome:
    """Classification of one input file after launch or rejection."""

    kind: OutcomeKind
    message: str | None = None

    @property
    def is_failure(self) -> bool:
        return self.kind != OutcomeKind.ACCEPTED

    @classmethod
    def accepted(cls) -> JobOutcome:
        return cls(kind=OutcomeKind.ACCEPTED)

    @classmethod
    def blocked(cls, reason: str = BLOCKED_MESSAGE) -> JobOutcome:
        return cls(kind=OutcomeKind.BLOCKED, message=reason)

    @classmethod
    def parameter_binding_error(cls, message: str) -> JobOutcome:
        return cls(kind=OutcomeKind.PARAMETER_BINDING_ERROR, message=message)

    @classmethod
    def runtime_error(cls, message: str) -> JobOutcome:
        return cls(kind=OutcomeKind.RUNTIME_ERROR, message=message)

    @classmethod
    def input_rejected(cls, message: str) -> JobOutcome:
        return cls(kind=OutcomeKind.INPUT_REJECTED, message=message)


@dataclass(slots=True)
class JobRecord:
    """One launched (or launch-failed) input file owned by the supervisor."""

    invocation: ResolvedInvocation
    input_file: Path
    schema: ParameterSchema
    handle: JobHandle | None = None
    outcome: JobOutcome | None = None
    archive_path: Path | None = None


@dataclass(slots=True)
class DispatchSummary:
    """Aggregate counters of one dispatch pass for CLI reporting."""

    input_files: int = 0
    launched: int = 0
    accepted: int = 0
    blocked: int = 0
    binding_errors: int = 0
    runtime_errors: int = 0
    rejected: int = 0

    @property
    def failed(self) -> int:
        return self.blocked + self.binding_errors + self.runtime_errors + self.rejected

    def count(self, outcome: JobOutcome) -> None:
        if outcome.kind == OutcomeKind.ACCEPTED:
            self.accepted += 1
        elif outcome.kind == OutcomeKind.BLOCKED:
            self.blocked += 1
        elif outcome.kind == OutcomeKind.PARAMETER_BINDING_ERROR:
            self.binding_errors += 1
        elif outcome.kind == OutcomeKind.RUNTIME_ERROR:
            self.runtime_errors += 1
        else:
            self.rejected += 1
