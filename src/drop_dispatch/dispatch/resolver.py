"""Three-layer parameter merge into positional worker arguments."""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from pathlib import Path

from drop_dispatch.dispatch.errors import InputRejectedError
from drop_dispatch.dispatch.models import (
    SCRIPT_NAME_PARAMETER,
    ParameterSchema,
    ResolvedInvocation,
    WorkerConfig,
)


def resolve_arguments(
    *,
    worker_path: Path,
    schema: ParameterSchema,
    folder_defaults: Mapping[str, str],
    user_input: Mapping[str, str],
    job_name: str,
) -> ResolvedInvocation:
    """Merge declared defaults, folder defaults, and user values per schema position.

    Priority per parameter, lowest first: worker-declared default, folder
    default, user value.  A parameter without any value is passed as `None`
    so that argument `i` always binds `schema.names[i]`.  The `ScriptName`
    argument is always `job_name`; a user-supplied value is ignored.
    """

    declared = set(schema.names)
    unknown = sorted(key for key in user_input if key not in declared)
    if unknown:
        raise InputRejectedError(
            f"Worker '{worker_path}' does not accept parameter(s) "
            + ", ".join(f"'{key}'" for key in unknown)
            + f". Valid parameters: {', '.join(schema.names)}",
        )

    overrides = {key: value for key, value in user_input.items() if key != SCRIPT_NAME_PARAMETER}

    arguments: list[str | None] = []
    for name in schema.names:
        if name == SCRIPT_NAME_PARAMETER:
            arguments.append(job_name)
            continue
        value = schema.declared_defaults.get(name)
        if name in folder_defaults:
            value = folder_defaults[name]
        if name in overrides:
            value = overrides[name]
        arguments.append(value)

    return ResolvedInvocation(
        worker_path=worker_path,
        job_name=job_name,
        arguments=tuple(arguments),
        parameter_names=schema.names,
    )


class ParameterResolver:
    """Resolve input files of one dispatch pass, keeping job names unique per worker.

    The first accepted file of a worker mapping gets the bare `ScriptName`,
    later ones get `"<ScriptName> 1"`, `"<ScriptName> 2"`, ... in the order
    they are resolved.  Create one resolver per pass.
    """

    def __init__(self) -> None:
        self._occurrences: Counter[Path] = Counter()

    def resolve(self, config: WorkerConfig, user_input: Mapping[str, str]) -> ResolvedInvocation:
        occurrence = self._occurrences[config.folder_key]
        job_name = config.script_name if occurrence == 0 else f"{config.script_name} {occurrence}"
        invocation = resolve_arguments(
            worker_path=config.worker_path,
            schema=config.schema,
            folder_defaults=config.default_parameters,
            user_input=user_input,
            job_name=job_name,
        )
        self._occurrences[config.folder_key] += 1
        return invocation
