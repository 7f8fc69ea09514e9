"""Deterministic classification of early worker failures."""

from __future__ import annotations

from dataclasses import dataclass

PARAMETER_BINDING_TAG = "parameter_binding"
WORKER_ERROR_TAG = "worker_error"

# Exit status used by argparse/click for command-line usage errors.
USAGE_ERROR_EXIT_CODE = 2

_PARAMETER_BINDING_PATTERNS: tuple[str, ...] = (
    "the following arguments are required",
    "unrecognized arguments",
    "invalid int value",
    "invalid float value",
    "invalid choice",
    "invalid value for",
    "missing argument",
    "cannot convert",
    "cannot bind",
)


@dataclass(slots=True)
class WorkerFailureClassification:
    """Normalized failure classification result."""

    classification_tag: str
    matched_rule: str
    matched_pattern: str | None

    @property
    def is_parameter_binding(self) -> bool:
        return self.classification_tag == PARAMETER_BINDING_TAG


def classify_worker_failure(*, exit_code: int, stderr: str) -> WorkerFailureClassification:
    """Tell a worker that could not bind its arguments from one that failed on its own."""

    pattern = _first_match(stderr.lower(), _PARAMETER_BINDING_PATTERNS)
    if pattern is not None:
        return WorkerFailureClassification(
            classification_tag=PARAMETER_BINDING_TAG,
            matched_rule="binding_pattern",
            matched_pattern=pattern,
        )
    if exit_code == USAGE_ERROR_EXIT_CODE:
        return WorkerFailureClassification(
            classification_tag=PARAMETER_BINDING_TAG,
            matched_rule="usage_exit_code",
            matched_pattern=None,
        )
    return WorkerFailureClassification(
        classification_tag=WORKER_ERROR_TAG,
        matched_rule="fallback_worker_error",
        matched_pattern=None,
    )


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
