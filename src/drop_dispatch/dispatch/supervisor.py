"""One-shot supervision of launched jobs.

Per job: `launched -> {blocked | bound}`, `bound -> {succeeded | runtime error}`.
Each handle is inspected exactly once, after a single settle delay that
follows the last launch of the pass.  Jobs still running at that point are
accepted and left alone.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence

from drop_dispatch.dispatch.backend.base import JobHandle
from drop_dispatch.dispatch.failure_classifier import PARAMETER_BINDING_TAG
from drop_dispatch.dispatch.models import JobOutcome, JobRecord, JobState
from drop_dispatch.dispatch.reporting import FailureReporter

logger = logging.getLogger(__name__)


def classify_handle(handle: JobHandle) -> JobOutcome:
    """Classify the immediate state of one job handle."""

    state = handle.state()
    if state == JobState.BLOCKED:
        return JobOutcome.blocked()
    if state != JobState.FAILED:
        return JobOutcome.accepted()

    error = handle.drain_error()
    if error is None:
        return JobOutcome.runtime_error(f"Job {handle.name!r} failed without error output")
    if error.classification_tag == PARAMETER_BINDING_TAG:
        return JobOutcome.parameter_binding_error(error.message)
    return JobOutcome.runtime_error(error.message)


class Supervisor:
    """Classify the jobs of one dispatch pass and hand failures to the reporter."""

    def __init__(
        self,
        *,
        reporter: FailureReporter,
        settle_seconds: float = 5.0,
        wait_for_jobs: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.reporter = reporter
        self.settle_seconds = settle_seconds
        self.wait_for_jobs = wait_for_jobs
        self._sleep = sleep

    def supervise(self, records: Sequence[JobRecord]) -> list[JobOutcome]:
        """Classify every record once, report it, and release its handle.

        Returns the outcomes in record order.
        """

        if self.settle_seconds > 0 and any(record.outcome is None for record in records):
            logger.debug(
                "Waiting %.1fs before inspecting %d job(s)",
                self.settle_seconds,
                sum(record.outcome is None for record in records),
            )
            self._sleep(self.settle_seconds)

        outcomes = [self._outcome_of(record) for record in records]

        for record, outcome in zip(records, outcomes, strict=True):
            if outcome.is_failure:
                self.reporter.report_failure(record, outcome)
            else:
                self.reporter.report_accepted(record)

        if self.wait_for_jobs:
            self._wait_for_remaining(records, outcomes)

        for record in records:
            if record.handle is not None:
                record.handle.release()
        return outcomes

    def _outcome_of(self, record: JobRecord) -> JobOutcome:
        if record.outcome is not None:
            return record.outcome
        if record.handle is None:
            raise ValueError(
                f"Job {record.invocation.job_name!r} has neither a handle nor an outcome",
            )
        record.outcome = classify_handle(record.handle)
        logger.info(
            "Job %r (%s): %s",
            record.invocation.job_name,
            record.input_file.name,
            record.outcome.kind.value,
        )
        return record.outcome

    def _wait_for_remaining(
        self,
        records: Sequence[JobRecord],
        outcomes: Sequence[JobOutcome],
    ) -> None:
        for record, outcome in zip(records, outcomes, strict=True):
            if record.handle is None or outcome.is_failure:
                continue
            state = record.handle.wait()
            logger.info("Job %r finished: %s", record.invocation.job_name, state.value)
