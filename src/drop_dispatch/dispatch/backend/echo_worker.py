"""Local demo worker for launcher and dispatch integration tests.

The first positional argument selects the behavior:

- `fail` writes a message to stderr and exits with status 1;
- `usage` reports a command-line usage error (status 2);
- `sleep:<seconds>` sleeps before succeeding;
- anything else succeeds immediately.

When `ECHO_WORKER_OUTPUT_DIR` is set, the received job name and arguments are
written to `<dir>/<job name>.json`.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import time
from pathlib import Path

from drop_dispatch.dispatch.backend.subprocess_backend import JOB_NAME_ENV


def main(argv: list[str] | None = None) -> int:
    """Run the deterministic demo behavior."""

    parser = argparse.ArgumentParser(prog="echo-worker")
    parser.add_argument("values", nargs="*")
    args = parser.parse_args(argv)

    values: list[str] = args.values
    mode = values[0] if values else ""
    job_name = os.getenv(JOB_NAME_ENV, "")

    output_dir = os.getenv("ECHO_WORKER_OUTPUT_DIR")
    if output_dir:
        path = Path(output_dir) / f"{job_name or 'job'}.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps({"job_name": job_name, "arguments": values}), "utf-8")

    if mode == "fail":
        print(f"echo-worker: job {job_name!r} failed on purpose", file=sys.stderr)
        return 1
    if mode == "usage":
        parser.error("the following arguments are required: PrinterName")
    if mode.startswith("sleep:"):
        time.sleep(float(mode.split(":", 1)[1]))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
