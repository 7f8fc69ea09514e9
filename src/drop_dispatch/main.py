"""CLI entrypoint for drop-dispatch."""

import logging
from pathlib import Path

import rich_click as click
from rich.logging import RichHandler

from drop_dispatch import __version__
from drop_dispatch.config import Settings
from drop_dispatch.dispatch.controllers import (
    DispatchCliController,
    DispatchRunCommand,
    ShowSchemaCommand,
    ValidateMappingCommand,
)

click.rich_click.USE_MARKDOWN = True
DISPATCH_CONTROLLER = DispatchCliController()

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@click.group()
@click.version_option(version=__version__, prog_name="drop-dispatch")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
def drop_dispatch(verbose: bool) -> None:
    """Drop-folder job dispatcher CLI."""

    _configure_logging(verbose=verbose)


@drop_dispatch.command("run")
@click.option(
    "--drop-folder",
    "drop_folders",
    multiple=True,
    required=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Drop folder to scan for input files. Can be repeated.",
)
@click.option(
    "--mapping-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Worker mapping JSON file. Defaults to DROP_DISPATCH_MAPPING_FILE.",
)
@click.option(
    "--archive/--no-archive",
    default=None,
    help=(
        "Archive consumed input files with an error artifact per failure, or leave rejected "
        "files in place and notify. Defaults to DROP_DISPATCH_ARCHIVE (on)."
    ),
)
@click.option(
    "--settle-seconds",
    type=click.FloatRange(min=0),
    default=None,
    help="Delay before launched jobs are inspected. Defaults to DROP_DISPATCH_SETTLE_SECONDS (5).",
)
@click.option(
    "--wait/--no-wait",
    "wait_for_jobs",
    default=None,
    help="Wait for accepted jobs to finish before exiting.",
)
def run(
    drop_folders: tuple[Path, ...],
    mapping_file: Path | None,
    archive: bool | None,
    settle_seconds: float | None,
    wait_for_jobs: bool | None,
) -> None:
    """Dispatch every input file in the drop folders to its mapped worker."""

    result = DISPATCH_CONTROLLER.run(
        DispatchRunCommand(
            drop_folders=drop_folders,
            mapping_file=mapping_file,
            archive=archive,
            settle_seconds=settle_seconds,
            wait_for_jobs=wait_for_jobs,
        ),
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Dispatch aborted.")


@drop_dispatch.command("validate")
@click.option(
    "--mapping-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Worker mapping JSON file. Defaults to DROP_DISPATCH_MAPPING_FILE.",
)
@click.option(
    "--drop-folder",
    "drop_folders",
    multiple=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Also check that this drop folder maps to exactly one worker. Can be repeated.",
)
def validate(mapping_file: Path | None, drop_folders: tuple[Path, ...]) -> None:
    """Validate worker mappings without dispatching anything."""

    result = DISPATCH_CONTROLLER.validate(
        ValidateMappingCommand(mapping_file=mapping_file, drop_folders=drop_folders),
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Configuration is invalid.")


@drop_dispatch.command("schema")
@click.argument("worker", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def schema(worker: Path) -> None:
    """Show the declared parameters of a worker in positional order."""

    result = DISPATCH_CONTROLLER.show_schema(ShowSchemaCommand(worker=worker))
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Parameter schema unavailable.")


def _configure_logging(*, verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [RichHandler(show_path=False, rich_tracebacks=True)]
    try:
        log_folder = Settings.from_env().log_folder
    except ValueError as error:
        raise click.ClickException(f"Invalid settings: {error}") from error
    if log_folder is not None:
        log_folder.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_folder / "drop-dispatch.log", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        handlers.append(file_handler)
    logging.basicConfig(level=level, format="%(message)s", handlers=handlers, force=True)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    drop_dispatch()
