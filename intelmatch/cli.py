from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.logging import RichHandler

from . import IntelmatchError, __version__
from .detection.scanner import DEFAULT_MIN_LENGTH
from .errors import InputValidationError
from .exit_codes import ExitCode
from .orchestration import (
    ExecutionOutcome,
    handle_domain_error,
    run_aggregate,
    run_resolve,
    run_scan,
)
from .reporting import ResolutionReport, render_resolution_report, render_scan_report

APP_NAME = "intelmatch"
_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

app = typer.Typer(
    name=APP_NAME,
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def configure_logging(*, quiet: bool = False) -> None:
    """Initialise application-wide logging."""

    level = logging.WARNING if quiet else logging.INFO
    root = logging.getLogger()

    if getattr(configure_logging, "_configured", False):
        root.setLevel(level)
        for handler in root.handlers:
            handler.setLevel(level)
        configure_logging._level = level
        return

    handler = RichHandler(
        rich_tracebacks=True,
        show_path=False,
        markup=False,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))

    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    configure_logging._configured = True
    configure_logging._level = level


def _validate_file(path: Path, description: str) -> Path:
    """Ensure the provided file path exists and is readable."""

    if not path:
        raise InputValidationError(
            message=f"Missing {description} path.",
            remediation=f"Provide a valid {description} file via the CLI options.",
        )

    candidate = path.expanduser()
    try:
        resolved = candidate.resolve()
    except OSError:
        resolved = candidate

    display = _quote_path(resolved)
    if not resolved.exists() or not resolved.is_file():
        raise InputValidationError(
            message=f"{description.capitalize()} path {display} does not exist or is not a file.",
            remediation=f"Verify the {description} path and ensure the file is readable.",
        )
    return resolved


def _is_quiet_mode() -> bool:
    """Determine if the CLI is currently running in quiet mode."""

    return getattr(configure_logging, "_level", logging.INFO) == logging.WARNING


def _quote_path(path: Path) -> str:
    value = str(path)
    if " " in value:
        return f'"{value}"'
    return value


def _validated_paths(**paths: tuple[Path | None, str]) -> dict[str, Path | None]:
    """Validate each ``name=(path, description)`` pair, exiting on the first failure."""

    try:
        return {
            name: _validate_file(path, description) if path is not None else None
            for name, (path, description) in paths.items()
        }
    except IntelmatchError as exc:
        outcome = handle_domain_error(exc)
        raise typer.Exit(code=int(outcome.exit_code)) from exc


def _emit(outcome: ExecutionOutcome, *, quiet: bool) -> None:
    printed_message = False
    if outcome.message and outcome.exit_code == ExitCode.SUCCESS and not quiet:
        typer.echo(outcome.message)
        printed_message = True

    if outcome.report is not None:
        if printed_message:
            typer.echo("")
        if isinstance(outcome.report, ResolutionReport):
            typer.echo(render_resolution_report(outcome.report))
        else:
            typer.echo(render_scan_report(outcome.report))

    raise typer.Exit(code=int(outcome.exit_code))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    quiet: bool = typer.Option(
        False,
        "--quiet",
        help="Reduce log output to warnings and errors.",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the Intelmatch version and exit.",
    ),
) -> None:
    """Configure logging and handle global options."""

    configure_logging(quiet=quiet)

    if version:
        typer.echo(__version__)
        raise typer.Exit(code=int(ExitCode.SUCCESS))

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=int(ExitCode.SUCCESS))


@app.command("scan")
def scan(
    text: Path = typer.Option(
        ...,
        "--text",
        "-t",
        help="Path to the page text (PDF, saved HTML page or text file).",
    ),
    candidates: Path = typer.Option(
        ...,
        "--candidates",
        "-c",
        help="YAML file listing the known entities to look for.",
    ),
    platforms: Path | None = typer.Option(
        None,
        "--platforms",
        "-p",
        help="YAML file describing the configured platforms.",
    ),
    min_length: int = typer.Option(
        DEFAULT_MIN_LENGTH,
        "--min-length",
        help="Ignore candidate names and aliases shorter than this.",
        show_default=True,
    ),
    wide: bool = typer.Option(
        False,
        "--wide",
        help="Include the matched page text in the report.",
    ),
) -> None:
    """Detect observables and known entities in page text."""

    paths = _validated_paths(
        text=(text, "page text"),
        candidates=(candidates, "candidates"),
        platforms=(platforms, "platforms"),
    )
    quiet_mode = _is_quiet_mode()
    outcome = run_scan(
        paths["text"],
        paths["candidates"],
        platforms_path=paths["platforms"],
        min_length=min_length,
        quiet=quiet_mode,
        wide=wide,
    )
    _emit(outcome, quiet=quiet_mode)


@app.command("aggregate")
def aggregate(
    results: Path = typer.Option(
        ...,
        "--results",
        "-r",
        help="Stored scan results batch (JSON or YAML).",
    ),
    wide: bool = typer.Option(
        False,
        "--wide",
        help="Include the matched page text in the report.",
    ),
) -> None:
    """Merge a stored scan results batch into one row per entity."""

    paths = _validated_paths(results=(results, "scan results"))
    quiet_mode = _is_quiet_mode()
    outcome = run_aggregate(paths["results"], quiet=quiet_mode, wide=wide)
    _emit(outcome, quiet=quiet_mode)


@app.command("resolve")
def resolve(
    payload: Path = typer.Option(
        ...,
        "--payload",
        help="Entity payload (JSON or YAML) carrying its platform matches.",
    ),
    platforms: Path = typer.Option(
        ...,
        "--platforms",
        "-p",
        help="YAML file describing the configured platforms.",
    ),
    fetch: bool = typer.Option(
        False,
        "--fetch",
        help="Refresh the first result's details from its platform over HTTP.",
    ),
    timeout: float = typer.Option(
        10.0,
        "--timeout",
        min=1.0,
        help="Seconds allowed for the detail fetch, retries included.",
        show_default=True,
    ),
) -> None:
    """List the platforms an entity is known on, knowledge base first."""

    paths = _validated_paths(
        payload=(payload, "entity payload"),
        platforms=(platforms, "platforms"),
    )
    quiet_mode = _is_quiet_mode()
    outcome = run_resolve(
        paths["payload"],
        paths["platforms"],
        fetch=fetch,
        timeout_seconds=timeout,
        quiet=quiet_mode,
    )
    _emit(outcome, quiet=quiet_mode)


def entrypoint() -> None:
    """Execute the Typer application."""

    app()


__all__ = ["app", "entrypoint", "configure_logging", "ExitCode"]
