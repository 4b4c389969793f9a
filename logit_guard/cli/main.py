"""
Main CLI entry point using Typer.

This module defines the command-line interface for LogitGuard using Typer.
It provides three commands: validate, show, and apply.
"""

from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from logit_guard.utils import setup_logging

from .commands import validate_command, show_command, apply_command
from .display import print_error


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Create Typer app
app = typer.Typer(
    name="logit-guard",
    help="LogitGuard - Rule chains for constrained token scores",
    add_completion=False,
    rich_markup_mode="rich"
)


@app.command("validate")
def validate(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help="Path to generation_config.json", exists=True, file_okay=True, dir_okay=False)
    ],
) -> None:
    """
    Validate a generation config file.

    Example:
        logit-guard validate --config generation_config.json
    """
    try:
        validate_command(config_path=config)
    except Exception as e:
        print_error(f"Command failed: {e}")
        raise typer.Exit(code=1)


@app.command("show")
def show(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help="Path to generation_config.json", exists=True, file_okay=True, dir_okay=False)
    ],
    show_all: Annotated[
        bool,
        typer.Option("--all", "-a", help="Show every option, not only the non-default ones")
    ] = False,
) -> None:
    """
    Show a generation config and the rule chain it builds.

    Example:
        logit-guard show --config generation_config.json --all
    """
    try:
        show_command(config_path=config, show_all=show_all)
    except Exception as e:
        print_error(f"Command failed: {e}")
        raise typer.Exit(code=1)


@app.command("apply")
def apply(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help="Path to generation_config.json", exists=True, file_okay=True, dir_okay=False)
    ],
    input_file: Annotated[
        Path,
        typer.Option("--input", "-i", help="Path to step JSON with 'histories' and 'scores'", exists=True, file_okay=True, dir_okay=False)
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Path to save processed scores")
    ] = None,
) -> None:
    """
    Apply the config's rule chain to one decoding step.

    Example:
        logit-guard apply \\
            --config generation_config.json \\
            --input step.json \\
            --output processed.json
    """
    try:
        apply_command(config_path=config, input_path=input_file, output_path=output)
    except Exception as e:
        print_error(f"Command failed: {e}")
        raise typer.Exit(code=1)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option("--version", "-v", help="Show version and exit")
    ] = False,
    log_level: Annotated[
        str,
        typer.Option("--log-level", "-l", help="Log level: DEBUG, INFO, WARNING, ERROR or CRITICAL")
    ] = "WARNING",
) -> None:
    """
    LogitGuard - Rule chains for constrained token scores.

    Forces, suppresses, and reweights vocabulary entries before token selection.
    """
    if version:
        from logit_guard import __version__
        typer.echo(f"LogitGuard version {__version__}")
        raise typer.Exit()

    if log_level.upper() not in LOG_LEVELS:
        raise typer.BadParameter(
            f"must be one of {', '.join(LOG_LEVELS)}", param_hint="--log-level"
        )
    setup_logging(log_level)

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def cli() -> None:
    """CLI entry point for poetry script."""
    app()


if __name__ == "__main__":
    cli()
