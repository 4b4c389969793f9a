"""
Rich terminal display utilities for CLI.

Provides formatted output using the Rich library for:
- Syntax-highlighted JSON
- Validation errors with suggested fixes
- Option and rule chain tables
- Success/failure indicators
"""

import json
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from logit_guard.processing import LogitsRuleChain
from logit_guard.validation import ValidationError, suggest_fix


console = Console()


def print_header(title: str) -> None:
    """Print a formatted header."""
    console.print()
    console.print(f"[bold cyan]{title}[/bold cyan]")
    console.print("=" * len(title))
    console.print()


def print_success(message: str) -> None:
    """Print a success message with checkmark."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message with X mark."""
    console.print(f"[red]✗[/red] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]ℹ[/blue] {message}")


def print_json(data: Any, title: Optional[str] = None) -> None:
    """
    Print JSON data with syntax highlighting.

    Args:
        data: JSON-serializable data or JSON string
        title: Optional title for the panel
    """
    if isinstance(data, str):
        json_str = data
    else:
        json_str = json.dumps(data, indent=2)

    syntax = Syntax(json_str, "json", theme="monokai", line_numbers=False)

    if title:
        panel = Panel(syntax, title=f"[bold]{title}[/bold]", border_style="cyan")
        console.print(panel)
    else:
        console.print(syntax)


def print_validation_errors(errors: List[ValidationError]) -> None:
    """
    Print validation errors in a formatted list, each with a suggested fix.

    Args:
        errors: Errors from validate_options
    """
    if not errors:
        return

    console.print()
    console.print("[bold red]Validation Errors:[/bold red]")
    for error in errors:
        console.print(f"  [red]•[/red] {escape(error.path)}: {escape(error.message)}")
        console.print(f"    [dim]{suggest_fix(error)}[/dim]")
    console.print()


def print_options_table(options: Dict[str, Any], title: str = "Generation Options") -> None:
    """
    Print generation options as a two-column table.

    Args:
        options: Option name -> value
        title: Table title
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Option", style="cyan")
    table.add_column("Value", style="white")

    for name, value in options.items():
        table.add_row(name, json.dumps(value))

    console.print()
    console.print(table)
    console.print()


def print_rule_chain(chain: LogitsRuleChain) -> None:
    """Print the rules of a chain in application order."""
    if not len(chain):
        print_info("Rule chain is empty: scores pass through unchanged")
        return

    table = Table(title="Rule Chain", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim", width=4)
    table.add_column("Rule", style="cyan")
    table.add_column("Configuration", style="white")

    for i, rule in enumerate(chain, 1):
        table.add_row(str(i), type(rule).__name__, repr(rule))

    console.print()
    console.print(table)
    console.print()


def print_step_summary(rows: List[Dict[str, Any]]) -> None:
    """
    Print per-row statistics for a processed decoding step.

    Args:
        rows: Dicts with keys:
            - history_length: Number of tokens in the row's history
            - allowed: Number of entries that are not -inf
            - best_token: Index of the highest score (None if all -inf)
    """
    table = Table(title="Processed Step", show_header=True, header_style="bold cyan")
    table.add_column("Row", style="dim", width=4)
    table.add_column("History", justify="right")
    table.add_column("Allowed Tokens", justify="right")
    table.add_column("Best Token", justify="right")

    for i, row in enumerate(rows):
        best = row["best_token"]
        table.add_row(
            str(i),
            str(row["history_length"]),
            str(row["allowed"]),
            "[red]none[/red]" if best is None else str(best)
        )

    console.print()
    console.print(table)
    console.print()


def print_separator() -> None:
    """Print a visual separator line."""
    console.print("[dim]" + "─" * 70 + "[/dim]")
