"""
Console output for OpsGate.

Gate results print as deterministic KEY=value lines (values that are
lists or objects are compact sorted JSON), so the output can be grepped
and diffed. With verbose=True a Rich table of issues follows.

Design Principles:
    - KEY=value lines are plain text; no markup, no wrapping
    - Decoration (icons, colors, tables) only in verbose mode
"""

import json
import re
from typing import Any

from rich.console import Console
from rich.table import Table

from opsgate.schema import AliasResolution, Disposition, GateResult

# Status icons
ICON_PASS = "[green]✓[/green]"
ICON_WARN = "[yellow]![/yellow]"
ICON_FAIL = "[red]✗[/red]"

DISPOSITION_STYLES = {
    Disposition.PASS: ("green", ICON_PASS),
    Disposition.WARN: ("yellow", ICON_WARN),
    Disposition.FAIL: ("red", ICON_FAIL),
}


def to_key(name: str) -> str:
    """camelCase / kebab-case field name to UPPER_SNAKE."""
    name = re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", name)
    return name.replace("-", "_").upper()


def format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if value is None:
        return ""
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return str(value)


def key_value_lines(result: GateResult) -> list[str]:
    """Render a GateResult as KEY=value lines, token first."""
    lines = [
        f"{result.token_name}={result.token_value}",
        f"DISPOSITION={result.disposition.value}",
        f"TIER={result.tier.value}",
        f"FAIL_SIGNAL_CODE={result.fail_signal_code}",
        f"FAILURES={format_value(result.failures)}",
    ]
    for key in sorted(result.details):
        lines.append(f"{to_key(key)}={format_value(result.details[key])}")
    return lines


def alias_lines(resolution: AliasResolution) -> list[str]:
    output = resolution.to_output()
    return [f"{to_key(key)}={format_value(output[key])}" for key in sorted(output)]


def _print_plain(console: Console, lines: list[str]) -> None:
    for line in lines:
        console.print(line, markup=False, highlight=False, soft_wrap=True)


def print_gate_result(result: GateResult, console: Console | None = None, verbose: bool = False) -> None:
    """
    Print a GateResult.

    Args:
        result: The result to print
        console: Rich Console instance (creates one if not provided)
        verbose: Add a status line and an issue table
    """
    if console is None:
        console = Console()

    _print_plain(console, key_value_lines(result))
    if not verbose:
        return

    style, icon = DISPOSITION_STYLES[result.disposition]
    console.print()
    console.print(f"{icon} [bold]{result.check}[/bold]: [{style}]{result.disposition.value}[/{style}] ({result.tier.value})")
    if result.issues:
        _print_issue_table(console, result)


def _print_issue_table(console: Console, result: GateResult) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("Code", style="cyan")
    table.add_column("Path", style="dim")
    table.add_column("Message")
    for issue in result.issues:
        table.add_row(issue.code, issue.path, issue.message)
    console.print(table)


def print_alias_resolution(
    resolution: AliasResolution,
    console: Console | None = None,
    verbose: bool = False,
) -> None:
    if console is None:
        console = Console()
    _print_plain(console, alias_lines(resolution))
    if verbose:
        style, icon = DISPOSITION_STYLES[resolution.disposition]
        target = resolution.canonical_id or "-"
        console.print(f"{icon} {resolution.input_id} -> {target} [{style}]{resolution.disposition.value}[/{style}]")


def print_mapping(values: dict[str, Any], console: Console | None = None) -> None:
    """Print an arbitrary mapping as sorted KEY=value lines."""
    if console is None:
        console = Console()
    _print_plain(console, [f"{to_key(key)}={format_value(values[key])}" for key in sorted(values)])
