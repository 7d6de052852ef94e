"""Formatting helpers for CLI output."""

import json
from typing import Any, Iterable, List, Optional

from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .errors import ConfigurationError

OUTPUT_FORMATS = ("json", "table", "minimal")

console = Console()
err_console = Console(stderr=True)


def to_plain(data: Any) -> Any:
    """Converts models (recursively) into JSON-compatible values."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(data, dict):
        return {k: to_plain(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [to_plain(v) for v in data]
    return data


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _rows(data: Any) -> List[dict]:
    if isinstance(data, dict):
        return [data]
    return [row if isinstance(row, dict) else {"value": row} for row in data]


def render_table(data: Any) -> Table:
    rows = _rows(data)
    columns: List[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)

    table = Table(show_header=True, header_style="bold")
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*(_cell(row.get(column)) for column in columns))
    return table


def render_minimal(data: Any) -> str:
    lines = []
    for row in _rows(data):
        lines.append(" ".join(_cell(v) for v in row.values()))
    return "\n".join(lines)


def format_output(data: Any, fmt: str = "json") -> Any:
    """Renders ``data`` as JSON text, a rich ``Table`` or whitespace separated lines."""
    if fmt not in OUTPUT_FORMATS:
        raise ConfigurationError(f"Unknown output format '{fmt}'. Use one of: {', '.join(OUTPUT_FORMATS)}")
    plain = to_plain(data)
    if fmt == "json":
        return json.dumps(plain, indent=2)
    if fmt == "table":
        return render_table(plain)
    return render_minimal(plain)


def print_output(data: Any, fmt: str = "json") -> None:
    rendered = format_output(data, fmt)
    if isinstance(rendered, str):
        # Plain print so JSON output stays machine readable
        console.print(rendered, markup=False, highlight=False, emoji=False, soft_wrap=True)
    else:
        console.print(rendered)


# --- Value formatting ---

def format_percent(value: Optional[float], decimals: int = 2) -> str:
    """Decimal rate (0.05) to percent text (5.00%)."""
    if value is None:
        return "-"
    return f"{value * 100:.{decimals}f}%"


def format_number(value: Optional[float], decimals: int = 2) -> str:
    if value is None:
        return "-"
    return f"{value:,.{decimals}f}"


def format_usd(value: Optional[float]) -> str:
    if value is None:
        return "-"
    abs_value = abs(value)
    for threshold, suffix in ((1e9, "B"), (1e6, "M"), (1e3, "K")):
        if abs_value >= threshold:
            return f"${value / threshold:.2f}{suffix}"
    return f"${value:.2f}"


def format_token_amount(amount: int, decimals: int) -> str:
    return format_number(amount / (10 ** decimals), min(decimals, 6))


def _shorten(value: str, keep: int) -> str:
    if len(value) <= keep * 2 + 3:
        return value
    return f"{value[:keep]}...{value[-keep:]}"


def format_signature(signature: str) -> str:
    return _shorten(signature, 8)


def format_address(address: str) -> str:
    return _shorten(address, 4)


def join_keys(keys: Iterable[str]) -> str:
    return ", ".join(keys) or "-"


# --- Status messages (stderr, so stdout stays parseable) ---

def success(message: str) -> None:
    err_console.print(f"[green]✓[/green] {escape(message)}", highlight=False)


def error(message: str) -> None:
    err_console.print(f"[red]✗[/red] {escape(message)}", highlight=False)


def info(message: str) -> None:
    err_console.print(f"[blue]ℹ[/blue] {escape(message)}", highlight=False)


def warn(message: str) -> None:
    err_console.print(f"[yellow]⚠[/yellow] {escape(message)}", highlight=False)
