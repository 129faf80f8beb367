"""
miniocred - CLI Utilities
"""

from typing import Any, Dict, Optional

from rich.console import Console
from rich.table import Table


console = Console()
err_console = Console(stderr=True)


def success(message: str):
    """Display success message."""
    console.print(f"[green]✓[/green] {message}")


def error(message: str):
    """Display error message."""
    err_console.print(f"[red]✗[/red] {message}")


def warning(message: str):
    """Display warning message."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def info(message: str):
    """Display info message."""
    console.print(f"[blue]ℹ[/blue] {message}")


def print_key_value(data: Dict[str, Any], title: Optional[str] = None):
    """
    Print key-value pairs in a formatted way.

    Args:
        data: Dictionary of key-value pairs
        title: Optional title
    """
    table = Table(title=title, show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    for key, value in data.items():
        table.add_row(f"{key}:", str(value))

    console.print(table)


def mask(value: str, visible: int = 2) -> str:
    """Mask a secret for display, keeping a short prefix."""
    if len(value) <= visible:
        return "*" * len(value)
    return value[:visible] + "*" * (len(value) - visible)
