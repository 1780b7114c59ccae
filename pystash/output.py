"""Output formatting for the stash CLI."""

import json
from typing import Any

import click
from rich.console import Console
from rich.markup import escape

from .utils import format_size


class OutputFormatter:
    """Writes command results as rich text or JSON.

    Status messages go to stderr so that data written to stdout (names,
    JSON documents) can be piped into other tools.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize the formatter.

        Args:
            json_output: Emit data as JSON instead of text
            quiet: Suppress informational and success messages
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(soft_wrap=True, highlight=False)
        self.err_console = Console(stderr=True, soft_wrap=True, highlight=False)

    def info(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self.err_console.print(escape(message))

    def success(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self.err_console.print(f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        if self.quiet:
            return
        self.err_console.print(f"[yellow]{escape(message)}[/yellow]")

    def error(self, message: str) -> None:
        """Print an error message; never suppressed."""
        self.err_console.print(f"[bold red]Error:[/bold red] {escape(message)}")

    def print(self, message: str) -> None:
        """Print data to stdout."""
        self.console.print(escape(message))

    def output_json(self, data: Any) -> None:
        """Print data as an indented JSON document."""
        click.echo(json.dumps(data, indent=2, default=str))

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a titled list of label/value pairs."""
        if self.quiet:
            return
        if self.json_output:
            self.output_json({label: value for label, value in items})
            return
        self.console.print(f"\n[bold]{escape(title)}[/bold]")
        for label, value in items:
            self.console.print(f"  {escape(label)}: {escape(str(value))}")

    @staticmethod
    def format_size(size_bytes: int) -> str:
        return format_size(size_bytes)
