"""Console output formatting for objsync."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.table import Table


class OutputFormatter:
    """Formats user-facing output for the CLI and the sync engine."""

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON instead of text summaries
            quiet: Suppress non-essential output
            console: Console for regular output (stdout)
            err_console: Console for errors and warnings (stderr)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)

    def print(self, message: str = "") -> None:
        """Print a plain line."""
        if self.quiet or self.json_output:
            return
        self.console.print(message, markup=False)

    def info(self, message: str) -> None:
        """Print an informational message."""
        if self.quiet or self.json_output:
            return
        self.console.print(message, markup=False)

    def success(self, message: str) -> None:
        """Print a success message."""
        if self.quiet or self.json_output:
            return
        self.console.print(message, style="green", markup=False)

    def warning(self, message: str) -> None:
        """Print a warning to stderr."""
        if self.quiet:
            return
        self.err_console.print(message, style="yellow", markup=False)

    def error(self, message: str) -> None:
        """Print an error to stderr. Never suppressed."""
        self.err_console.print(message, style="red", markup=False)

    def print_json(self, data: Any) -> None:
        """Print data as JSON to stdout."""
        self.console.print_json(json.dumps(data, default=str))

    def print_summary(self, title: str, rows: list[tuple[str, str]]) -> None:
        """Print a two-column summary table.

        Args:
            title: Table title
            rows: (label, value) pairs
        """
        if self.quiet or self.json_output:
            return
        table = Table(title=title, show_header=False, title_justify="left")
        table.add_column("Item", style="bold")
        table.add_column("Value")
        for label, value in rows:
            table.add_row(label, value)
        self.console.print(table)

    def print_status(self, data: dict[str, Any]) -> None:
        """Print a status snapshot to stderr, even in quiet mode."""
        self.err_console.print_json(json.dumps(data, default=str))
