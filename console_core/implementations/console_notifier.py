from typing import Optional

from rich.console import Console

from ..abstractions.providers import Notifier


class RichNotifier(Notifier):
    """Toast-style notices printed to the terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def success(self, message: str):
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str):
        self.console.print(f"[red]✗[/red] {message}")

    def info(self, message: str):
        self.console.print(f"[blue]ℹ[/blue] {message}")
