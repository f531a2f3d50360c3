"""Rich-based console implementation of the UserInterface port."""

import logging
from typing import Any

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from branchguard.domain.interfaces.user_interface import UserInterface
from branchguard.domain.models.report import BatchReport
from branchguard.domain.models.work import OutcomeStatus

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    OutcomeStatus.UPDATED: "bold green",
    OutcomeStatus.SIMULATED: "bold cyan",
    OutcomeStatus.SKIPPED: "yellow",
    OutcomeStatus.ERRORED: "bold red",
}


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Console = None):
        self.console = console or Console()

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style."""
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1),
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self.console.print(f"[blue]Info:[/blue] {info_message}")

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.warning(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1),
        )
        self.console.print(panel)

    def display_summary(self, report: BatchReport) -> None:
        """Prints one row per item, then the summary counts.

        Args:
            report: The completed run report.
        """
        title = "Dry run results" if report.metadata.dry_run else "Results"
        table = Table(title=f"{title} for {report.metadata.owner}", show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("#", style="cyan", justify="right")
        table.add_column("Repository", style="bold")
        table.add_column("Branch", style="dim")
        table.add_column("Status")
        table.add_column("Checks", style="white")

        for i, outcome in enumerate(report.details, 1):
            style = STATUS_STYLES[outcome.status]
            if outcome.status is OutcomeStatus.ERRORED:
                checks = outcome.error or ""
            elif outcome.status is OutcomeStatus.SKIPPED:
                checks = outcome.reason or ""
            else:
                checks = ", ".join(outcome.changes) or "-"
            table.add_row(
                str(i),
                outcome.display_name,
                outcome.target_label,
                f"[{style}]{outcome.status.value}[/{style}]",
                checks,
            )

        summary = report.summary
        totals = Table(show_header=False, box=SIMPLE, border_style="cyan", padding=(0, 1))
        totals.add_column("Status", style="bold")
        totals.add_column("Count", justify="right")
        totals.add_row("Updated", str(summary.updated))
        totals.add_row("Simulated", str(summary.simulated))
        totals.add_row("Skipped", str(summary.skipped))
        totals.add_row("Errored", str(summary.errored))
        totals.add_row("Total", str(summary.total))

        self.console.print("")
        if report.details:
            self.console.print(table)
        self.console.print(totals)
        self.console.print("")
