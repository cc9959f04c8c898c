"""Pass summary formatting and display."""

from typing import List, Optional, Sequence, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..models.lifecycle_record import LifecyclePhase, LifecycleRecord
from ..models.pass_summary import ActionType, PassStatus, PassSummary
from ..models.resource import Resource
from ..models.verdict import Verdict, VerdictAction

STATUS_STYLES = {
    PassStatus.COMPLETED: "green",
    PassStatus.PARTIAL: "yellow",
    PassStatus.TIMED_OUT: "yellow",
    PassStatus.FAILED: "red",
    PassStatus.RUNNING: "cyan",
}

PHASE_STYLES = {
    LifecyclePhase.UNSEEN: "white",
    LifecyclePhase.WARNED: "yellow",
    LifecyclePhase.DELETION_PENDING: "magenta",
    LifecyclePhase.DELETED: "dim",
    LifecyclePhase.DELETION_FAILED: "red",
}

VERDICT_STYLES = {
    VerdictAction.KEEP: "green",
    VerdictAction.WARN_PENDING: "yellow",
    VerdictAction.DELETE_ELIGIBLE: "red",
}


class PassReporter:
    """Format and display pass summaries, verdicts and lifecycle records."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize pass reporter.

        Args:
            console: Rich console instance (creates new one if not provided)
        """
        self.console = console or Console()

    def display(self, summary: PassSummary, show_details: bool = False) -> None:
        """Display a pass summary to the console.

        Args:
            summary: PassSummary to display
            show_details: Whether to list actions that changed nothing
        """
        style = STATUS_STYLES.get(summary.status, "white")
        mode = "DRY RUN" if summary.dry_run else "LIVE"
        duration = f"{summary.duration_seconds:.1f}s" if summary.duration_seconds is not None else "-"

        self.console.print()
        self.console.print(
            Panel(
                f"[bold]Lifecycle Pass {summary.pass_id}[/bold] ({mode})\n"
                f"Started: {summary.started_at.strftime('%Y-%m-%d %H:%M:%S UTC')}\n"
                f"Status: [{style}]{summary.status.value}[/{style}]  Duration: {duration}",
                style="cyan",
            )
        )
        self.console.print()

        if summary.error:
            self.console.print(f"[red]✗ Pass failed: {summary.error}[/red]")
            self.console.print()

        self._display_counts(summary)
        self._display_actions(summary, show_details)

        if summary.terminal_failures:
            self.console.print("[bold red]Terminal failures (manual intervention required):[/bold red]")
            for resource_id in summary.terminal_failures:
                self.console.print(f"  [red]✗[/red] {resource_id}")
            self.console.print()

        if summary.errors:
            self.console.print("[bold yellow]Errors:[/bold yellow]")
            for resource_id, message in sorted(summary.errors.items()):
                self.console.print(f"  [yellow]⚠[/yellow] {resource_id}: {message}")
            self.console.print()

    def _display_counts(self, summary: PassSummary) -> None:
        """Display counts per resulting phase and pass tallies."""
        table = Table(title="Summary", show_header=True, header_style="bold magenta")
        table.add_column("Outcome", style="cyan", width=24)
        table.add_column("Count", justify="right", style="yellow", width=10)

        counts = summary.counts()
        table.add_row("Keep", str(counts["keep"]))
        table.add_row("Warned", str(counts["warned"]))
        table.add_row("Deletion pending", str(counts["deletion_pending"]))
        table.add_row("Deleted", f"[red]{counts['deleted']}[/red]" if counts["deleted"] else "0")
        table.add_row("Failed", f"[red]{counts['failed']}[/red]" if counts["failed"] else "0")
        table.add_row("━" * 24, "━" * 10, style="dim")
        table.add_row("Notifications sent", str(counts["notifications_sent"]))
        table.add_row("Notification failures", str(counts["notification_failures"]))
        table.add_row("Deletions attempted", str(counts["deletions_attempted"]))
        if counts["deferred"]:
            table.add_row("Deferred (timeout)", str(counts["deferred"]))
        if counts["vanished"]:
            table.add_row("Vanished (reset)", str(counts["vanished"]))
        if counts["pruned"]:
            table.add_row("Pruned", str(counts["pruned"]))

        self.console.print(table)
        self.console.print()

    def _display_actions(self, summary: PassSummary, show_details: bool) -> None:
        """Display per-resource actions."""
        actions = [
            a for a in summary.actions if show_details or a.action not in (ActionType.NONE, ActionType.TRACKED)
        ]
        if not actions:
            self.console.print("[green]✓ No lifecycle changes in this pass[/green]")
            self.console.print()
            return

        table = Table(title="Actions", show_header=True, box=None, padding=(0, 2))
        table.add_column("Resource", style="white")
        table.add_column("Kind", width=9)
        table.add_column("Action", width=14)
        table.add_column("Phase")
        table.add_column("Detail", style="dim")

        for action in actions:
            from_phase = action.from_phase.value if action.from_phase else "new"
            to_phase = action.to_phase.value if action.to_phase else "removed"
            label = action.action.value + (" (dry-run)" if action.dry_run else "")
            table.add_row(action.resource_id, action.kind, label, f"{from_phase} → {to_phase}", action.detail)

        self.console.print(table)
        self.console.print()

    def display_verdicts(self, verdicts: Sequence[Tuple[Resource, Verdict]]) -> None:
        """Display classifier verdicts for a set of resources."""
        if not verdicts:
            self.console.print("[yellow]No resources found[/yellow]")
            return

        table = Table(title="Verdicts", show_header=True, header_style="bold magenta")
        table.add_column("Resource", style="white")
        table.add_column("Kind", width=9)
        table.add_column("Owner")
        table.add_column("Verdict")
        table.add_column("Eligible On")
        table.add_column("Reason", style="dim")

        for resource, verdict in verdicts:
            style = VERDICT_STYLES[verdict.action]
            table.add_row(
                resource.id,
                resource.kind.value,
                resource.owner or "-",
                f"[{style}]{verdict.action.value}[/{style}]",
                verdict.eligible_on.isoformat() if verdict.eligible_on else "-",
                verdict.reason,
            )

        self.console.print(table)

    def display_records(self, records: List[LifecycleRecord], retry_budget: int) -> None:
        """Display stored lifecycle records."""
        if not records:
            self.console.print("[yellow]No lifecycle records found[/yellow]")
            return

        table = Table(title="Lifecycle Records", show_header=True, header_style="bold magenta")
        table.add_column("Resource", style="white")
        table.add_column("Kind", width=9)
        table.add_column("Phase")
        table.add_column("Warned At")
        table.add_column("Attempts", justify="right")
        table.add_column("Last Error", style="dim")

        for record in sorted(records, key=lambda r: r.resource_id):
            style = PHASE_STYLES[record.phase]
            phase = f"[{style}]{record.phase.value}[/{style}]"
            if record.phase == LifecyclePhase.DELETION_FAILED and record.is_terminal(retry_budget):
                phase += " [bold red](terminal)[/bold red]"
            table.add_row(
                record.resource_id,
                record.kind.value,
                phase,
                record.warned_at.strftime("%Y-%m-%d %H:%M") if record.warned_at else "-",
                f"{record.attempts}/{retry_budget}",
                record.last_error or record.last_notify_error or "",
            )

        self.console.print(table)

    def export_json(self, summary: PassSummary, filepath: str) -> None:
        """Export a pass summary to a JSON file.

        Args:
            summary: PassSummary to export
            filepath: Destination file path
        """
        from ..utils.export import export_to_json

        export_to_json(summary.to_dict(), filepath)
        self.console.print(f"[green]✓ Pass summary exported to {filepath}[/green]")

    def export_csv(self, summary: PassSummary, filepath: str) -> None:
        """Export pass actions to a CSV file, one row per resource.

        Args:
            summary: PassSummary to export
            filepath: Destination file path
        """
        from ..utils.export import export_to_csv

        rows = [dict(action.to_dict(), pass_id=summary.pass_id) for action in summary.actions]
        export_to_csv(rows, filepath)
        self.console.print(f"[green]✓ Pass actions exported to {filepath}[/green]")
