"""Main CLI entry point using Typer."""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from ..aws.credentials import CredentialValidationError, validate_credentials
from ..inventory.aws_inventory import AwsInventoryAdapter
from ..inventory.base import InventoryAdapter, InventoryFilter
from ..inventory.file_inventory import FileInventoryAdapter
from ..lifecycle.audit import AuditStorage
from ..lifecycle.deleter import AwsResourceDeleter
from ..lifecycle.errors import ConfigError, GovernorError, InventoryError, PassInProgressError
from ..lifecycle.governor import Governor
from ..lifecycle.reporter import PassReporter
from ..lifecycle.state_store import YamlStateStore
from ..models.lifecycle_record import LifecyclePhase
from ..models.pass_summary import PassStatus
from ..models.resource import ResourceKind
from ..notify.base import LogNotifier, Notifier
from ..notify.ses import SesNotifier
from ..notify.sns import SnsNotifier
from ..utils.logging import setup_logging
from .config import GovernorConfig

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="lcgov",
    help="Lifecycle Governor - classify, warn about and retire idle or expired cloud resources",
    add_completion=False,
)

# Create Rich console for output
console = Console()

# Global config
config: Optional[GovernorConfig] = None


@app.callback()
def main(
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Config file (default: $LCGOV_CONFIG or ~/.lifecycle-governor/config.yaml)"
    ),
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="AWS profile name"),
    storage_path: Optional[str] = typer.Option(
        None, "--storage-path", help="Directory for lifecycle state and audit logs"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress log output except errors"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write logs to this file"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
):
    """Lifecycle Governor - classify, warn about and retire idle or expired cloud resources."""
    global config

    # Load configuration
    try:
        config = GovernorConfig.load(config_file)
    except ConfigError as e:
        console.print(f"✗ Configuration error: {e}", style="bold red")
        raise typer.Exit(code=1)

    # Override with CLI options
    if profile:
        config.aws_profile = profile
    if storage_path:
        config.storage_path = storage_path

    # Setup logging
    log_level = "ERROR" if quiet else ("DEBUG" if verbose else config.log_level)
    setup_logging(level=log_level, verbose=verbose, log_file=log_file)

    # Disable colors if requested
    if no_color:
        console.no_color = True


@app.command()
def version():
    """Show version information."""
    import boto3

    from .. import __version__

    console.print(f"lifecycle-governor version {__version__}")
    console.print(f"Python {sys.version.split()[0]}")
    console.print(f"boto3 {boto3.__version__}")


def _build_filter(
    kinds: Optional[List[str]], regions: Optional[List[str]], required_tags: Optional[List[str]]
) -> InventoryFilter:
    """Build the inventory filter from command options.

    Raises:
        typer.BadParameter: If a kind name is unknown
    """
    try:
        parsed_kinds = frozenset(ResourceKind.parse(k) for k in kinds) if kinds else None
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--kind")
    return InventoryFilter(
        kinds=parsed_kinds,
        required_tags=tuple(required_tags or ()),
        regions=frozenset(regions) if regions else None,
    )


def _build_inventory(inventory_file: Optional[str], regions: Optional[List[str]], quiet: bool) -> InventoryAdapter:
    """Build the inventory adapter: a snapshot file, or live AWS listing."""
    if inventory_file:
        return FileInventoryAdapter(inventory_file)

    if not quiet:
        console.print("🔐 Validating AWS credentials...")
    identity = validate_credentials(config.aws_profile)
    if not quiet:
        console.print(f"✓ Authenticated as: {identity['arn']}\n", style="green")

    return AwsInventoryAdapter(regions=regions or config.regions, profile_name=config.aws_profile)


def _build_notifier() -> Notifier:
    if config.notifier == "sns":
        return SnsNotifier(config.sns_topic_arn, aws_profile=config.aws_profile)
    if config.notifier == "ses":
        return SesNotifier(config.ses_sender, region=config.regions[0], aws_profile=config.aws_profile)
    return LogNotifier()


def _print_json(data) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


@app.command()
def run(
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Plan and log actions without notifying, deleting or writing state"
    ),
    force: bool = typer.Option(False, "--force", help="Allow deletion without a prior warning cycle"),
    kind: Optional[List[str]] = typer.Option(
        None, "--kind", "-k", help="Resource kind to govern (can specify multiple)"
    ),
    region: Optional[List[str]] = typer.Option(None, "--region", "-r", help="Region to govern (can specify multiple)"),
    require_tag: Optional[List[str]] = typer.Option(
        None, "--require-tag", help="Only govern resources carrying this tag key (can specify multiple)"
    ),
    inventory_file: Optional[str] = typer.Option(
        None, "--inventory-file", "-i", help="Read the inventory from a YAML snapshot file instead of AWS"
    ),
    json_output: bool = typer.Option(False, "--json", help="Print the pass summary as JSON"),
    export: Optional[str] = typer.Option(
        None, "--export", help="Export the pass summary (format detected from extension: .json, .csv)"
    ),
    details: bool = typer.Option(False, "--details", help="List resources whose phase did not change"),
):
    """Run one governor pass over the current inventory.

    Exit codes: 0 pass completed, 1 configuration error, 2 unexpected error,
    3 pass failed or terminal deletion failures need manual intervention.

    Examples:
        lcgov run --dry-run                          # Preview the next pass
        lcgov run --kind VM --region us-east-1       # Govern EC2 instances in one region
        lcgov run --inventory-file snapshot.yaml     # Govern an exported inventory snapshot
        lcgov run --json > summary.json              # Machine-readable summary
    """
    from ..utils.export import detect_format

    try:
        if dry_run:
            config.dry_run = True
        if force:
            config.force_delete = True

        export_format = detect_format(export) if export else None
        resource_filter = _build_filter(kind, region, require_tag)
        inventory = _build_inventory(inventory_file, region, quiet=json_output)

        governor = Governor(
            inventory=inventory,
            store=YamlStateStore(config.state_dir),
            notifier=_build_notifier(),
            executor=AwsResourceDeleter(aws_profile=config.aws_profile),
            rules=config.to_rules(),
            settings=config.to_settings(),
            audit_storage=AuditStorage(config.audit_dir),
        )

        if config.force_delete and not json_output:
            console.print(
                "⚠️  Force-override enabled: resources may be deleted without a prior warning", style="yellow"
            )

        summary = governor.run_pass(resource_filter)

        if json_output:
            _print_json(summary.to_dict())
        else:
            PassReporter(console).display(summary, show_details=details)

        if export:
            reporter = PassReporter(console)
            if export_format == "json":
                reporter.export_json(summary, export)
            else:
                reporter.export_csv(summary, export)

        if summary.status == PassStatus.FAILED or summary.terminal_failures:
            raise typer.Exit(code=3)

    except typer.Exit:
        raise
    except (typer.BadParameter, ValueError, ConfigError) as e:
        console.print(f"✗ Error: {e}", style="bold red")
        raise typer.Exit(code=1)
    except CredentialValidationError as e:
        console.print(f"✗ Error: {e}", style="bold red")
        raise typer.Exit(code=3)
    except PassInProgressError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=3)
    except GovernorError as e:
        console.print(f"✗ Pass failed: {e}", style="bold red")
        raise typer.Exit(code=3)
    except Exception as e:
        console.print(f"✗ Error running pass: {e}", style="bold red")
        logger.exception("Unexpected error during pass")
        raise typer.Exit(code=2)


@app.command()
def classify(
    kind: Optional[List[str]] = typer.Option(None, "--kind", "-k", help="Resource kind (can specify multiple)"),
    region: Optional[List[str]] = typer.Option(None, "--region", "-r", help="Region (can specify multiple)"),
    inventory_file: Optional[str] = typer.Option(
        None, "--inventory-file", "-i", help="Read the inventory from a YAML snapshot file instead of AWS"
    ),
    json_output: bool = typer.Option(False, "--json", help="Print verdicts as JSON"),
):
    """Preview classifier verdicts without touching lifecycle state."""
    try:
        resource_filter = _build_filter(kind, region, None)
        inventory = _build_inventory(inventory_file, region, quiet=json_output)

        governor = Governor(
            inventory=inventory,
            store=YamlStateStore(config.state_dir),
            notifier=LogNotifier(),
            executor=AwsResourceDeleter(aws_profile=config.aws_profile),
            rules=config.to_rules(),
            settings=config.to_settings(),
        )
        verdicts = governor.classify_all(resource_filter)

        if json_output:
            _print_json([dict(resource_id=r.id, kind=r.kind.value, **v.to_dict()) for r, v in verdicts])
        else:
            PassReporter(console).display_verdicts(verdicts)

    except typer.Exit:
        raise
    except (typer.BadParameter, ValueError, ConfigError) as e:
        console.print(f"✗ Error: {e}", style="bold red")
        raise typer.Exit(code=1)
    except CredentialValidationError as e:
        console.print(f"✗ Error: {e}", style="bold red")
        raise typer.Exit(code=3)
    except InventoryError as e:
        console.print(f"✗ Inventory error: {e}", style="bold red")
        raise typer.Exit(code=3)
    except Exception as e:
        console.print(f"✗ Error classifying resources: {e}", style="bold red")
        raise typer.Exit(code=2)


@app.command()
def status(
    phase: Optional[str] = typer.Option(
        None,
        "--phase",
        help="Only show records in this phase (unseen, warned, deletion_pending, deleted, deletion_failed)",
    ),
    json_output: bool = typer.Option(False, "--json", help="Print records as JSON"),
):
    """Show stored lifecycle records."""
    try:
        store = YamlStateStore(config.state_dir)
        if phase:
            try:
                records = store.list_by_phase(LifecyclePhase(phase.lower()))
            except ValueError:
                console.print(f"✗ Unknown phase: {phase}", style="bold red")
                raise typer.Exit(code=1)
        else:
            records = store.list_all()

        if json_output:
            _print_json([record.to_dict() for record in sorted(records, key=lambda r: r.resource_id)])
        else:
            PassReporter(console).display_records(records, config.retry_budget)

    except typer.Exit:
        raise
    except GovernorError as e:
        console.print(f"✗ Error reading lifecycle state: {e}", style="bold red")
        raise typer.Exit(code=2)


# Audit commands group
audit_app = typer.Typer(help="Pass audit log commands")
app.add_typer(audit_app, name="audit")


@audit_app.command("list")
def audit_list(
    since: Optional[str] = typer.Option(None, "--since", help="Only passes started on or after this date (YYYY-MM-DD)"),
    until: Optional[str] = typer.Option(
        None, "--until", help="Only passes started on or before this date (YYYY-MM-DD)"
    ),
    limit: int = typer.Option(20, "--limit", "-n", help="Show at most this many passes (most recent)"),
):
    """List audited passes."""
    try:
        since_dt = _parse_date_option(since, "--since")
        until_dt = _parse_date_option(until, "--until", end_of_day=True)

        passes = AuditStorage(config.audit_dir).query_passes(since=since_dt, until=until_dt)
        if not passes:
            console.print("[yellow]No audited passes found[/yellow]")
            return

        table = Table(title="Audited Passes", show_header=True, header_style="bold magenta")
        table.add_column("Pass ID", style="cyan")
        table.add_column("Started")
        table.add_column("Mode")
        table.add_column("Status")
        table.add_column("Warned", justify="right")
        table.add_column("Deleted", justify="right")
        table.add_column("Failed", justify="right")
        table.add_column("Terminal", justify="right")

        for entry in passes[-limit:]:
            info = entry["pass"]
            counts = info.get("counts", {})
            table.add_row(
                info["pass_id"],
                info["started_at"][:19],
                "dry-run" if info.get("dry_run") else "live",
                info["status"],
                str(counts.get("warned", 0)),
                str(counts.get("deleted", 0)),
                str(counts.get("failed", 0)),
                str(len(info.get("terminal_failures", []))),
            )

        console.print(table)

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"✗ Error listing audit logs: {e}", style="bold red")
        raise typer.Exit(code=2)


@audit_app.command("show")
def audit_show(
    pass_id: str = typer.Argument(..., help="Pass ID to show"),
):
    """Show one audited pass as JSON."""
    try:
        entry = AuditStorage(config.audit_dir).get_pass(pass_id)
        if entry is None:
            console.print(f"✗ Pass '{pass_id}' not found", style="bold red")
            raise typer.Exit(code=1)

        _print_json(entry)

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"✗ Error showing audit log: {e}", style="bold red")
        raise typer.Exit(code=2)


def _parse_date_option(value: Optional[str], option: str, end_of_day: bool = False) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        console.print(f"✗ Invalid date for {option}: {value} (expected YYYY-MM-DD)", style="bold red")
        raise typer.Exit(code=1)
    if end_of_day:
        parsed = parsed.replace(hour=23, minute=59, second=59)
    return parsed


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
