"""Unit tests for PassReporter."""

from __future__ import annotations

import csv
import json
from io import StringIO
from pathlib import Path

from rich.console import Console

from lifecycle_governor.lifecycle.reporter import PassReporter
from lifecycle_governor.models.lifecycle_record import DeletionErrorKind, LifecyclePhase, LifecycleRecord
from lifecycle_governor.models.pass_summary import ActionType, PassAction, PassSummary
from lifecycle_governor.models.resource import ResourceKind
from lifecycle_governor.models.verdict import Verdict
from tests.fixtures.resources import create_vm, utc


def create_reporter() -> tuple:
    buffer = StringIO()
    return PassReporter(console=Console(file=buffer, width=200)), buffer


def create_summary(dry_run: bool = False) -> PassSummary:
    summary = PassSummary(pass_id="pass_abc", started_at=utc(2024, 1, 18), dry_run=dry_run)
    summary.add_action(
        PassAction(
            resource_id="vm-1",
            kind="VM",
            action=ActionType.SCHEDULED,
            from_phase=LifecyclePhase.WARNED,
            to_phase=LifecyclePhase.DELETION_PENDING,
            detail="Expired on 2024-01-01",
            dry_run=dry_run,
        )
    )
    summary.add_action(
        PassAction(
            resource_id="vm-2",
            kind="VM",
            action=ActionType.TRACKED,
            to_phase=LifecyclePhase.UNSEEN,
            detail="No idle or expiry rule matched",
        )
    )
    summary.finish(utc(2024, 1, 18))
    return summary


class TestPassReporter:
    """Tests for PassReporter."""

    def test_display_shows_counts_and_changes(self) -> None:
        """Test the summary panel, counts and changed resources are shown."""
        reporter, buffer = create_reporter()

        reporter.display(create_summary())

        output = buffer.getvalue()
        assert "Lifecycle Pass pass_abc" in output
        assert "LIVE" in output
        assert "Deletion pending" in output
        assert "vm-1" in output
        assert "warned → deletion_pending" in output
        assert "vm-2" not in output

    def test_display_details_includes_unchanged(self) -> None:
        """Test details mode lists tracked resources too."""
        reporter, buffer = create_reporter()

        reporter.display(create_summary(), show_details=True)

        assert "vm-2" in buffer.getvalue()

    def test_display_dry_run(self) -> None:
        """Test dry-run passes are labelled."""
        reporter, buffer = create_reporter()

        reporter.display(create_summary(dry_run=True))

        output = buffer.getvalue()
        assert "DRY RUN" in output
        assert "(dry-run)" in output

    def test_display_terminal_failures_and_errors(self) -> None:
        """Test terminal failures and per-resource errors are listed."""
        reporter, buffer = create_reporter()
        summary = PassSummary(pass_id="pass_x", started_at=utc(2024, 1, 18))
        summary.terminal_failures = ["vm-9"]
        summary.errors = {"vm-3": "bad tag data"}
        summary.finish(utc(2024, 1, 18))

        reporter.display(summary)

        output = buffer.getvalue()
        assert "No lifecycle changes" in output
        assert "manual intervention" in output
        assert "vm-9" in output
        assert "bad tag data" in output

    def test_display_failed_pass(self) -> None:
        """Test the pass-level error is shown."""
        reporter, buffer = create_reporter()
        summary = PassSummary(pass_id="pass_x", started_at=utc(2024, 1, 18))
        summary.fail("provider unreachable", utc(2024, 1, 18))

        reporter.display(summary)

        assert "Pass failed: provider unreachable" in buffer.getvalue()

    def test_display_verdicts(self) -> None:
        """Test verdict table rows."""
        reporter, buffer = create_reporter()
        verdict = Verdict.delete_eligible(reason="Expired on 2024-01-01", eligible_on=utc(2024, 1, 8).date())

        reporter.display_verdicts([(create_vm("vm-1"), verdict)])

        output = buffer.getvalue()
        assert "delete_eligible" in output
        assert "alice@example.com" in output
        assert "2024-01-08" in output

    def test_display_verdicts_empty(self) -> None:
        """Test empty verdict listing message."""
        reporter, buffer = create_reporter()

        reporter.display_verdicts([])

        assert "No resources found" in buffer.getvalue()

    def test_display_records_marks_terminal(self) -> None:
        """Test terminal failed records are flagged."""
        reporter, buffer = create_reporter()
        record = LifecycleRecord.new("vm-1", ResourceKind.VM, utc(2024, 1, 1))
        record.mark_warned(utc(2024, 1, 1), "alice@example.com")
        record.mark_pending(utc(2024, 1, 8))
        record.mark_failed(utc(2024, 1, 9), DeletionErrorKind.PERMISSION_DENIED, "AccessDenied")

        reporter.display_records([record], retry_budget=3)

        output = buffer.getvalue()
        assert "(terminal)" in output
        assert "1/3" in output
        assert "AccessDenied" in output

    def test_display_records_empty(self) -> None:
        """Test empty record listing message."""
        reporter, buffer = create_reporter()

        reporter.display_records([], retry_budget=3)

        assert "No lifecycle records found" in buffer.getvalue()

    def test_export_json(self, tmp_path: Path) -> None:
        """Test exporting the summary to JSON."""
        reporter, buffer = create_reporter()
        output_file = tmp_path / "out" / "pass.json"

        reporter.export_json(create_summary(), str(output_file))

        data = json.loads(output_file.read_text())
        assert data["pass_id"] == "pass_abc"
        assert data["counts"]["deletion_pending"] == 1
        assert len(data["actions"]) == 2
        assert "exported" in buffer.getvalue()

    def test_export_csv(self, tmp_path: Path) -> None:
        """Test exporting actions to CSV with one row per resource."""
        reporter, _ = create_reporter()
        output_file = tmp_path / "pass.csv"

        reporter.export_csv(create_summary(), str(output_file))

        with open(output_file, newline="") as f:
            rows = list(csv.DictReader(f))
        assert [row["resource_id"] for row in rows] == ["vm-1", "vm-2"]
        assert rows[0]["pass_id"] == "pass_abc"
        assert rows[0]["action"] == "scheduled"
