"""Audit storage for governor passes.

Stores and retrieves pass audit logs in YAML format for compliance and
troubleshooting. Dry runs are audited too; it is the only thing they persist.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import yaml

from lifecycle_governor.lifecycle.errors import PersistenceError
from lifecycle_governor.models.pass_summary import PassSummary


class AuditStorage:
    """Audit log storage and retrieval.

    Stores pass audit logs as YAML files organized by year/month.
    Supports querying passes by date range and retrieving a single pass.

    Storage structure:
        ~/.lifecycle-governor/audit-logs/
            2024/
                01/
                    pass-pass_123.yaml
                    pass-pass_456.yaml

    Attributes:
        storage_dir: Base directory for audit logs
    """

    def __init__(self, storage_dir: Optional[str] = None) -> None:
        """Initialize audit storage.

        Args:
            storage_dir: Base directory for audit logs (default: ~/.lifecycle-governor/audit-logs)
        """
        if storage_dir is None:
            storage_dir = str(Path.home() / ".lifecycle-governor" / "audit-logs")

        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)

    def log_pass(self, summary: PassSummary) -> Path:
        """Log a pass to audit storage.

        Creates a YAML file with pass metadata, counts and every per-resource
        action. Overwrites an existing log with the same pass ID.

        Args:
            summary: Pass summary to log

        Returns:
            Path of the written audit file

        Raises:
            PersistenceError: If the audit file cannot be written
        """
        year_month_dir = self.storage_dir / str(summary.started_at.year) / f"{summary.started_at.month:02d}"

        audit_data = {
            "metadata": {
                "version": "1.0",
                "log_type": "lifecycle_pass",
                "created_at": datetime.now(timezone.utc).isoformat(),
            },
            "pass": {
                key: value for key, value in summary.to_dict().items() if key != "actions"
            },
            "actions": [action.to_dict() for action in summary.actions],
        }

        audit_file = year_month_dir / f"pass-{summary.pass_id}.yaml"
        try:
            year_month_dir.mkdir(parents=True, exist_ok=True)
            with open(audit_file, "w") as f:
                yaml.safe_dump(audit_data, f, default_flow_style=False, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            raise PersistenceError(f"Failed to write audit log {audit_file}: {e}") from e

        return audit_file

    def get_pass(self, pass_id: str) -> Optional[dict]:
        """Retrieve a pass audit log by ID.

        Args:
            pass_id: Pass ID to retrieve

        Returns:
            Audit log dictionary if found, None otherwise
        """
        for audit_file in self.storage_dir.glob(f"*/*/pass-{pass_id}.yaml"):
            with open(audit_file, "r") as f:
                return yaml.safe_load(f)

        return None

    def query_passes(self, since: Optional[datetime] = None, until: Optional[datetime] = None) -> list[dict]:
        """Query passes within a date range, oldest first.

        Args:
            since: Start time (inclusive), None for all
            until: End time (inclusive), None for all

        Returns:
            List of pass audit logs matching criteria
        """
        results = []

        for audit_file in sorted(self.storage_dir.glob("*/*/pass-*.yaml")):
            with open(audit_file, "r") as f:
                audit_data = yaml.safe_load(f)

            started_at = datetime.fromisoformat(audit_data["pass"]["started_at"])
            if started_at.tzinfo is None:
                started_at = started_at.replace(tzinfo=timezone.utc)

            if since and started_at < _aware(since):
                continue
            if until and started_at > _aware(until):
                continue

            results.append(audit_data)

        results.sort(key=lambda data: data["pass"]["started_at"])
        return results


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
