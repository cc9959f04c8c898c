"""Integration tests for multi-pass governor workflows persisted on disk."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import yaml

from lifecycle_governor.inventory.file_inventory import FileInventoryAdapter
from lifecycle_governor.lifecycle.audit import AuditStorage
from lifecycle_governor.lifecycle.governor import Governor, GovernorSettings
from lifecycle_governor.lifecycle.state_store import YamlStateStore
from lifecycle_governor.models.lifecycle_record import LifecyclePhase
from lifecycle_governor.models.lifecycle_rules import LifecycleRules
from lifecycle_governor.models.pass_summary import PassStatus
from tests.fixtures.resources import RecordingNotifier, ScriptedExecutor, create_disk, create_vm, utc

START = utc(2024, 1, 10, 12)
EXPIRED = {"owner": "alice@example.com", "expiry_date": "2024-01-01"}


class Deployment:
    """A governor deployment whose state lives under one directory.

    Every pass builds a fresh Governor and stores, as a new process would.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.inventory_path = root / "inventory.yaml"
        self.notifier = RecordingNotifier()
        self.executor = ScriptedExecutor()

    def set_inventory(self, resources: list) -> None:
        self.inventory_path.write_text(yaml.safe_dump({"resources": [r.to_dict() for r in resources]}))

    @property
    def store(self) -> YamlStateStore:
        return YamlStateStore(str(self.root / "state"))

    @property
    def audit(self) -> AuditStorage:
        return AuditStorage(str(self.root / "audit-logs"))

    def run_pass(self, now, **settings):
        governor = Governor(
            inventory=FileInventoryAdapter(str(self.inventory_path)),
            store=self.store,
            notifier=self.notifier,
            executor=self.executor,
            rules=LifecycleRules(grace_period_days=7),
            settings=GovernorSettings(**settings),
            audit_storage=self.audit,
        )
        return governor.run_pass(now=now)

    def phases(self) -> dict:
        return {record.resource_id: record.phase for record in self.store.list_all()}


class TestGovernorWorkflow:
    """End-to-end lifecycle across passes and restarts."""

    def test_warn_schedule_delete_and_prune(self, tmp_path: Path) -> None:
        """Test expired and idle resources are retired over several passes."""
        deployment = Deployment(tmp_path)
        vm = create_vm("vm-1", tags=EXPIRED)
        disk = create_disk("disk-1", status="unattached", since=utc(2023, 12, 1))
        healthy = create_vm("vm-2", tags={"owner": "bob@example.com"})
        deployment.set_inventory([vm, disk, healthy])

        first = deployment.run_pass(START)
        assert first.status == PassStatus.COMPLETED
        assert deployment.phases() == {
            "vm-1": LifecyclePhase.WARNED,
            "disk-1": LifecyclePhase.WARNED,
            "vm-2": LifecyclePhase.UNSEEN,
        }
        assert sorted(call[1] for call in deployment.notifier.calls) == ["alice@example.com", "bob@example.com"]

        deployment.run_pass(START + timedelta(days=3))
        assert deployment.phases()["vm-1"] == LifecyclePhase.WARNED
        assert deployment.executor.deleted == []

        deployment.run_pass(START + timedelta(days=8))
        assert deployment.phases()["vm-1"] == LifecyclePhase.DELETION_PENDING
        assert deployment.phases()["disk-1"] == LifecyclePhase.DELETION_PENDING
        assert deployment.executor.deleted == []

        fourth = deployment.run_pass(START + timedelta(days=9))
        assert fourth.deleted_count == 2
        assert sorted(deployment.executor.deleted) == ["disk-1", "vm-1"]
        assert deployment.store.get("vm-1").deleted_at == START + timedelta(days=9)

        deployment.set_inventory([healthy])
        within_retention = deployment.run_pass(START + timedelta(days=20))
        assert within_retention.pruned_count == 0
        assert deployment.phases()["vm-1"] == LifecyclePhase.DELETED

        after_retention = deployment.run_pass(START + timedelta(days=45))
        assert after_retention.pruned_count == 2
        assert deployment.phases() == {"vm-2": LifecyclePhase.UNSEEN}

        assert len(deployment.notifier.calls) == 2
        assert len(deployment.audit.query_passes()) == 6

    def test_vanished_warned_resource_starts_over(self, tmp_path: Path) -> None:
        """Test a resource that disappears while warned is warned again when it returns."""
        deployment = Deployment(tmp_path)
        vm = create_vm("vm-1", tags=EXPIRED)
        deployment.set_inventory([vm])
        deployment.run_pass(START)

        deployment.set_inventory([])
        vanished = deployment.run_pass(START + timedelta(days=1))
        assert vanished.vanished_count == 1
        assert deployment.phases() == {}

        deployment.set_inventory([vm])
        deployment.run_pass(START + timedelta(days=8))

        assert deployment.phases() == {"vm-1": LifecyclePhase.WARNED}
        assert deployment.store.get("vm-1").warned_at == START + timedelta(days=8)
        assert len(deployment.notifier.calls) == 2
        assert deployment.executor.deleted == []

    def test_dry_run_leaves_state_untouched(self, tmp_path: Path) -> None:
        """Test a dry run between live passes changes nothing on disk."""
        deployment = Deployment(tmp_path)
        deployment.set_inventory([create_vm("vm-1", tags=EXPIRED)])
        deployment.run_pass(START)

        preview = deployment.run_pass(START + timedelta(days=8), dry_run=True)

        assert preview.dry_run is True
        assert preview.deletion_pending_count == 1
        assert deployment.phases() == {"vm-1": LifecyclePhase.WARNED}
        assert len(deployment.notifier.calls) == 1
        assert [entry["pass"]["dry_run"] for entry in deployment.audit.query_passes()] == [False, True]
