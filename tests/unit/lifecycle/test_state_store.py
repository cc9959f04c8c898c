"""Tests for YamlStateStore class."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from lifecycle_governor.lifecycle.errors import PassInProgressError, PersistenceError
from lifecycle_governor.lifecycle.state_store import YamlStateStore
from lifecycle_governor.models.lifecycle_record import DeletionErrorKind, LifecyclePhase, LifecycleRecord
from lifecycle_governor.models.resource import ResourceKind
from tests.fixtures.resources import utc

ARN = "arn:aws:ec2:us-east-1:123456789012:instance/i-0abc"


def create_record(resource_id: str = ARN) -> LifecycleRecord:
    return LifecycleRecord.new(resource_id, ResourceKind.VM, utc(2024, 1, 1))


class TestYamlStateStore:
    """Test suite for YamlStateStore."""

    def test_init_creates_records_directory(self, tmp_path: Path) -> None:
        """Test the records directory is created on initialization."""
        store = YamlStateStore(str(tmp_path / "state"))

        assert (tmp_path / "state" / "records").is_dir()
        assert store.list_all() == []

    def test_get_missing_record_returns_none(self, tmp_path: Path) -> None:
        """Test unknown resources have no record."""
        store = YamlStateStore(str(tmp_path))

        assert store.get(ARN) is None

    def test_put_and_get_preserves_fields(self, tmp_path: Path) -> None:
        """Test a written record is read back unchanged."""
        store = YamlStateStore(str(tmp_path))
        record = create_record()
        record.mark_warned(utc(2024, 1, 2), "alice@example.com")
        record.mark_pending(utc(2024, 1, 10))
        record.mark_failed(utc(2024, 1, 11), DeletionErrorKind.RATE_LIMITED, "Throttling")

        store.put(record)
        loaded = store.get(ARN)

        assert loaded == record
        assert loaded.error_kind == DeletionErrorKind.RATE_LIMITED
        assert loaded.warned_at == utc(2024, 1, 2)

    def test_put_replaces_previous_version(self, tmp_path: Path) -> None:
        """Test writes are last-write-wins with one record per resource."""
        store = YamlStateStore(str(tmp_path))
        record = create_record()
        store.put(record)
        record.mark_warned(utc(2024, 1, 2), "alice@example.com")
        store.put(record)

        records = store.list_all()

        assert len(records) == 1
        assert records[0].phase == LifecyclePhase.WARNED

    def test_record_file_is_plain_yaml(self, tmp_path: Path) -> None:
        """Test records are stored as readable YAML keyed by a hash of the id."""
        store = YamlStateStore(str(tmp_path))
        store.put(create_record())

        files = list((tmp_path / "records").glob("*.yaml"))

        assert len(files) == 1
        assert "/" not in files[0].stem
        data = yaml.safe_load(files[0].read_text())
        assert data["resource_id"] == ARN
        assert data["phase"] == "unseen"

    def test_delete_removes_record(self, tmp_path: Path) -> None:
        """Test deleting a record and deleting a missing record."""
        store = YamlStateStore(str(tmp_path))
        store.put(create_record())

        store.delete(ARN)
        store.delete(ARN)

        assert store.get(ARN) is None

    def test_list_by_phase(self, tmp_path: Path) -> None:
        """Test filtering records by phase."""
        store = YamlStateStore(str(tmp_path))
        warned = create_record("vm-1")
        warned.mark_warned(utc(2024, 1, 2), "alice@example.com")
        store.put(warned)
        store.put(create_record("vm-2"))

        result = store.list_by_phase(LifecyclePhase.WARNED)

        assert [r.resource_id for r in result] == ["vm-1"]

    def test_corrupt_record_raises_persistence_error(self, tmp_path: Path) -> None:
        """Test unreadable record files surface as PersistenceError."""
        store = YamlStateStore(str(tmp_path))
        (tmp_path / "records" / "broken.yaml").write_text("resource_id: [unterminated")

        with pytest.raises(PersistenceError, match="broken.yaml"):
            store.list_all()

    def test_write_failure_raises_persistence_error(self, tmp_path: Path) -> None:
        """Test an OS error while writing is reported as PersistenceError."""
        store = YamlStateStore(str(tmp_path))

        with patch("lifecycle_governor.lifecycle.state_store.os.replace", side_effect=OSError("No space left")):
            with pytest.raises(PersistenceError, match="No space left"):
                store.put(create_record())

        assert list((tmp_path / "records").iterdir()) == []

    def test_pass_lock_is_exclusive(self, tmp_path: Path) -> None:
        """Test a second pass cannot claim a held store."""
        store = YamlStateStore(str(tmp_path))
        other = YamlStateStore(str(tmp_path))

        store.acquire_pass_lock()
        with pytest.raises(PassInProgressError, match="pid="):
            other.acquire_pass_lock()

        store.release_pass_lock()
        other.acquire_pass_lock()
        other.release_pass_lock()

        assert not (tmp_path / "pass.lock").exists()

    def test_release_without_lock_is_noop(self, tmp_path: Path) -> None:
        """Test releasing an unheld lock does not raise."""
        store = YamlStateStore(str(tmp_path))

        store.release_pass_lock()
