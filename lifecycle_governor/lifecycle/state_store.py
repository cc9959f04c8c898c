"""Durable storage for per-resource lifecycle records.

Records are stored as one YAML file per resource so writes for distinct
resources never contend and a crashed write can only affect one record.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from lifecycle_governor.lifecycle.errors import PassInProgressError, PersistenceError
from lifecycle_governor.models.lifecycle_record import LifecyclePhase, LifecycleRecord
from lifecycle_governor.utils.hash import compute_id_hash

logger = logging.getLogger(__name__)


class StateStore(ABC):
    """Lifecycle record store contract.

    At most one record exists per resource id; writes are last-write-wins.
    Implementations raise PersistenceError when the backing storage fails.
    """

    @abstractmethod
    def get(self, resource_id: str) -> Optional[LifecycleRecord]:
        """Load the record for a resource, or None if it was never seen."""

    @abstractmethod
    def put(self, record: LifecycleRecord) -> None:
        """Durably write a record (replacing any previous version)."""

    @abstractmethod
    def delete(self, resource_id: str) -> None:
        """Remove a record; missing records are ignored."""

    @abstractmethod
    def list_all(self) -> List[LifecycleRecord]:
        """Return every stored record."""

    def list_by_phase(self, phase: LifecyclePhase) -> List[LifecycleRecord]:
        """Return every record currently in the given phase."""
        return [record for record in self.list_all() if record.phase == phase]

    def acquire_pass_lock(self) -> None:
        """Claim the store for one pass; raises PassInProgressError if already held."""

    def release_pass_lock(self) -> None:
        """Release the pass claim."""


class YamlStateStore(StateStore):
    """Lifecycle record storage backed by YAML files.

    Storage structure:
        ~/.lifecycle-governor/state/
            pass.lock
            records/
                <sha256(resource_id)>.yaml

    Attributes:
        state_dir: Base directory for lifecycle state
        records_dir: Directory holding one YAML file per record
    """

    LOCK_FILE = "pass.lock"

    def __init__(self, state_dir: Optional[str] = None) -> None:
        """Initialize the store.

        Args:
            state_dir: Base directory (default: ~/.lifecycle-governor/state)
        """
        if state_dir is None:
            state_dir = str(Path.home() / ".lifecycle-governor" / "state")

        self.state_dir = Path(state_dir)
        self.records_dir = self.state_dir / "records"
        try:
            self.records_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create state directory {self.records_dir}: {e}") from e

        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, resource_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(resource_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[resource_id] = lock
            return lock

    def _record_path(self, resource_id: str) -> Path:
        return self.records_dir / f"{compute_id_hash(resource_id)}.yaml"

    def get(self, resource_id: str) -> Optional[LifecycleRecord]:
        path = self._record_path(resource_id)
        if not path.exists():
            return None
        return self._load(path)

    def put(self, record: LifecycleRecord) -> None:
        path = self._record_path(record.resource_id)
        with self._lock_for(record.resource_id):
            try:
                fd, tmp_name = tempfile.mkstemp(dir=str(self.records_dir), prefix=".tmp-", suffix=".yaml")
                try:
                    with os.fdopen(fd, "w") as f:
                        yaml.safe_dump(record.to_dict(), f, default_flow_style=False, sort_keys=False)
                        f.flush()
                        os.fsync(f.fileno())
                    os.replace(tmp_name, path)
                except BaseException:
                    if os.path.exists(tmp_name):
                        os.unlink(tmp_name)
                    raise
            except (OSError, yaml.YAMLError) as e:
                raise PersistenceError(f"Failed to write record for {record.resource_id}: {e}") from e

        logger.debug(f"Stored record {record.resource_id} in phase {record.phase.value}")

    def delete(self, resource_id: str) -> None:
        path = self._record_path(resource_id)
        with self._lock_for(resource_id):
            try:
                path.unlink()
            except FileNotFoundError:
                return
            except OSError as e:
                raise PersistenceError(f"Failed to remove record for {resource_id}: {e}") from e

    def list_all(self) -> List[LifecycleRecord]:
        try:
            paths = sorted(self.records_dir.glob("*.yaml"))
        except OSError as e:
            raise PersistenceError(f"Cannot list records in {self.records_dir}: {e}") from e
        return [self._load(path) for path in paths if not path.name.startswith(".tmp-")]

    def acquire_pass_lock(self) -> None:
        lock_path = self.state_dir / self.LOCK_FILE
        try:
            fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            holder = ""
            try:
                holder = lock_path.read_text().strip()
            except OSError:
                pass
            raise PassInProgressError(
                f"Another pass holds {lock_path} ({holder or 'unknown holder'}); "
                f"remove the file if that pass is no longer running"
            )
        except OSError as e:
            raise PersistenceError(f"Cannot create pass lock {lock_path}: {e}") from e

        with os.fdopen(fd, "w") as f:
            f.write(f"pid={os.getpid()} acquired_at={datetime.now(timezone.utc).isoformat()}\n")

    def release_pass_lock(self) -> None:
        try:
            (self.state_dir / self.LOCK_FILE).unlink()
        except FileNotFoundError:
            pass

    def _load(self, path: Path) -> LifecycleRecord:
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f)
            return LifecycleRecord.from_dict(data)
        except (OSError, yaml.YAMLError, KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to read record file {path}: {e}") from e
