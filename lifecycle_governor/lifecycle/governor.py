"""Governor pass orchestration.

Main orchestrator for lifecycle passes: inventory snapshot, classification,
reconciliation against stored lifecycle records, notification or deletion,
persistence and the pass summary.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, FrozenSet, List, Optional, Tuple

from lifecycle_governor.inventory.base import InventoryAdapter, InventoryFilter
from lifecycle_governor.lifecycle.audit import AuditStorage
from lifecycle_governor.lifecycle.classifier import ResourceClassifier
from lifecycle_governor.lifecycle.errors import InventoryError, PersistenceError
from lifecycle_governor.lifecycle.executor import DeletionExecutor, DeletionResult
from lifecycle_governor.lifecycle.state_store import StateStore
from lifecycle_governor.models.lifecycle_record import DeletionErrorKind, LifecyclePhase, LifecycleRecord
from lifecycle_governor.models.lifecycle_rules import LifecycleRules
from lifecycle_governor.models.pass_summary import ActionType, PassAction, PassStatus, PassSummary
from lifecycle_governor.models.resource import Resource, ensure_utc
from lifecycle_governor.models.verdict import Verdict
from lifecycle_governor.notify.base import ExpiryNotice, NoticeKind, NotificationResult, Notifier

logger = logging.getLogger(__name__)


@dataclass
class GovernorSettings:
    """Pass behaviour that is not classification policy.

    Attributes:
        fallback_owner: Recipient for resources without an owner tag
        retry_budget: Deletion attempts (one per pass) a record may consume
        dry_run: Plan and log only; no notifier, executor or record writes
        force_delete: Allow deletion without a prior warning cycle
        max_workers: Worker pool size for per-resource processing
        pass_timeout_seconds: No new deletions start after this many seconds
        deleted_retention_days: How long Deleted records are kept
        operator_recipient: Recipient of terminal-failure alerts
    """

    fallback_owner: Optional[str] = None
    retry_budget: int = 3
    dry_run: bool = False
    force_delete: bool = False
    max_workers: int = 8
    pass_timeout_seconds: Optional[float] = None
    deleted_retention_days: int = 30
    operator_recipient: Optional[str] = None

    def validate(self) -> None:
        """Validate settings.

        Raises:
            ValueError: If a setting is out of range
        """
        if self.retry_budget < 1:
            raise ValueError("retry_budget must be at least 1")
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.pass_timeout_seconds is not None and self.pass_timeout_seconds <= 0:
            raise ValueError("pass_timeout_seconds must be positive")
        if self.deleted_retention_days < 0:
            raise ValueError("deleted_retention_days cannot be negative")


@dataclass
class _PassContext:
    """Per-pass state shared by the worker threads."""

    now: datetime
    dry_run: bool
    deadline: Optional[float] = None
    aborted: threading.Event = field(default_factory=threading.Event)
    terminal: List[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def deadline_passed(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def add_terminal(self, resource_id: str) -> None:
        with self._lock:
            self.terminal.append(resource_id)


class Governor:
    """Lifecycle governor orchestrator.

    Runs passes over the current inventory. Each resource moves through its
    lifecycle at most one step per pass, except a retry, which durably writes
    DeletionPending immediately before the deletion attempt of the same pass.

    Safety rules:
        - nothing is deleted unless DeletionPending was written first
        - nothing reaches DeletionPending unless a warning was delivered at
          least the grace period earlier (or force_delete is set)
        - a PersistenceError stops all further notifications and deletions

    Attributes:
        inventory: Inventory adapter producing the snapshot
        store: Lifecycle record store
        notifier: Notification transport
        executor: Deletion executor
        rules: Classification rules
        settings: Pass behaviour
        audit_storage: Audit trail (optional)
    """

    def __init__(
        self,
        inventory: InventoryAdapter,
        store: StateStore,
        notifier: Notifier,
        executor: DeletionExecutor,
        rules: LifecycleRules,
        settings: Optional[GovernorSettings] = None,
        audit_storage: Optional[AuditStorage] = None,
    ) -> None:
        self.inventory = inventory
        self.store = store
        self.notifier = notifier
        self.executor = executor
        self.rules = rules
        self.settings = settings or GovernorSettings()
        self.settings.validate()
        self.audit_storage = audit_storage
        self.classifier = ResourceClassifier(rules)

        self._resource_locks: Dict[str, threading.Lock] = {}
        self._resource_locks_guard = threading.Lock()

    def classify_all(
        self, resource_filter: Optional[InventoryFilter] = None, now: Optional[datetime] = None
    ) -> List[Tuple[Resource, Verdict]]:
        """Classify the current inventory without touching state.

        Args:
            resource_filter: Kind and tag predicates (optional)
            now: Evaluation time (default: current UTC time)

        Returns:
            (resource, verdict) pairs sorted by resource id

        Raises:
            InventoryError: If the inventory cannot be listed
        """
        now = ensure_utc(now or datetime.now(timezone.utc))
        resources = self.inventory.list_resources(resource_filter)
        return [(resource, self.classifier.classify(resource, now)) for resource in resources]

    def run_pass(
        self, resource_filter: Optional[InventoryFilter] = None, now: Optional[datetime] = None
    ) -> PassSummary:
        """Run one governor pass.

        Pass-level failures (inventory or store unavailable, a failed record
        write) do not raise: the returned summary has status failed, the
        outcomes collected so far and the error message.

        Args:
            resource_filter: Kind and tag predicates (optional)
            now: Pass time (default: current UTC time)

        Returns:
            PassSummary for the pass

        Raises:
            PassInProgressError: If another pass holds the store
        """
        resource_filter = resource_filter or InventoryFilter()
        now = ensure_utc(now or datetime.now(timezone.utc))
        started = time.monotonic()

        summary = PassSummary(pass_id=f"pass_{uuid.uuid4()}", started_at=now, dry_run=self.settings.dry_run)
        context = _PassContext(now=now, dry_run=self.settings.dry_run)
        if self.settings.pass_timeout_seconds is not None:
            context.deadline = started + self.settings.pass_timeout_seconds

        prefix = "[dry-run] " if context.dry_run else ""
        logger.info(f"{prefix}Starting pass {summary.pass_id} at {now.isoformat()}")

        # Dry runs write nothing to the store, so they do not claim it
        if not context.dry_run:
            self.store.acquire_pass_lock()

        try:
            self._run(summary, context, resource_filter)
        except (InventoryError, PersistenceError) as e:
            logger.error(f"Pass {summary.pass_id} aborted: {e}")
            summary.fail(str(e), self._completed_at(now, started))
        finally:
            if not context.dry_run:
                self.store.release_pass_lock()

        summary.terminal_failures = sorted(set(context.terminal))
        if summary.status == PassStatus.RUNNING:
            summary.finish(self._completed_at(now, started))

        self._write_audit(summary)

        logger.info(
            f"{prefix}Pass {summary.pass_id} {summary.status.value}: "
            + ", ".join(f"{key}={value}" for key, value in summary.counts().items())
        )
        for resource_id in summary.terminal_failures:
            logger.error(f"Terminal deletion failure needs manual intervention: {resource_id}")

        return summary

    def _run(self, summary: PassSummary, context: _PassContext, resource_filter: InventoryFilter) -> None:
        resources = self.inventory.list_resources(resource_filter)
        records = {record.resource_id: record for record in self.store.list_all()}
        logger.debug(f"Pass {summary.pass_id}: {len(resources)} resources, {len(records)} records")

        results: Dict[str, PassAction] = {}
        abort_error: Optional[PersistenceError] = None

        with ThreadPoolExecutor(max_workers=self.settings.max_workers) as pool:
            futures = {
                resource.id: pool.submit(self._process_resource, context, resource, records.get(resource.id))
                for resource in resources
            }
            for resource in resources:
                try:
                    results[resource.id] = futures[resource.id].result()
                except PersistenceError as e:
                    context.aborted.set()
                    abort_error = abort_error or e
                    summary.errors[resource.id] = str(e)
                except Exception as e:
                    logger.warning(f"Failed to process {resource.kind.value} {resource.id}: {e}")
                    summary.errors[resource.id] = str(e)
                    results[resource.id] = PassAction(
                        resource_id=resource.id,
                        kind=resource.kind.value,
                        action=ActionType.ERROR,
                        from_phase=records[resource.id].phase if resource.id in records else None,
                        to_phase=records[resource.id].phase if resource.id in records else None,
                        detail=str(e),
                        dry_run=context.dry_run,
                    )

        for resource in resources:
            if resource.id in results:
                summary.add_action(results[resource.id])

        if abort_error is not None:
            raise abort_error

        seen = {resource.id for resource in resources}
        missing = [record for record in records.values() if record.resource_id not in seen]
        self._reconcile_missing(summary, context, resource_filter, missing)

    def _lock_for(self, resource_id: str) -> threading.Lock:
        with self._resource_locks_guard:
            lock = self._resource_locks.get(resource_id)
            if lock is None:
                lock = threading.Lock()
                self._resource_locks[resource_id] = lock
            return lock

    def _process_resource(
        self, context: _PassContext, resource: Resource, record: Optional[LifecycleRecord]
    ) -> PassAction:
        """Apply the lifecycle transition policy to one resource."""
        with self._lock_for(resource.id):
            verdict = self.classifier.classify(resource, context.now)
            from_phase = record.phase if record else None
            action = PassAction(
                resource_id=resource.id,
                kind=resource.kind.value,
                action=ActionType.NONE,
                from_phase=from_phase,
                to_phase=from_phase,
                verdict=verdict.action.value,
                detail=verdict.reason,
                dry_run=context.dry_run,
            )

            if context.aborted.is_set():
                action.detail = "Skipped, pass aborted"
                return action

            if record is None:
                record = LifecycleRecord.new(resource.id, resource.kind, context.now, region=resource.region)
                action.to_phase = LifecyclePhase.UNSEEN

            if record.phase == LifecyclePhase.UNSEEN:
                return self._handle_unseen(context, resource, record, verdict, action)
            if record.phase == LifecyclePhase.WARNED:
                return self._handle_warned(context, resource, record, verdict, action)
            if record.phase == LifecyclePhase.DELETION_PENDING:
                return self._handle_pending(context, resource, record, verdict, action)
            if record.phase == LifecyclePhase.DELETION_FAILED:
                return self._handle_failed(context, resource, record, verdict, action)

            action.detail = "Already deleted"
            return action

    def _handle_unseen(
        self,
        context: _PassContext,
        resource: Resource,
        record: LifecycleRecord,
        verdict: Verdict,
        action: PassAction,
    ) -> PassAction:
        if not verdict.needs_warning:
            if action.from_phase is None:
                action.action = ActionType.TRACKED
                self._put(context, record)
            return action

        if verdict.is_delete_eligible and self.settings.force_delete:
            logger.warning(f"{self._prefix(context)}Force-override: scheduling {resource.id} without a warning cycle")
            record.mark_pending(context.now, forced=True)
            self._put(context, record)
            action.action = ActionType.SCHEDULED
            action.to_phase = LifecyclePhase.DELETION_PENDING
            action.detail = f"Forced: {verdict.reason}"
            return action

        recipient = resource.owner or self.settings.fallback_owner
        if context.dry_run:
            if recipient:
                logger.info(f"[dry-run] Would warn {recipient} about {resource.id}: {verdict.reason}")
                action.action = ActionType.NOTIFIED
                action.to_phase = LifecyclePhase.WARNED
            else:
                logger.info(f"[dry-run] No recipient for {resource.id}: no owner tag and no fallback_owner")
                action.action = ActionType.NOTIFY_FAILED
            return action

        if context.aborted.is_set():
            action.detail = "Skipped, pass aborted"
            return action

        if not recipient:
            result = NotificationResult.failed("No owner tag and no fallback_owner configured")
        else:
            notice = ExpiryNotice(
                kind=NoticeKind.WARNING,
                resource_kind=resource.kind.value,
                message=verdict.reason,
                days_until_expiry=verdict.days_until_expiry,
                eligible_on=verdict.eligible_on,
                grace_period_days=self.rules.grace_period_days,
                region=resource.region,
                used_fallback=resource.owner is None,
                protection_tags=tuple(self.rules.protection_tags),
            )
            result = self._notify(resource.id, recipient, notice)

        if result.delivered:
            record.mark_warned(context.now, recipient)
            self._put(context, record)
            logger.info(f"Warned {recipient} about {resource.kind.value} {resource.id}: {verdict.reason}")
            action.action = ActionType.NOTIFIED
            action.to_phase = LifecyclePhase.WARNED
            return action

        record.mark_notify_failed(context.now, result.reason)
        self._put(context, record)
        logger.warning(f"Warning for {resource.id} not delivered: {result.reason}")
        action.action = ActionType.NOTIFY_FAILED
        action.to_phase = LifecyclePhase.UNSEEN
        action.detail = result.reason
        return action

    def _handle_warned(
        self,
        context: _PassContext,
        resource: Resource,
        record: LifecycleRecord,
        verdict: Verdict,
        action: PassAction,
    ) -> PassAction:
        if not verdict.is_delete_eligible:
            # Warned is never reset by a later Keep verdict; only disappearance resets it
            return action

        grace = self.rules.grace_period_days
        grace_elapsed = record.grace_elapsed(context.now, grace)
        if not grace_elapsed and not self.settings.force_delete:
            action.detail = f"Grace period of {grace} days since warning not elapsed"
            return action

        record.mark_pending(context.now, forced=not grace_elapsed)
        self._put(context, record)
        logger.info(
            f"{self._prefix(context)}Scheduled {resource.kind.value} {resource.id} for deletion: {verdict.reason}"
        )
        action.action = ActionType.SCHEDULED
        action.to_phase = LifecyclePhase.DELETION_PENDING
        return action

    def _handle_pending(
        self,
        context: _PassContext,
        resource: Resource,
        record: LifecycleRecord,
        verdict: Verdict,
        action: PassAction,
    ) -> PassAction:
        if not verdict.is_delete_eligible:
            logger.info(f"Holding deletion of {resource.id}: no longer delete-eligible ({verdict.reason})")
            action.action = ActionType.HELD
            action.detail = f"Held: {verdict.reason}"
            return action

        if context.deadline_passed():
            action.action = ActionType.DEFERRED
            action.detail = "Pass timeout reached, deletion deferred"
            return action

        return self._delete(context, resource, record, action)

    def _handle_failed(
        self,
        context: _PassContext,
        resource: Resource,
        record: LifecycleRecord,
        verdict: Verdict,
        action: PassAction,
    ) -> PassAction:
        budget = self.settings.retry_budget
        if not record.can_retry(budget):
            context.add_terminal(resource.id)
            action.detail = (
                f"Terminal after {record.attempts} attempt(s): {record.last_error or 'unknown error'}"
            )
            return action

        if not verdict.is_delete_eligible:
            action.action = ActionType.HELD
            action.detail = f"Held: {verdict.reason}"
            return action

        if context.deadline_passed():
            action.action = ActionType.DEFERRED
            action.detail = "Pass timeout reached, retry deferred"
            return action

        # Durable intent before the retry
        record.mark_pending(context.now)
        self._put(context, record)
        logger.info(
            f"{self._prefix(context)}Retrying deletion of {resource.id} "
            f"(attempt {record.attempts + 1}/{budget})"
        )
        return self._delete(context, resource, record, action)

    def _delete(
        self, context: _PassContext, resource: Resource, record: LifecycleRecord, action: PassAction
    ) -> PassAction:
        if context.dry_run:
            logger.info(f"[dry-run] Would delete {resource.kind.value} {resource.id}")
            action.action = ActionType.DELETED
            action.to_phase = LifecyclePhase.DELETED
            return action

        if context.aborted.is_set():
            action.to_phase = record.phase
            action.detail = "Skipped, pass aborted"
            return action

        try:
            result = self.executor.delete(resource)
        except Exception as e:
            logger.warning(f"Deletion executor raised for {resource.id}: {e}")
            result = DeletionResult.failed(DeletionErrorKind.UNVERIFIED, f"Unexpected executor error: {e}")

        if result.deleted:
            record.mark_deleted(context.now)
            self._put(context, record)
            logger.info(f"Deleted {resource.kind.value} {resource.id} ({result.message})")
            action.action = ActionType.DELETED
            action.to_phase = LifecyclePhase.DELETED
            action.detail = result.message
            return action

        error_kind = result.error_kind or DeletionErrorKind.PROVIDER_ERROR
        record.mark_failed(context.now, error_kind, result.message)
        self._put(context, record)
        action.action = ActionType.DELETE_FAILED
        action.to_phase = LifecyclePhase.DELETION_FAILED
        action.detail = f"{error_kind.value}: {result.message}"

        if record.is_terminal(self.settings.retry_budget):
            context.add_terminal(resource.id)
            logger.error(
                f"Deletion of {resource.id} failed terminally after {record.attempts} attempt(s): "
                f"{error_kind.value}: {result.message}"
            )
            self._alert_operator(resource, record)
        else:
            logger.warning(
                f"Deletion of {resource.id} failed ({error_kind.value}), "
                f"attempt {record.attempts}/{self.settings.retry_budget}: {result.message}"
            )
        return action

    def _reconcile_missing(
        self,
        summary: PassSummary,
        context: _PassContext,
        resource_filter: InventoryFilter,
        missing: List[LifecycleRecord],
    ) -> None:
        """Remove records of vanished resources and prune old Deleted records."""
        retention = timedelta(days=self.settings.deleted_retention_days)
        listed_regions = self.inventory.listed_regions(resource_filter)

        for record in sorted(missing, key=lambda r: r.resource_id):
            if record.phase == LifecyclePhase.DELETED:
                deleted_at = record.deleted_at or record.updated_at
                if context.now - deleted_at < retention:
                    continue
                action_type = ActionType.PRUNED
                detail = f"Deleted on {deleted_at.date().isoformat()}, past {retention.days} day retention"
            elif resource_filter.covers_record_kind(record.kind) and _region_listed(record, listed_regions):
                action_type = ActionType.RESET
                detail = f"Vanished from inventory while {record.phase.value}"
            else:
                continue

            if context.dry_run:
                logger.info(f"[dry-run] Would remove record {record.resource_id}: {detail}")
            else:
                self.store.delete(record.resource_id)
                logger.info(f"Removed record {record.resource_id}: {detail}")

            summary.add_action(
                PassAction(
                    resource_id=record.resource_id,
                    kind=record.kind.value,
                    action=action_type,
                    from_phase=record.phase,
                    to_phase=None,
                    detail=detail,
                    dry_run=context.dry_run,
                )
            )

    def _notify(self, resource_id: str, recipient: str, notice: ExpiryNotice) -> NotificationResult:
        try:
            return self.notifier.notify(resource_id, recipient, notice)
        except Exception as e:
            return NotificationResult.failed(f"{self.notifier.name} notifier raised: {e}")

    def _alert_operator(self, resource: Resource, record: LifecycleRecord) -> None:
        recipient = self.settings.operator_recipient
        if not recipient:
            return

        notice = ExpiryNotice(
            kind=NoticeKind.OPERATOR_ALERT,
            resource_kind=resource.kind.value,
            message=(
                f"Deletion failed after {record.attempts} attempt(s) "
                f"({record.error_kind.value if record.error_kind else 'unknown'}): {record.last_error}. "
                f"Manual intervention required."
            ),
            region=resource.region,
        )
        result = self._notify(resource.id, recipient, notice)
        if not result.delivered:
            logger.warning(f"Operator alert for {resource.id} not delivered: {result.reason}")

    def _put(self, context: _PassContext, record: LifecycleRecord) -> None:
        if context.dry_run:
            return
        try:
            self.store.put(record)
        except PersistenceError:
            # Workers check this flag before every notify and delete
            context.aborted.set()
            raise

    def _write_audit(self, summary: PassSummary) -> None:
        if self.audit_storage is None:
            return
        try:
            path = self.audit_storage.log_pass(summary)
        except PersistenceError as e:
            logger.error(f"Audit log for pass {summary.pass_id} not written: {e}")
            summary.errors["audit"] = str(e)
            if summary.status == PassStatus.COMPLETED:
                summary.status = PassStatus.PARTIAL
            return
        logger.debug(f"Audit log written to {path}")

    @staticmethod
    def _prefix(context: _PassContext) -> str:
        return "[dry-run] " if context.dry_run else ""

    @staticmethod
    def _completed_at(now: datetime, started: float) -> datetime:
        return now + timedelta(seconds=time.monotonic() - started)


def _region_listed(record: LifecycleRecord, listed_regions: Optional[FrozenSet[str]]) -> bool:
    # Records written before regions were tracked carry an empty region
    if listed_regions is None or not record.region:
        return True
    return record.region in listed_regions
