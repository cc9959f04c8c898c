"""Tests for ResourceClassifier.

Covers protection, expiry, idle and the combination of triggers.
"""

from __future__ import annotations

from datetime import date

import pytest

from lifecycle_governor.lifecycle.classifier import ResourceClassifier, classify, idle_duration_days
from lifecycle_governor.models.lifecycle_rules import IdleRule, LifecycleRules
from lifecycle_governor.models.resource import ObservedState, Resource, ResourceKind
from lifecycle_governor.models.verdict import Trigger, VerdictAction
from tests.fixtures.resources import create_database, create_disk, create_vm, utc

NOW = utc(2024, 1, 10, 12)


@pytest.fixture
def classifier() -> ResourceClassifier:
    return ResourceClassifier(LifecycleRules(grace_period_days=7))


def with_expiry(expiry: str, **tags: str) -> dict:
    return {"owner": "alice@example.com", "expiry_date": expiry, **tags}


class TestProtection:
    """Protection always wins."""

    def test_protection_tag_keeps_expired_resource(self, classifier: ResourceClassifier) -> None:
        """Test a do-not-delete tag overrides an expired date."""
        vm = create_vm(tags=with_expiry("2020-01-01", **{"do-not-delete": "true"}))

        verdict = classifier.classify(vm, NOW)

        assert verdict.action == VerdictAction.KEEP
        assert "do-not-delete" in verdict.reason

    def test_protected_environment(self) -> None:
        """Test protected environments are matched case-insensitively."""
        rules = LifecycleRules(protected_environments=["prod"])
        vm = create_vm(tags=with_expiry("2020-01-01", environment="PROD"))

        verdict = ResourceClassifier(rules).classify(vm, NOW)

        assert verdict.is_keep
        assert "Protected environment" in verdict.reason

    def test_unprotected_environment_is_evaluated(self) -> None:
        """Test other environments fall through to the rules."""
        rules = LifecycleRules(protected_environments=["prod"])
        vm = create_vm(tags=with_expiry("2020-01-01", environment="dev"))

        assert ResourceClassifier(rules).classify(vm, NOW).is_delete_eligible


class TestExpiry:
    """Expiry-date evaluation."""

    def test_no_expiry_tag_keeps(self, classifier: ResourceClassifier) -> None:
        """Test resources without expiry or idleness are kept."""
        assert classifier.classify(create_vm(), NOW).is_keep

    def test_expiry_beyond_grace_keeps(self, classifier: ResourceClassifier) -> None:
        """Test an expiry more than the grace period away is not yet warned."""
        verdict = classifier.classify(create_vm(tags=with_expiry("2024-01-20")), NOW)

        assert verdict.is_keep

    def test_expiry_within_grace_warns(self, classifier: ResourceClassifier) -> None:
        """Test an upcoming expiry within the grace period warns."""
        verdict = classifier.classify(create_vm(tags=with_expiry("2024-01-15")), NOW)

        assert verdict.action == VerdictAction.WARN_PENDING
        assert verdict.days_until_expiry == 5
        assert verdict.eligible_on == date(2024, 1, 22)
        assert verdict.triggers == (Trigger.EXPIRY,)

    def test_recently_expired_still_warns(self, classifier: ResourceClassifier) -> None:
        """Test a resource expired less than the grace period ago is only warned."""
        verdict = classifier.classify(create_vm(tags=with_expiry("2024-01-05")), NOW)

        assert verdict.action == VerdictAction.WARN_PENDING
        assert verdict.days_until_expiry == -5
        assert "5 days ago" in verdict.reason

    def test_expired_past_grace_is_delete_eligible(self, classifier: ResourceClassifier) -> None:
        """Test a resource expired at least the grace period ago is delete-eligible."""
        verdict = classifier.classify(create_vm(tags=with_expiry("2024-01-03")), NOW)

        assert verdict.action == VerdictAction.DELETE_ELIGIBLE
        assert verdict.days_until_expiry == -7
        assert verdict.eligible_on == date(2024, 1, 10)

    @pytest.mark.parametrize("value", ["next tuesday", "2024-13-45", ""])
    def test_unparseable_expiry_is_ignored(self, classifier: ResourceClassifier, value: str) -> None:
        """Test malformed dates never expire a resource."""
        verdict = classifier.classify(create_vm(tags=with_expiry(value)), NOW)

        assert verdict.is_keep

    def test_expiry_datetime_value(self, classifier: ResourceClassifier) -> None:
        """Test full ISO timestamps are accepted as expiry dates."""
        verdict = classifier.classify(create_vm(tags=with_expiry("2024-01-03T08:00:00Z")), NOW)

        assert verdict.is_delete_eligible


class TestIdle:
    """Idle evaluation per kind."""

    def test_running_vm_is_not_idle(self, classifier: ResourceClassifier) -> None:
        """Test running VMs are kept."""
        vm = create_vm(status="running", since=utc(2023, 1, 1))

        assert classifier.classify(vm, NOW).is_keep

    def test_stopped_vm_below_threshold_keeps(self, classifier: ResourceClassifier) -> None:
        """Test a VM stopped for less than the threshold is kept."""
        vm = create_vm(status="stopped", since=utc(2023, 12, 31, 12))

        assert classifier.classify(vm, NOW).is_keep

    def test_stopped_vm_over_threshold_warns(self, classifier: ResourceClassifier) -> None:
        """Test an idle VM past the threshold is warned with days until eligibility."""
        vm = create_vm(status="stopped", since=utc(2023, 12, 21, 12))

        verdict = classifier.classify(vm, NOW)

        assert verdict.action == VerdictAction.WARN_PENDING
        assert verdict.days_until_expiry == 1
        assert verdict.eligible_on == date(2024, 1, 11)
        assert verdict.triggers == (Trigger.IDLE,)

    def test_stopped_vm_past_threshold_and_grace_is_eligible(self, classifier: ResourceClassifier) -> None:
        """Test idle for threshold plus grace is delete-eligible."""
        vm = create_vm(status="stopped", since=utc(2023, 12, 20, 12))

        verdict = classifier.classify(vm, NOW)

        assert verdict.is_delete_eligible
        assert "Idle for 21 days" in verdict.reason

    def test_unattached_disk(self, classifier: ResourceClassifier) -> None:
        """Test unattached disks use their status duration."""
        disk = create_disk(status="unattached", since=utc(2023, 12, 1))

        assert classifier.classify(disk, NOW).is_delete_eligible

    def test_idle_since_tag(self, classifier: ResourceClassifier) -> None:
        """Test the idle_since tag counts even when the status is not idle."""
        vm = create_vm(tags={"owner": "alice@example.com", "idle_since": "2023-12-01"})

        assert classifier.classify(vm, NOW).is_delete_eligible

    def test_future_idle_since_is_ignored(self, classifier: ResourceClassifier) -> None:
        """Test idle markers in the future do not count."""
        vm = create_vm(tags={"owner": "alice@example.com", "idle_since": "2025-01-01"})

        assert classifier.classify(vm, NOW).is_keep

    def test_database_low_utilization(self, classifier: ResourceClassifier) -> None:
        """Test databases idle by trailing days under the utilization threshold."""
        db = create_database(utilization=[50.0] * 5 + [1.0] * 21)

        assert classifier.classify(db, NOW).is_delete_eligible

    def test_database_recent_activity_resets_idle_run(self, classifier: ResourceClassifier) -> None:
        """Test a busy day ends the idle run."""
        db = create_database(utilization=[1.0] * 30 + [40.0])

        assert classifier.classify(db, NOW).is_keep

    def test_kind_without_rule_is_never_idle(self, classifier: ResourceClassifier) -> None:
        """Test kinds with no idle rule are only evaluated for expiry."""
        resource = Resource(id="bucket-1", kind=ResourceKind.OTHER, tags={"idle_since": "2020-01-01"})

        assert classifier.classify(resource, NOW).is_keep

    def test_disabled_rule(self) -> None:
        """Test a rule removed from configuration disables idle checks for that kind."""
        rules = LifecycleRules.from_dict({"idle_thresholds": {"VM": None}})
        vm = create_vm(status="stopped", since=utc(2023, 1, 1))

        assert classify(vm, NOW, rules).is_keep

    def test_idle_since_tag_takes_precedence(self, classifier: ResourceClassifier) -> None:
        """Test a recent idle_since tag wins over a longer idle status duration."""
        rule = IdleRule(days=14, statuses=("stopped",))
        vm = create_vm(
            tags={"owner": "alice@example.com", "idle_since": "2024-01-08"},
            status="stopped",
            since=utc(2023, 11, 21),
        )

        assert idle_duration_days(vm, rule, NOW) == 2
        assert classifier.classify(vm, NOW).is_keep

    def test_utilization_run_takes_precedence_over_status(self) -> None:
        """Test the utilization run is used before the status duration."""
        rule = IdleRule(days=14, statuses=("available",), utilization_below=5.0)
        db = Resource(
            id="db-1",
            kind=ResourceKind.DATABASE,
            observed_state=ObservedState(
                status="available", since=utc(2023, 6, 1), daily_utilization=(1.0, 40.0, 1.0, 1.0)
            ),
        )

        assert idle_duration_days(db, rule, NOW) == 2

    def test_unparseable_idle_since_falls_back_to_status(self) -> None:
        """Test a malformed idle_since tag is ignored."""
        rule = IdleRule(days=14, statuses=("stopped",))
        vm = create_vm(
            tags={"idle_since": "last tuesday"}, status="stopped", since=utc(2023, 12, 31, 12)
        )

        assert idle_duration_days(vm, rule, NOW) == 10

    def test_idle_duration_unknown(self) -> None:
        """Test no measure at all yields None."""
        rule = IdleRule(days=14, statuses=("stopped",))

        assert idle_duration_days(create_vm(), rule, NOW) is None


class TestCombination:
    """Expiry and idle are independent; the most severe wins."""

    def test_delete_eligible_beats_warn(self, classifier: ResourceClassifier) -> None:
        """Test an eligible idle trigger wins over a warn-only expiry."""
        vm = create_vm(tags=with_expiry("2024-01-15"), status="stopped", since=utc(2023, 12, 1))

        verdict = classifier.classify(vm, NOW)

        assert verdict.is_delete_eligible
        assert verdict.triggers == (Trigger.IDLE,)

    def test_two_warnings_merge(self, classifier: ResourceClassifier) -> None:
        """Test equal-severity triggers merge reasons and take the earliest eligibility."""
        vm = create_vm(tags=with_expiry("2024-01-15"), status="stopped", since=utc(2023, 12, 21, 12))

        verdict = classifier.classify(vm, NOW)

        assert verdict.action == VerdictAction.WARN_PENDING
        assert verdict.triggers == (Trigger.EXPIRY, Trigger.IDLE)
        assert verdict.days_until_expiry == 5
        assert verdict.eligible_on == date(2024, 1, 11)
        assert "; " in verdict.reason

    def test_classification_is_deterministic(self, classifier: ResourceClassifier) -> None:
        """Test identical inputs give identical verdicts."""
        vm = create_vm(tags=with_expiry("2024-01-15"), status="stopped", since=utc(2023, 12, 21, 12))

        assert classifier.classify(vm, NOW) == classifier.classify(vm, NOW)

    def test_naive_now_is_treated_as_utc(self, classifier: ResourceClassifier) -> None:
        """Test a naive evaluation time is interpreted as UTC."""
        vm = create_vm(tags=with_expiry("2024-01-03"))

        assert classifier.classify(vm, NOW.replace(tzinfo=None)) == classifier.classify(vm, NOW)
