"""Resource classification against idle, expiry and protection rules.

The classifier is the single place lifecycle policy lives. It is a pure
function of (resource, now, rules): it reads no clock, performs no I/O and
never touches lifecycle records.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from lifecycle_governor.models.lifecycle_rules import IdleRule, LifecycleRules
from lifecycle_governor.models.resource import EXPIRY_TAG, IDLE_SINCE_TAG, Resource, ensure_utc, parse_timestamp
from lifecycle_governor.models.verdict import Trigger, Verdict


class ResourceClassifier:
    """Classifier for resource lifecycle evaluation.

    Evaluates resources against protection rules first, then the expiry and
    idle triggers. Expiry and idle are independent: either one is enough to
    warn, and the most severe outcome wins.

    Attributes:
        rules: Lifecycle rules to evaluate against
    """

    def __init__(self, rules: LifecycleRules) -> None:
        self.rules = rules

    def classify(self, resource: Resource, now: datetime) -> Verdict:
        """Classify a resource at a point in time.

        Args:
            resource: Resource to classify
            now: Evaluation time (the only notion of "now" the classifier uses)

        Returns:
            Verdict for the resource
        """
        now = ensure_utc(now)

        protection = self.protection_reason(resource)
        if protection:
            return Verdict.keep(protection)

        candidates: List[Verdict] = []

        expiry_verdict = self._evaluate_expiry(resource, now)
        if expiry_verdict is not None:
            candidates.append(expiry_verdict)

        rule = self.rules.idle_rule_for(resource.kind)
        if rule is not None:
            idle_verdict = self._evaluate_idle(resource, rule, now)
            if idle_verdict is not None:
                candidates.append(idle_verdict)

        if not candidates:
            return Verdict.keep()

        return _combine(candidates)

    def protection_reason(self, resource: Resource) -> Optional[str]:
        """Return why a resource is protected, or None when it is not."""
        for tag_key in self.rules.protection_tags:
            if tag_key in resource.tags:
                return f"Protected by tag {tag_key}={resource.tags[tag_key]}"

        environment = (resource.environment or "").lower()
        if environment and environment in self.rules.protected_environments:
            return f"Protected environment {resource.environment}"

        return None

    def _evaluate_expiry(self, resource: Resource, now: datetime) -> Optional[Verdict]:
        """Evaluate the expiry_date tag.

        Missing or unparseable dates never expire a resource.
        """
        raw_expiry = resource.tags.get(EXPIRY_TAG)
        if not raw_expiry:
            return None

        try:
            expiry = parse_timestamp(raw_expiry).date()
        except ValueError:
            return None

        grace = self.rules.grace_period_days
        today = now.date()
        days_until = (expiry - today).days
        eligible_on = expiry + timedelta(days=grace)

        if days_until > grace:
            return None

        if days_until <= -grace:
            return Verdict.delete_eligible(
                reason=f"Expired on {expiry.isoformat()}, grace period of {grace} days elapsed",
                eligible_on=eligible_on,
                triggers=(Trigger.EXPIRY,),
                days_until_expiry=days_until,
            )

        if days_until >= 0:
            reason = f"Expires on {expiry.isoformat()} ({days_until} days)"
        else:
            reason = f"Expired on {expiry.isoformat()} ({-days_until} days ago)"
        return Verdict.warn_pending(
            days_until_expiry=days_until,
            reason=reason,
            eligible_on=eligible_on,
            triggers=(Trigger.EXPIRY,),
        )

    def _evaluate_idle(self, resource: Resource, rule: IdleRule, now: datetime) -> Optional[Verdict]:
        """Evaluate the kind's idle predicate."""
        idle_days = idle_duration_days(resource, rule, now)
        if idle_days is None or idle_days < rule.days:
            return None

        grace = self.rules.grace_period_days
        remaining = rule.days + grace - idle_days
        eligible_on = now.date() + timedelta(days=remaining)
        reason = f"Idle for {idle_days} days (threshold {rule.days} days)"

        if remaining <= 0:
            return Verdict.delete_eligible(
                reason=f"{reason}, grace period of {grace} days elapsed",
                eligible_on=eligible_on,
                triggers=(Trigger.IDLE,),
            )

        return Verdict.warn_pending(
            days_until_expiry=remaining,
            reason=reason,
            eligible_on=eligible_on,
            triggers=(Trigger.IDLE,),
        )


def classify(resource: Resource, now: datetime, rules: LifecycleRules) -> Verdict:
    """Classify a resource with the given rules (functional form of ResourceClassifier)."""
    return ResourceClassifier(rules).classify(resource, now)


def idle_duration_days(resource: Resource, rule: IdleRule, now: datetime) -> Optional[int]:
    """How many whole days a resource has been idle, or None when unknown.

    The first available measure wins: the idle_since tag, then the trailing
    run of days under the utilization threshold (when one is configured and
    data exists), then the observed status duration for an idle status. An
    unparseable or future idle_since tag counts as absent.
    """
    raw_marker = resource.tags.get(IDLE_SINCE_TAG)
    if raw_marker:
        try:
            marker = ensure_utc(parse_timestamp(raw_marker))
        except ValueError:
            marker = None
        if marker is not None and marker <= now:
            return (now - marker).days

    observed = resource.observed_state
    if rule.utilization_below is not None and observed.daily_utilization:
        return _trailing_days_below(observed.daily_utilization, rule.utilization_below)

    if observed.status.lower() in rule.statuses and observed.since is not None:
        since = ensure_utc(observed.since)
        if since <= now:
            return (now - since).days

    return None


def _trailing_days_below(values: Tuple[float, ...], threshold: float) -> int:
    count = 0
    for value in reversed(values):
        if value >= threshold:
            break
        count += 1
    return count


def _combine(candidates: List[Verdict]) -> Verdict:
    """Merge trigger verdicts: most severe action wins, triggers and reasons accumulate."""
    top = max(candidates, key=lambda v: v.action.severity)
    winners = [v for v in candidates if v.action == top.action]
    if len(winners) == 1:
        return top

    triggers: Tuple[Trigger, ...] = tuple(t for v in winners for t in v.triggers)
    eligible_dates: List[date] = [v.eligible_on for v in winners if v.eligible_on is not None]
    expiry = next((v for v in winners if Trigger.EXPIRY in v.triggers), top)
    return Verdict(
        action=top.action,
        reason="; ".join(v.reason for v in winners),
        days_until_expiry=expiry.days_until_expiry,
        eligible_on=min(eligible_dates) if eligible_dates else None,
        triggers=triggers,
    )


__all__ = ["ResourceClassifier", "classify", "idle_duration_days"]
