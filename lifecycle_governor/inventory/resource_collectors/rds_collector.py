"""RDS instance collector."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from ...models.resource import ObservedState, Resource, ResourceKind
from .base import BaseResourceCollector


class RdsInstanceCollector(BaseResourceCollector):
    """Collector for RDS DB instances (resource kind Database).

    Utilization is the daily maximum CPUUtilization from CloudWatch over the
    lookback window, oldest day first.
    """

    def __init__(
        self,
        region: str,
        profile_name: Optional[str] = None,
        account_id: Optional[str] = None,
        metric_lookback_days: int = 30,
        now: Optional[datetime] = None,
    ) -> None:
        super().__init__(region, profile_name=profile_name, account_id=account_id)
        self.metric_lookback_days = metric_lookback_days
        self._now = now

    @property
    def service_name(self) -> str:
        return "rds"

    @property
    def kind(self) -> ResourceKind:
        return ResourceKind.DATABASE

    def collect(self) -> List[Resource]:
        resources = []
        client = self._create_client()
        cloudwatch = self._create_client("cloudwatch")

        paginator = client.get_paginator("describe_db_instances")
        for page in paginator.paginate():
            for instance in page.get("DBInstances", []):
                status = instance.get("DBInstanceStatus", "unknown")
                if status == "deleting":
                    continue

                identifier = instance["DBInstanceIdentifier"]
                tags = {tag["Key"]: tag["Value"] for tag in instance.get("TagList", [])}

                resources.append(
                    Resource(
                        id=instance["DBInstanceArn"],
                        kind=ResourceKind.DATABASE,
                        tags=tags,
                        observed_state=ObservedState(
                            status=status,
                            daily_utilization=self._daily_cpu(cloudwatch, identifier),
                        ),
                        region=self.region,
                        name=identifier,
                    )
                )

        self.logger.debug(f"Collected {len(resources)} RDS instances in {self.region}")
        return resources

    def _daily_cpu(self, cloudwatch, identifier: str) -> Tuple[float, ...]:
        end = self._now or datetime.now(timezone.utc)
        start = end - timedelta(days=self.metric_lookback_days)
        try:
            response = cloudwatch.get_metric_statistics(
                Namespace="AWS/RDS",
                MetricName="CPUUtilization",
                Dimensions=[{"Name": "DBInstanceIdentifier", "Value": identifier}],
                StartTime=start,
                EndTime=end,
                Period=86400,
                Statistics=["Maximum"],
            )
        except Exception as e:
            self.logger.debug(f"Could not get CPU metrics for RDS instance {identifier}: {e}")
            return ()

        datapoints = sorted(response.get("Datapoints", []), key=lambda d: d["Timestamp"])
        return tuple(float(d["Maximum"]) for d in datapoints)
