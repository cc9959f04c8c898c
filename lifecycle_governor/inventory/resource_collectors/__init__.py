"""Per-service resource collectors."""

from .base import BaseResourceCollector
from .ebs_collector import EbsVolumeCollector
from .ec2_collector import Ec2InstanceCollector
from .rds_collector import RdsInstanceCollector

COLLECTORS = [Ec2InstanceCollector, EbsVolumeCollector, RdsInstanceCollector]

__all__ = ["BaseResourceCollector", "COLLECTORS", "EbsVolumeCollector", "Ec2InstanceCollector", "RdsInstanceCollector"]
