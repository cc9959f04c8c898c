"""Configuration loading for the lcgov CLI.

Sources, later wins: built-in defaults, the YAML config file, ``LCGOV_*``
environment variables, then CLI flags (applied by the commands).
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

import yaml

from ..lifecycle.errors import ConfigError
from ..lifecycle.governor import GovernorSettings
from ..models.lifecycle_rules import DEFAULT_GRACE_PERIOD_DAYS, DEFAULT_PROTECTION_TAGS, LifecycleRules

ENV_PREFIX = "LCGOV_"
CONFIG_ENV_VAR = "LCGOV_CONFIG"
DEFAULT_STORAGE_PATH = str(Path.home() / ".lifecycle-governor")
NOTIFIER_TYPES = ("log", "sns", "ses")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _parse_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_optional_float(value: str) -> Optional[float]:
    return float(value) if value.strip() else None


# Fields settable from the environment and how to parse them
ENV_FIELDS: Dict[str, Callable[[str], Any]] = {
    "aws_profile": str,
    "regions": _parse_list,
    "storage_path": str,
    "log_level": str,
    "grace_period_days": int,
    "fallback_owner": str,
    "retry_budget": int,
    "dry_run": _parse_bool,
    "force_delete": _parse_bool,
    "max_workers": int,
    "pass_timeout_seconds": _parse_optional_float,
    "deleted_retention_days": int,
    "protection_tags": _parse_list,
    "protected_environments": _parse_list,
    "operator_recipient": str,
    "notifier": str,
    "sns_topic_arn": str,
    "ses_sender": str,
}


@dataclass
class GovernorConfig:
    """Resolved lcgov configuration.

    Attributes:
        aws_profile: AWS profile name (default credential chain when None)
        regions: Regions the AWS inventory lists
        storage_path: Base directory for state and audit logs
        log_level: Root log level
        idle_thresholds: Per-kind idle rule overrides (kind name -> rule mapping or None)
        grace_period_days: Days between warning and delete-eligibility
        fallback_owner: Recipient for resources without an owner tag
        retry_budget: Deletion attempts a record may consume
        dry_run: Plan only, never notify, delete or write records
        force_delete: Allow deletion without a prior warning cycle
        max_workers: Worker pool size
        pass_timeout_seconds: Deadline after which no new deletions start
        deleted_retention_days: How long Deleted records are kept
        protection_tags: Tag keys that always keep a resource
        protected_environments: Environment tag values that always keep a resource
        operator_recipient: Recipient of terminal-failure alerts
        notifier: Notification transport (log, sns or ses)
        sns_topic_arn: Topic for the sns notifier
        ses_sender: Verified sender address for the ses notifier
        config_path: File the configuration was loaded from, if any
    """

    aws_profile: Optional[str] = None
    regions: List[str] = field(default_factory=lambda: ["us-east-1"])
    storage_path: str = DEFAULT_STORAGE_PATH
    log_level: str = "INFO"
    idle_thresholds: Dict[str, Optional[Dict[str, Any]]] = field(default_factory=dict)
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS
    fallback_owner: Optional[str] = None
    retry_budget: int = 3
    dry_run: bool = False
    force_delete: bool = False
    max_workers: int = 8
    pass_timeout_seconds: Optional[float] = None
    deleted_retention_days: int = 30
    protection_tags: List[str] = field(default_factory=lambda: list(DEFAULT_PROTECTION_TAGS))
    protected_environments: List[str] = field(default_factory=list)
    operator_recipient: Optional[str] = None
    notifier: str = "log"
    sns_topic_arn: Optional[str] = None
    ses_sender: Optional[str] = None
    config_path: Optional[str] = None

    @classmethod
    def load(cls, config_path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> "GovernorConfig":
        """Load configuration from file and environment.

        Args:
            config_path: Explicit config file (default: $LCGOV_CONFIG, then
                ~/.lifecycle-governor/config.yaml if it exists)
            environ: Environment mapping (default: os.environ)

        Returns:
            Validated GovernorConfig

        Raises:
            ConfigError: If the file is unreadable or a value is invalid
        """
        environ = os.environ if environ is None else environ
        explicit = config_path or environ.get(CONFIG_ENV_VAR)
        path = Path(explicit).expanduser() if explicit else Path(DEFAULT_STORAGE_PATH) / "config.yaml"

        data: Dict[str, Any] = {}
        if path.exists():
            data = cls._read_file(path)
        elif explicit:
            raise ConfigError(f"Config file not found: {path}")

        config = cls.from_dict(data)
        if path.exists():
            config.config_path = str(path)
        config.apply_env(environ)
        config.validate()
        return config

    @staticmethod
    def _read_file(path: Path) -> Dict[str, Any]:
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GovernorConfig":
        """Create configuration from a mapping of field names.

        Raises:
            ConfigError: If the mapping contains unknown keys
        """
        known = {f.name for f in fields(cls)} - {"config_path"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

        values = dict(data)
        if isinstance(values.get("regions"), str):
            values["regions"] = _parse_list(values["regions"])
        return cls(**values)

    def apply_env(self, environ: Mapping[str, str]) -> None:
        """Apply LCGOV_* environment overrides.

        Raises:
            ConfigError: If an override cannot be parsed
        """
        for name, parse in ENV_FIELDS.items():
            env_name = f"{ENV_PREFIX}{name.upper()}"
            if env_name not in environ:
                continue
            try:
                setattr(self, name, parse(environ[env_name]))
            except ValueError as e:
                raise ConfigError(f"Invalid value for {env_name}: {e}") from e

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ConfigError: If a value is invalid
        """
        if self.notifier not in NOTIFIER_TYPES:
            raise ConfigError(f"notifier must be one of {', '.join(NOTIFIER_TYPES)}, got '{self.notifier}'")
        if self.notifier == "sns" and not self.sns_topic_arn:
            raise ConfigError("sns_topic_arn is required when notifier is 'sns'")
        if self.notifier == "ses" and not self.ses_sender:
            raise ConfigError("ses_sender is required when notifier is 'ses'")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        if not self.regions:
            raise ConfigError("At least one region is required")

        try:
            self.to_rules()
            self.to_settings().validate()
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Invalid lifecycle configuration: {e}") from e

    def to_rules(self) -> LifecycleRules:
        """Build classifier rules from this configuration."""
        return LifecycleRules.from_dict(
            {
                "idle_thresholds": self.idle_thresholds,
                "grace_period_days": self.grace_period_days,
                "protection_tags": self.protection_tags,
                "protected_environments": self.protected_environments,
            }
        )

    def to_settings(self) -> GovernorSettings:
        """Build governor pass settings from this configuration."""
        return GovernorSettings(
            fallback_owner=self.fallback_owner,
            retry_budget=self.retry_budget,
            dry_run=self.dry_run,
            force_delete=self.force_delete,
            max_workers=self.max_workers,
            pass_timeout_seconds=self.pass_timeout_seconds,
            deleted_retention_days=self.deleted_retention_days,
            operator_recipient=self.operator_recipient,
        )

    @property
    def state_dir(self) -> str:
        return str(Path(self.storage_path).expanduser() / "state")

    @property
    def audit_dir(self) -> str:
        return str(Path(self.storage_path).expanduser() / "audit-logs")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
