"""Error taxonomy for the governor.

Provider errors are raised by adapters and executors and mapped onto
deletion outcomes; pass-level errors abort a pass.
"""

from __future__ import annotations

from typing import Optional


class GovernorError(Exception):
    """Base class for all governor errors."""


class ProviderError(GovernorError):
    """Error reported by the cloud provider API.

    Attributes:
        code: Provider error code (e.g. "Throttling"), if known
    """

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.code = code


class TransientProviderError(ProviderError):
    """Rate limit or timeout; retried with backoff."""


class ConflictError(ProviderError):
    """Resource state changed concurrently (e.g. volume in use); not retried in the same pass."""


class NotFoundError(ProviderError):
    """Resource does not exist; success for deletion, vanished for inventory."""


class ProviderPermissionError(ProviderError):
    """Credentials lack permission; fatal for the resource, never retried."""


class InventoryError(GovernorError):
    """Inventory could not be listed; aborts the pass."""


class PersistenceError(GovernorError):
    """State store unavailable or write failed; aborts the pass."""


class PassInProgressError(GovernorError):
    """Another pass holds the pass lock."""


class ConfigError(GovernorError):
    """Configuration is missing or invalid."""
