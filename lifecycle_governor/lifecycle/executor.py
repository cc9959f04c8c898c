"""Deletion executor contract with retry and post-delete verification.

Provider-specific executors implement a single deletion attempt and a
verification query; the retry loop and the error-kind mapping live here so
every provider gets the same failure model.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from lifecycle_governor.lifecycle.errors import (
    ConflictError,
    NotFoundError,
    ProviderError,
    ProviderPermissionError,
    TransientProviderError,
)
from lifecycle_governor.models.lifecycle_record import DeletionErrorKind
from lifecycle_governor.models.resource import Resource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeletionResult:
    """Outcome of one executor call.

    Attributes:
        deleted: True only for a verified (or already-gone) deletion
        error_kind: Why the deletion did not complete, when deleted is False
        message: Human-readable detail
        tries: Provider calls made within this executor call
    """

    deleted: bool
    error_kind: Optional[DeletionErrorKind] = None
    message: str = ""
    tries: int = 1

    @classmethod
    def success(cls, message: str = "deleted", tries: int = 1) -> "DeletionResult":
        return cls(deleted=True, message=message, tries=tries)

    @classmethod
    def failed(cls, error_kind: DeletionErrorKind, message: str, tries: int = 1) -> "DeletionResult":
        return cls(deleted=False, error_kind=error_kind, message=message, tries=tries)


class DeletionExecutor(ABC):
    """Base deletion executor.

    Error handling:
        NotFoundError            -> deleted (idempotent)
        TransientProviderError   -> retried with exponential backoff, then rate_limited
        ConflictError            -> conflict, no retry within the call
        ProviderPermissionError  -> permission_denied, never retried
        other ProviderError      -> provider_error
        verification not positive -> unverified

    Attributes:
        max_retries: Provider calls per executor call for transient errors (default: 3)
        backoff_base: Seconds to wait before the first retry, doubled each time (default: 2)
    """

    def __init__(self, max_retries: int = 3, backoff_base: float = 2.0) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.max_retries = max_retries
        self.backoff_base = backoff_base

    def delete(self, resource: Resource) -> DeletionResult:
        """Delete a resource and verify the deletion.

        Args:
            resource: Resource to delete

        Returns:
            DeletionResult; deleted is True only when the provider confirms
        """
        for attempt in range(self.max_retries):
            tries = attempt + 1
            try:
                self._attempt_deletion(resource)
            except NotFoundError:
                logger.info(f"{resource.kind.value} {resource.id} already deleted")
                return DeletionResult.success("already deleted", tries=tries)
            except TransientProviderError as e:
                if attempt < self.max_retries - 1:
                    wait_time = self.backoff_base * (2**attempt)
                    logger.debug(
                        f"Transient error deleting {resource.id}: {e}, "
                        f"retrying in {wait_time}s (attempt {tries}/{self.max_retries})"
                    )
                    time.sleep(wait_time)
                    continue
                return DeletionResult.failed(
                    DeletionErrorKind.RATE_LIMITED,
                    f"Rate limited after {self.max_retries} attempts: {e}",
                    tries=tries,
                )
            except ConflictError as e:
                return DeletionResult.failed(DeletionErrorKind.CONFLICT, str(e), tries=tries)
            except ProviderPermissionError as e:
                return DeletionResult.failed(DeletionErrorKind.PERMISSION_DENIED, str(e), tries=tries)
            except ProviderError as e:
                return DeletionResult.failed(DeletionErrorKind.PROVIDER_ERROR, str(e), tries=tries)

            return self._verify(resource, tries)

    def _verify(self, resource: Resource, tries: int) -> DeletionResult:
        try:
            verified = self._verify_deleted(resource)
        except NotFoundError:
            verified = True
        except ProviderError as e:
            logger.warning(f"Could not verify deletion of {resource.id}: {e}")
            return DeletionResult.failed(
                DeletionErrorKind.UNVERIFIED, f"Verification failed: {e}", tries=tries
            )

        if verified:
            return DeletionResult.success(tries=tries)

        return DeletionResult.failed(
            DeletionErrorKind.UNVERIFIED,
            "Provider accepted the deletion but the resource still appears to exist",
            tries=tries,
        )

    @abstractmethod
    def _attempt_deletion(self, resource: Resource) -> None:
        """Issue the provider deletion call(s) once; raise ProviderError subclasses on failure."""

    @abstractmethod
    def _verify_deleted(self, resource: Resource) -> bool:
        """Re-query the provider; True when the resource is gone or going."""
