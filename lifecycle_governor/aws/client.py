"""boto3 client factory and provider error translation."""

from __future__ import annotations

from typing import Any, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, EndpointConnectionError, ReadTimeoutError

from ..lifecycle.errors import (
    ConflictError,
    NotFoundError,
    ProviderError,
    ProviderPermissionError,
    TransientProviderError,
)

NOT_FOUND_CODES = {
    "InvalidInstanceID.NotFound",
    "InvalidVolume.NotFound",
    "DBInstanceNotFound",
    "DBInstanceNotFoundFault",
    "ResourceNotFoundException",
    "NoSuchEntity",
}

TRANSIENT_CODES = {
    "Throttling",
    "ThrottlingException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "RequestThrottled",
    "RequestTimeout",
    "ServiceUnavailable",
    "InternalError",
}

CONFLICT_CODES = {
    "IncorrectState",
    "IncorrectInstanceState",
    "VolumeInUse",
    "InvalidDBInstanceState",
    "InvalidDBInstanceStateFault",
    "DependencyViolation",
    "OperationAborted",
}

PERMISSION_CODES = {
    "UnauthorizedOperation",
    "AccessDenied",
    "AccessDeniedException",
    "AuthFailure",
    "UnauthorizedAccess",
}

_CLIENT_CONFIG = Config(
    retries={"mode": "standard", "max_attempts": 3},
    user_agent_extra="lifecycle-governor",
)


def create_boto_client(
    service_name: str,
    region_name: Optional[str] = None,
    profile_name: Optional[str] = None,
) -> Any:
    """Create a boto3 client using the default credential chain or a named profile.

    Args:
        service_name: AWS service name (e.g. "ec2")
        region_name: AWS region (optional)
        profile_name: AWS profile name (optional)

    Returns:
        boto3 client
    """
    session = boto3.Session(profile_name=profile_name) if profile_name else boto3.Session()
    return session.client(service_name, region_name=region_name, config=_CLIENT_CONFIG)


def error_code(error: ClientError) -> str:
    """Extract the provider error code from a ClientError."""
    return error.response.get("Error", {}).get("Code", "Unknown")


def translate_client_error(error: Exception) -> ProviderError:
    """Map a botocore exception onto the governor's provider error taxonomy.

    Args:
        error: ClientError or BotoCoreError raised by a boto3 call

    Returns:
        ProviderError subclass instance carrying the original message and code
    """
    if isinstance(error, ClientError):
        code = error_code(error)
        message = error.response.get("Error", {}).get("Message", str(error))
        text = f"{code}: {message}"

        if code in NOT_FOUND_CODES or code.endswith(".NotFound") or code.endswith("NotFoundFault"):
            return NotFoundError(text, code=code)
        if code in TRANSIENT_CODES:
            return TransientProviderError(text, code=code)
        if code in CONFLICT_CODES:
            return ConflictError(text, code=code)
        if code in PERMISSION_CODES:
            return ProviderPermissionError(text, code=code)
        return ProviderError(text, code=code)

    if isinstance(error, (EndpointConnectionError, ReadTimeoutError)):
        return TransientProviderError(str(error), code=type(error).__name__)

    if isinstance(error, BotoCoreError):
        return ProviderError(str(error), code=type(error).__name__)

    return ProviderError(str(error))
