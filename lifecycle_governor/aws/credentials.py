"""AWS credential validation."""

from typing import Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError, ProfileNotFound

from .client import create_boto_client


class CredentialValidationError(Exception):
    """Raised when AWS credentials are missing or rejected."""


def validate_credentials(aws_profile: Optional[str] = None) -> Dict[str, str]:
    """Validate AWS credentials with an STS identity call.

    Args:
        aws_profile: AWS profile name (optional, default credential chain otherwise)

    Returns:
        Dictionary with account_id, arn and user_id

    Raises:
        CredentialValidationError: If no usable credentials are found
    """
    try:
        sts = create_boto_client("sts", profile_name=aws_profile)
        identity = sts.get_caller_identity()
    except ProfileNotFound as e:
        raise CredentialValidationError(f"AWS profile not found: {e}") from e
    except NoCredentialsError as e:
        raise CredentialValidationError(
            "No AWS credentials found. Configure credentials with 'aws configure' or pass --profile."
        ) from e
    except ClientError as e:
        raise CredentialValidationError(f"AWS credentials were rejected: {e}") from e
    except BotoCoreError as e:
        raise CredentialValidationError(f"Unable to validate AWS credentials: {e}") from e

    return {
        "account_id": identity["Account"],
        "arn": identity["Arn"],
        "user_id": identity["UserId"],
    }
