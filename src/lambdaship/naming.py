"""Resource naming utilities.

This module provides centralized validation for user-supplied names and the
derivation of every name the provisioner computes from them:

- Lambda function names: letters, digits, hyphens and underscores, max 64
- IAM role names: letters, digits and ``+=,.@_-``, max 64
- The REST API name, archive file name and invoke URL are derived from the
  function name, so a redeploy always finds the same resources.
"""

import re

from .exceptions import ValidationError

FUNCTION_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
ROLE_NAME_PATTERN = re.compile(r"^[\w+=,.@-]+$")
MAX_NAME_LENGTH = 64

FRONT_DOOR_SUFFIX = "-api"
"""Suffix appended to the function name to form the REST API name."""

STAGE_NAME = "prod"
"""Stage label every front-door deployment is published to."""

PROXY_PATH_PART = "{proxy+}"
"""Path part of the single catch-all routing resource."""

PERMISSION_STATEMENT_ID = f"apigateway-{STAGE_NAME}"
"""Fixed statement id of the API Gateway invoke grant (idempotence key)."""


def validate_function_name(name: str) -> None:
    """
    Validate a Lambda function name.

    Args:
        name: The user-provided function name

    Raises:
        ValidationError: If the name is empty or malformed
    """
    if not name:
        raise ValidationError("function name", name, "Name cannot be empty")

    if " " in name:
        raise ValidationError(
            "function name",
            name,
            "Contains spaces. Use hyphens instead (e.g., 'my-fn' not 'my fn')",
        )

    if not FUNCTION_NAME_PATTERN.match(name):
        raise ValidationError(
            "function name",
            name,
            "Only alphanumeric characters, hyphens and underscores are allowed.",
        )

    # The REST API name adds a suffix, but API names are not length-limited
    # the way function names are.
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            "function name",
            name,
            f"Too long. Name exceeds {MAX_NAME_LENGTH} character limit.",
        )


def validate_role_name(name: str) -> None:
    """
    Validate an IAM role name.

    Raises:
        ValidationError: If the name is empty or malformed
    """
    if not name:
        raise ValidationError("role name", name, "Name cannot be empty")
    if not ROLE_NAME_PATTERN.match(name):
        raise ValidationError(
            "role name",
            name,
            "Only alphanumeric characters and '+=,.@_-' are allowed.",
        )
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            "role name",
            name,
            f"Too long. Name exceeds {MAX_NAME_LENGTH} character limit (IAM constraint).",
        )


def front_door_name(function_name: str) -> str:
    """Name of the REST API fronting ``function_name``."""
    return f"{function_name}{FRONT_DOOR_SUFFIX}"


def archive_name(function_name: str) -> str:
    """Deterministic archive file name, so reruns overwrite the previous artifact."""
    return f"{function_name}.zip"


def front_door_url(api_id: str, region: str) -> str:
    """Public invoke URL of a deployed front door."""
    return f"https://{api_id}.execute-api.{region}.amazonaws.com/{STAGE_NAME}"


def invocation_uri(region: str, function_arn: str) -> str:
    """API Gateway integration URI that proxies to ``function_arn``."""
    return (
        f"arn:aws:apigateway:{region}:lambda:path/2015-03-31/functions/"
        f"{function_arn}/invocations"
    )


def invoke_source_arn(region: str, account_id: str, api_id: str) -> str:
    """Source ARN scoping the invoke permission to the front door's proxy route."""
    return f"arn:aws:execute-api:{region}:{account_id}:{api_id}/{STAGE_NAME}/ANY/{PROXY_PATH_PART}"


def log_group_name(function_name: str) -> str:
    """CloudWatch log group the Lambda runtime writes to."""
    return f"/aws/lambda/{function_name}"
