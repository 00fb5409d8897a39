"""Execution role reconciliation."""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import ExternalCallError, error_code
from ..models import RoleRef

logger = logging.getLogger(__name__)

STAGE = "identity"

BASIC_EXECUTION_POLICY_ARN = "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"

LAMBDA_SERVICE_PRINCIPAL = "lambda.amazonaws.com"


def trust_policy() -> dict[str, Any]:
    """Trust policy letting the Lambda service assume the role."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": {"Service": LAMBDA_SERVICE_PRINCIPAL},
                "Action": "sts:AssumeRole",
            }
        ],
    }


def get_role(iam: Any, role_name: str) -> RoleRef | None:
    """Look up a role by name.

    Returns:
        The role, or None if no role has that name
    """
    try:
        response = iam.get_role(RoleName=role_name)
    except ClientError as e:
        if error_code(e) == "NoSuchEntity":
            return None
        raise ExternalCallError.from_boto(STAGE, "GetRole", e) from e
    except BotoCoreError as e:
        raise ExternalCallError.from_boto(STAGE, "GetRole", e) from e

    return RoleRef(name=role_name, arn=response["Role"]["Arn"])


def ensure_execution_role(
    iam: Any,
    role_name: str,
    propagation_delay: float = 10.0,
    sleep: Any = time.sleep,
) -> RoleRef:
    """
    Return the execution role, creating it on first use.

    An existing role is reused untouched. A new role gets the basic
    execution policy and then a fixed grace period, because Lambda
    rejects roles that IAM has not finished propagating.

    Args:
        iam: boto3 IAM client
        role_name: Role name
        propagation_delay: Seconds to wait after creating the role
        sleep: Sleep function (injected for testing)

    Returns:
        Reference to the role

    Raises:
        ExternalCallError: If the lookup or creation fails
    """
    existing = get_role(iam, role_name)
    if existing is not None:
        logger.info("Using existing IAM role: %s", role_name)
        return existing

    logger.info("Creating IAM role: %s", role_name)
    operation = "CreateRole"
    try:
        response = iam.create_role(
            RoleName=role_name,
            AssumeRolePolicyDocument=json.dumps(trust_policy()),
            Description="Lambda execution role managed by lambdaship",
        )
        operation = "AttachRolePolicy"
        iam.attach_role_policy(RoleName=role_name, PolicyArn=BASIC_EXECUTION_POLICY_ARN)
    except (ClientError, BotoCoreError) as e:
        raise ExternalCallError.from_boto(STAGE, operation, e) from e

    if propagation_delay > 0:
        logger.info("Waiting %.0fs for IAM role to propagate...", propagation_delay)
        sleep(propagation_delay)

    return RoleRef(name=role_name, arn=response["Role"]["Arn"], created=True)
