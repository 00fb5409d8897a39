"""Lambda function reconciliation."""

from __future__ import annotations

import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import ExternalCallError, error_code
from ..models import DeploymentRequest, FunctionState, RoleRef

logger = logging.getLogger(__name__)

STAGE = "function"

MANAGED_BY_TAG_KEY = "ManagedBy"
MANAGED_BY_TAG_VALUE = "lambdaship"


def get_function_state(lambda_client: Any, function_name: str) -> FunctionState | None:
    """Look up a function by name.

    Returns:
        The function as the control plane reports it, or None if absent
    """
    try:
        response = lambda_client.get_function(FunctionName=function_name)
    except ClientError as e:
        if error_code(e) == "ResourceNotFoundException":
            return None
        raise ExternalCallError.from_boto(STAGE, "GetFunction", e) from e
    except BotoCoreError as e:
        raise ExternalCallError.from_boto(STAGE, "GetFunction", e) from e

    return FunctionState.from_configuration(response["Configuration"])


def _wait(lambda_client: Any, waiter_name: str, function_name: str) -> None:
    waiter = lambda_client.get_waiter(waiter_name)
    waiter.wait(FunctionName=function_name)


def create_function(
    lambda_client: Any,
    request: DeploymentRequest,
    role: RoleRef,
    zip_bytes: bytes,
    wait: bool = True,
) -> None:
    """Create the function. The only call that binds the execution role."""
    logger.info("Creating new Lambda function: %s", request.function_name)
    operation = "CreateFunction"
    try:
        lambda_client.create_function(
            FunctionName=request.function_name,
            Runtime=request.runtime,
            Role=role.arn,
            Handler=request.handler,
            Code={"ZipFile": zip_bytes},
            Timeout=request.timeout,
            MemorySize=request.memory_size,
            Tags={MANAGED_BY_TAG_KEY: MANAGED_BY_TAG_VALUE},
        )
        if wait:
            operation = "WaitFunctionActive"
            _wait(lambda_client, "function_active_v2", request.function_name)
    except (ClientError, BotoCoreError) as e:
        raise ExternalCallError.from_boto(STAGE, operation, e) from e


def update_function(
    lambda_client: Any,
    request: DeploymentRequest,
    zip_bytes: bytes,
    wait: bool = True,
) -> None:
    """
    Update code, then configuration, of an existing function.

    Lambda rejects configuration changes while a code update is still in
    progress, so the code update is issued (and waited on) first.
    """
    logger.info("Updating existing Lambda function: %s", request.function_name)
    operation = "UpdateFunctionCode"
    try:
        lambda_client.update_function_code(
            FunctionName=request.function_name,
            ZipFile=zip_bytes,
        )
        if wait:
            operation = "WaitFunctionUpdated"
            _wait(lambda_client, "function_updated_v2", request.function_name)

        operation = "UpdateFunctionConfiguration"
        lambda_client.update_function_configuration(
            FunctionName=request.function_name,
            Runtime=request.runtime,
            Handler=request.handler,
            Timeout=request.timeout,
            MemorySize=request.memory_size,
        )
        if wait:
            operation = "WaitFunctionUpdated"
            _wait(lambda_client, "function_updated_v2", request.function_name)
    except (ClientError, BotoCoreError) as e:
        raise ExternalCallError.from_boto(STAGE, operation, e) from e


def ensure_function(
    lambda_client: Any,
    request: DeploymentRequest,
    role: RoleRef,
    zip_bytes: bytes,
    wait: bool = True,
) -> tuple[FunctionState, bool]:
    """
    Converge the function to ``request``.

    Args:
        lambda_client: boto3 Lambda client
        request: Desired function settings
        role: Execution role (used only when creating)
        zip_bytes: Deployment package
        wait: Wait for each change to settle before the next call

    Returns:
        Tuple of (function state re-read from the control plane, created flag)

    Raises:
        ExternalCallError: If any call fails (no retries)
    """
    existing = get_function_state(lambda_client, request.function_name)
    if existing is None:
        create_function(lambda_client, request, role, zip_bytes, wait=wait)
    else:
        update_function(lambda_client, request, zip_bytes, wait=wait)

    state = get_function_state(lambda_client, request.function_name)
    if state is None:
        raise ExternalCallError(
            STAGE,
            "GetFunction",
            f"Function {request.function_name} not found after reconciliation",
        )
    return state, existing is None
