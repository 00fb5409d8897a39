"""API Gateway front-door reconciliation.

A front door is a REST API named ``<function>-api`` with a single
``{proxy+}`` resource whose ANY method proxies to the function, deployed to
the ``prod`` stage. The REST API is created once and reused on every later
deploy. On reuse, routing pieces left missing by an interrupted run are
completed, and the invoke permission is re-checked against the API it must
be scoped to. An integration that targets a different function is reported
as stale and left alone.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from ..exceptions import ExternalCallError, error_code
from ..models import FrontDoor, FunctionState
from ..naming import (
    PERMISSION_STATEMENT_ID,
    PROXY_PATH_PART,
    STAGE_NAME,
    front_door_name,
    front_door_url,
    invocation_uri,
    invoke_source_arn,
)

logger = logging.getLogger(__name__)

STAGE = "front-door"

APIGATEWAY_PRINCIPAL = "apigateway.amazonaws.com"

_PAGE_SIZE = 500


def _call(operation: str, fn: Any, **kwargs: Any) -> Any:
    try:
        return fn(**kwargs)
    except (ClientError, BotoCoreError) as e:
        raise ExternalCallError.from_boto(STAGE, operation, e) from e


def _query(operation: str, fn: Any, missing_code: str, **kwargs: Any) -> Any | None:
    """Like ``_call``, but an error with ``missing_code`` means "absent" (None)."""
    try:
        return fn(**kwargs)
    except ClientError as e:
        if error_code(e) == missing_code:
            return None
        raise ExternalCallError.from_boto(STAGE, operation, e) from e
    except BotoCoreError as e:
        raise ExternalCallError.from_boto(STAGE, operation, e) from e


def find_rest_api(apigw: Any, name: str) -> dict[str, Any] | None:
    """Find a REST API by name (read-only).

    Returns:
        The first API with that name, or None
    """
    kwargs: dict[str, Any] = {"limit": _PAGE_SIZE}
    while True:
        response = _call("GetRestApis", apigw.get_rest_apis, **kwargs)
        for item in response.get("items", []):
            if item.get("name") == name:
                return dict(item)
        position = response.get("position")
        if not position:
            return None
        kwargs["position"] = position


def _resource_by_path(apigw: Any, api_id: str, path: str) -> dict[str, Any] | None:
    response = _call("GetResources", apigw.get_resources, restApiId=api_id, limit=_PAGE_SIZE)
    for item in response.get("items", []):
        if item.get("path") == path:
            return dict(item)
    return None


def _integration_uri(apigw: Any, api_id: str, resource_id: str) -> str | None:
    integration = _query(
        "GetIntegration",
        apigw.get_integration,
        "NotFoundException",
        restApiId=api_id,
        resourceId=resource_id,
        httpMethod="ANY",
    )
    return integration.get("uri") if integration is not None else None


def _is_stale(apigw: Any, api_id: str, function: FunctionState, region: str) -> bool:
    """True if the proxy route is missing or targets another function."""
    proxy = _resource_by_path(apigw, api_id, f"/{PROXY_PATH_PART}")
    if proxy is None:
        return True
    return _integration_uri(apigw, api_id, proxy["id"]) != invocation_uri(region, function.arn)


def describe_front_door(
    apigw: Any,
    function_name: str,
    region: str,
    function: FunctionState | None = None,
) -> FrontDoor | None:
    """Look up the front door of ``function_name`` without changing it.

    Args:
        apigw: boto3 API Gateway client
        function_name: Function the front door is named after
        region: AWS region (part of the URL)
        function: When given, the routing is checked against its ARN

    Returns:
        The front door, or None if it does not exist
    """
    name = front_door_name(function_name)
    api = find_rest_api(apigw, name)
    if api is None:
        return None

    stale = _is_stale(apigw, api["id"], function, region) if function is not None else False
    return FrontDoor(
        api_id=api["id"],
        name=name,
        url=front_door_url(api["id"], region),
        stale=stale,
    )


def _invoke_grant(lambda_client: Any, function_name: str) -> dict[str, Any] | None:
    """The function's policy statement with the fixed statement id, if any."""
    response = _query(
        "GetPolicy",
        lambda_client.get_policy,
        "ResourceNotFoundException",
        FunctionName=function_name,
    )
    if response is None:
        return None

    policy = json.loads(response.get("Policy") or "{}")
    for statement in policy.get("Statement", []):
        if statement.get("Sid") == PERMISSION_STATEMENT_ID:
            return dict(statement)
    return None


def _grant_source_arn(statement: dict[str, Any]) -> str | None:
    return statement.get("Condition", {}).get("ArnLike", {}).get("AWS:SourceArn")


def ensure_invoke_permission(
    lambda_client: Any,
    function_name: str,
    source_arn: str,
) -> bool:
    """
    Grant API Gateway permission to invoke the function.

    Keyed by a fixed statement id. A grant already scoped to ``source_arn``
    is left alone. A grant scoped to another API (one that was deleted and
    recreated) is replaced. A concurrent duplicate grant is not an error.

    Returns:
        True if a new grant was added
    """
    existing = _invoke_grant(lambda_client, function_name)
    if existing is not None:
        if _grant_source_arn(existing) == source_arn:
            logger.debug("Invoke permission %s already present", PERMISSION_STATEMENT_ID)
            return False
        logger.info(
            "Invoke permission %s is scoped to %s, replacing it",
            PERMISSION_STATEMENT_ID,
            _grant_source_arn(existing),
        )
        _query(
            "RemovePermission",
            lambda_client.remove_permission,
            "ResourceNotFoundException",
            FunctionName=function_name,
            StatementId=PERMISSION_STATEMENT_ID,
        )

    try:
        lambda_client.add_permission(
            FunctionName=function_name,
            StatementId=PERMISSION_STATEMENT_ID,
            Action="lambda:InvokeFunction",
            Principal=APIGATEWAY_PRINCIPAL,
            SourceArn=source_arn,
        )
    except ClientError as e:
        if error_code(e) == "ResourceConflictException":
            return False
        raise ExternalCallError.from_boto(STAGE, "AddPermission", e) from e
    except BotoCoreError as e:
        raise ExternalCallError.from_boto(STAGE, "AddPermission", e) from e

    logger.info("Granted %s permission to invoke %s", APIGATEWAY_PRINCIPAL, function_name)
    return True


def complete_routing(
    apigw: Any,
    api_id: str,
    function: FunctionState,
    region: str,
) -> bool:
    """Create whichever part of the proxy routing is missing, then deploy it.

    Pieces that already exist are not touched, so an integration pointing
    elsewhere stays as it is.

    Returns:
        True if anything was created
    """
    changed = False

    proxy = _resource_by_path(apigw, api_id, f"/{PROXY_PATH_PART}")
    fresh = proxy is None
    if proxy is None:
        root = _resource_by_path(apigw, api_id, "/")
        if root is None:
            raise ExternalCallError(STAGE, "GetResources", f"Root resource of {api_id} not found")
        proxy = _call(
            "CreateResource",
            apigw.create_resource,
            restApiId=api_id,
            parentId=root["id"],
            pathPart=PROXY_PATH_PART,
        )
        changed = True

    method = None
    if not fresh:
        method = _query(
            "GetMethod",
            apigw.get_method,
            "NotFoundException",
            restApiId=api_id,
            resourceId=proxy["id"],
            httpMethod="ANY",
        )
    if method is None:
        _call(
            "PutMethod",
            apigw.put_method,
            restApiId=api_id,
            resourceId=proxy["id"],
            httpMethod="ANY",
            authorizationType="NONE",
        )
        changed = True

    if changed or _integration_uri(apigw, api_id, proxy["id"]) is None:
        _call(
            "PutIntegration",
            apigw.put_integration,
            restApiId=api_id,
            resourceId=proxy["id"],
            httpMethod="ANY",
            type="AWS_PROXY",
            integrationHttpMethod="POST",
            uri=invocation_uri(region, function.arn),
        )
        changed = True

    has_stage = (
        not changed
        and _query(
            "GetStage",
            apigw.get_stage,
            "NotFoundException",
            restApiId=api_id,
            stageName=STAGE_NAME,
        )
        is not None
    )
    if not has_stage:
        _call("CreateDeployment", apigw.create_deployment, restApiId=api_id, stageName=STAGE_NAME)
        changed = True

    return changed


def create_front_door(
    apigw: Any,
    function: FunctionState,
    region: str,
) -> str:
    """Create the REST API and its proxy routing tree.

    Returns:
        The new REST API id
    """
    name = front_door_name(function.name)
    logger.info("Creating new API Gateway: %s", name)

    api = _call(
        "CreateRestApi",
        apigw.create_rest_api,
        name=name,
        description=f"HTTP front door for Lambda function {function.name}",
    )
    complete_routing(apigw, api["id"], function, region)
    return str(api["id"])


def ensure_front_door(
    apigw: Any,
    lambda_client: Any,
    function: FunctionState,
    region: str,
    account_id: str,
) -> FrontDoor:
    """
    Converge the HTTP front door of ``function``.

    Args:
        apigw: boto3 API Gateway client
        lambda_client: boto3 Lambda client (for the invoke permission)
        function: The reconciled function
        region: AWS region
        account_id: Caller account id (scopes the permission source ARN)

    Returns:
        The front door; ``stale`` is set if its routing targets another function

    Raises:
        ExternalCallError: If any call fails
    """
    name = front_door_name(function.name)
    api = find_rest_api(apigw, name)

    if api is None:
        api_id = create_front_door(apigw, function, region)
        front_door = FrontDoor(
            api_id=api_id,
            name=name,
            url=front_door_url(api_id, region),
            created=True,
        )
    else:
        api_id = api["id"]
        logger.info("Using existing API Gateway: %s", api_id)
        if complete_routing(apigw, api_id, function, region):
            logger.warning("API Gateway %s had incomplete routing; missing parts created", api_id)
        stale = _is_stale(apigw, api_id, function, region)
        if stale:
            logger.warning(
                "API Gateway %s does not route to %s; its routing is not updated on redeploy",
                api_id,
                function.arn,
            )
        front_door = FrontDoor(
            api_id=api_id,
            name=name,
            url=front_door_url(api_id, region),
            stale=stale,
        )

    ensure_invoke_permission(
        lambda_client,
        function.name,
        invoke_source_arn(region, account_id, front_door.api_id),
    )
    logger.info("API Gateway URL: %s", front_door.url)
    return front_door
