"""Read-only preview of what a deployment would change.

Queries the control plane the same way ``Provisioner.deploy`` does and
reports, per resource, whether it would be created, updated or reused.
No mutating call is issued.
"""

from __future__ import annotations

from dataclasses import dataclass

from .infra.clients import ControlPlane
from .infra.front_door import describe_front_door
from .infra.functions import get_function_state
from .infra.identity import get_role
from .models import DeploymentRequest


@dataclass(frozen=True)
class Change:
    """A single planned change."""

    action: str  # "create", "update", "reuse"
    resource: str  # "role", "function", "front-door"
    name: str
    detail: str = ""


def compute_plan(control_plane: ControlPlane, request: DeploymentRequest) -> list[Change]:
    """Compute the changes ``request`` would make.

    Args:
        control_plane: Control-plane clients
        request: Desired deployment

    Returns:
        Changes in the order the provisioner would apply them
    """
    changes: list[Change] = []

    role = get_role(control_plane.iam, request.role_name)
    changes.append(
        Change(
            action="reuse" if role else "create",
            resource="role",
            name=request.role_name,
            detail=role.arn if role else "",
        )
    )

    function = get_function_state(control_plane.lambda_, request.function_name)
    if function is None:
        changes.append(Change(action="create", resource="function", name=request.function_name))
    else:
        drift = "" if function.matches(request) else "configuration differs"
        changes.append(
            Change(
                action="update",
                resource="function",
                name=request.function_name,
                detail=drift or "code only",
            )
        )

    if request.expose_http:
        front_door = describe_front_door(
            control_plane.apigateway, request.function_name, request.region, function=function
        )
        if front_door is None:
            changes.append(
                Change(action="create", resource="front-door", name=request.front_door_name)
            )
        else:
            changes.append(
                Change(
                    action="reuse",
                    resource="front-door",
                    name=request.front_door_name,
                    detail="stale routing" if front_door.stale else front_door.url,
                )
            )

    return changes
