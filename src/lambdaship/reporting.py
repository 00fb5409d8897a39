"""
Deployment summaries.

The summary of a run is rebuilt from control-plane queries only, so a
caller can reproduce it after a crash by re-querying (``lambdaship status``).
It renders as operator-friendly text, as JSON, or as a bordered table.
"""

from __future__ import annotations

import json
from enum import Enum

from .infra.clients import ControlPlane
from .infra.front_door import describe_front_door
from .infra.functions import get_function_state
from .models import DeploymentRequest, DeploymentSummary
from .naming import log_group_name


class OutputFormat(str, Enum):
    """Rendering of a deployment summary."""

    TEXT = "text"
    JSON = "json"
    TABLE = "table"


def describe_deployment(
    control_plane: ControlPlane,
    request: DeploymentRequest,
) -> DeploymentSummary | None:
    """
    Query the control plane for the current state of a deployment.

    The front door is only looked up when the request exposes the
    function over HTTP.

    Returns:
        The summary, or None if the function does not exist
    """
    function = get_function_state(control_plane.lambda_, request.function_name)
    if function is None:
        return None

    front_door = None
    if request.expose_http:
        front_door = describe_front_door(
            control_plane.apigateway,
            request.function_name,
            request.region,
            function=function,
        )

    return DeploymentSummary(function=function, region=request.region, front_door=front_door)


def _rows(summary: DeploymentSummary) -> list[tuple[str, str]]:
    fn = summary.function
    rows = [
        ("Function", fn.name),
        ("ARN", fn.arn),
        ("Region", summary.region),
        ("Runtime", fn.runtime),
        ("Handler", fn.handler),
        ("Memory", f"{fn.memory_size} MB"),
        ("Timeout", f"{fn.timeout} seconds"),
    ]
    if summary.front_door is not None:
        rows.append(("API URL", summary.front_door.url))
    return rows


def render_table(rows: list[tuple[str, str]]) -> str:
    """Render key/value rows inside a box-drawing border.

    Example output:
        +----------+-------+
        | Field    | Value |
        +----------+-------+
        | Function | fn1   |
        +----------+-------+
    """
    key_width = max([len("Field")] + [len(k) for k, _ in rows])
    value_width = max([len("Value")] + [len(v) for _, v in rows])
    border = f"+-{'-' * key_width}-+-{'-' * value_width}-+"

    lines = [border, f"| {'Field'.ljust(key_width)} | {'Value'.ljust(value_width)} |", border]
    lines.extend(f"| {k.ljust(key_width)} | {v.ljust(value_width)} |" for k, v in rows)
    lines.append(border)
    return "\n".join(lines)


def usage_hints(summary: DeploymentSummary) -> list[str]:
    """Follow-up commands for testing the function and reading its logs."""
    name = summary.function.name
    region = summary.region
    return [
        "Test your function:",
        f"aws lambda invoke --function-name {name} --payload '{{}}' response.json "
        f"--region {region}",
        "",
        "View logs:",
        f"aws logs filter-log-events --log-group-name {log_group_name(name)} --region {region}",
    ]


def format_summary(summary: DeploymentSummary, output: OutputFormat = OutputFormat.TEXT) -> str:
    """Render a summary in the requested format."""
    if output is OutputFormat.JSON:
        return json.dumps(summary.as_dict(), indent=2)

    if output is OutputFormat.TABLE:
        return render_table(_rows(summary))

    lines = [f"{key}: {value}" for key, value in _rows(summary)]
    if summary.front_door is not None and summary.front_door.stale:
        lines.append("Warning: API routing targets a different function configuration")
    lines.append("")
    lines.extend(usage_hints(summary))
    return "\n".join(lines)
