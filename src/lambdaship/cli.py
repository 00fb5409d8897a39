"""Command-line interface for lambdaship."""

import functools
import logging
import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from .config import DEFAULT_PROPAGATION_DELAY, DeployOptions, resolve_request
from .exceptions import ExternalCallError, LambdaShipError, ValidationError
from .infra.clients import ControlPlane
from .infra.lambda_builder import build_package, detect_project
from .models import MAX_MEMORY_MB, MAX_TIMEOUT_SECONDS, MIN_MEMORY_MB, SUPPORTED_RUNTIMES
from .plan import compute_plan
from .provisioner import Provisioner
from .reporting import OutputFormat, describe_deployment, format_summary

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_PLAN_SYMBOLS = {"create": "+", "update": "~", "reuse": "="}


@click.group()
@click.version_option(package_name="lambdaship")
@click.option(
    "--log-level",
    envvar="LOG_LEVEL",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Library log level (default: WARNING; DEBUG=true forces DEBUG)",
)
@click.option(
    "--log-file",
    envvar="LOG_FILE",
    type=click.Path(dir_okay=False),
    help="Write library logs to this file instead of stderr",
)
def cli(log_level: str, log_file: str | None) -> None:
    """lambdaship: deploy AWS Lambda functions and their API Gateway front door."""
    if os.environ.get("DEBUG", "").lower() == "true":
        log_level = "DEBUG"
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=_LOG_FORMAT,
        filename=log_file,
    )


def request_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Options that make up a DeploymentRequest.

    Every option defaults to None so environment variables and the config
    file can fill in whatever is not given on the command line.
    """
    options = [
        click.option(
            "--config",
            "config_file",
            type=click.Path(exists=True, dir_okay=False),
            help="YAML file with deployment settings",
        ),
        click.option("--function-name", help="Lambda function name (env: FUNCTION_NAME)"),
        click.option(
            "--runtime",
            type=click.Choice(SUPPORTED_RUNTIMES),
            help="Lambda runtime (env: RUNTIME, default: nodejs18.x)",
        ),
        click.option("--handler", help="Handler reference (env: HANDLER, default: index.handler)"),
        click.option(
            "--memory-size",
            type=click.IntRange(MIN_MEMORY_MB, MAX_MEMORY_MB),
            help=f"Memory in MB ({MIN_MEMORY_MB}-{MAX_MEMORY_MB}, env: MEMORY_SIZE)",
        ),
        click.option(
            "--timeout",
            type=click.IntRange(1, MAX_TIMEOUT_SECONDS),
            help=f"Timeout in seconds (1-{MAX_TIMEOUT_SECONDS}, env: TIMEOUT)",
        ),
        click.option("--region", help="AWS region (env: REGION, default: us-east-1)"),
        click.option("--role-name", help="Execution role name (env: ROLE_NAME)"),
        click.option(
            "--api-gateway/--no-api-gateway",
            "expose_http",
            default=None,
            help="Expose the function through API Gateway (env: API_GATEWAY)",
        ),
        click.option(
            "--endpoint-url",
            help=(
                "AWS endpoint URL "
                "(e.g., http://localhost:4566 for LocalStack, or other AWS-compatible services)"
            ),
        ),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


def output_option(fn: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--output",
        "-o",
        type=click.Choice([f.value for f in OutputFormat]),
        default=OutputFormat.TEXT.value,
        help="Summary format (default: text)",
    )(fn)


def _resolve(config_file: str | None, **overrides: Any) -> Any:
    try:
        return resolve_request(config_file=config_file, overrides=overrides)
    except ValidationError as e:
        click.echo(f"✗ Invalid configuration: {e}", err=True)
        sys.exit(1)


def _handle_errors(action: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Turn lambdaship errors into a one-line message and exit code 1."""

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                return fn(*args, **kwargs)
            except ExternalCallError as e:
                click.echo(f"✗ {action} failed in the {e.stage} stage: {e.reason}", err=True)
                click.echo(f"  {e.remediation}", err=True)
                sys.exit(1)
            except LambdaShipError as e:
                click.echo(f"✗ {action} failed: {e}", err=True)
                sys.exit(1)

        return wrapper

    return decorator


@cli.command()
@request_options
@output_option
@click.option(
    "--workdir",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Directory holding the function source (default: current directory)",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False),
    default=".",
    help="Directory the <function>.zip archive is written to",
)
@click.option(
    "--keep-archive",
    is_flag=True,
    help="Keep the deployment archive after upload",
)
@click.option(
    "--wait/--no-wait",
    default=True,
    help="Wait for each function update to settle before the next call",
)
@click.option(
    "--propagation-delay",
    type=click.FloatRange(0),
    default=DEFAULT_PROPAGATION_DELAY,
    show_default=True,
    help="Seconds to wait after creating the IAM role",
)
@click.option(
    "--fail-on-degraded",
    is_flag=True,
    help="Exit with status 2 when the function deployed but the API Gateway stage failed",
)
@_handle_errors("Deployment")
def deploy(
    config_file: str | None,
    function_name: str | None,
    runtime: str | None,
    handler: str | None,
    memory_size: int | None,
    timeout: int | None,
    region: str | None,
    role_name: str | None,
    expose_http: bool | None,
    endpoint_url: str | None,
    output: str,
    workdir: str,
    output_dir: str,
    keep_archive: bool,
    wait: bool,
    propagation_delay: float,
    fail_on_degraded: bool,
) -> None:
    """Deploy a Lambda function, creating or updating it as needed."""
    request = _resolve(
        config_file,
        function_name=function_name,
        runtime=runtime,
        handler=handler,
        memory_size=memory_size,
        timeout=timeout,
        region=region,
        role_name=role_name,
        expose_http=expose_http,
    )
    options = DeployOptions(
        workdir=Path(workdir),
        output_dir=Path(output_dir),
        endpoint_url=endpoint_url,
        propagation_delay=propagation_delay,
        wait=wait,
        keep_archive=keep_archive,
    )
    fmt = OutputFormat(output)
    # Keep stdout parseable for machine-readable output
    progress_to_stderr = fmt is not OutputFormat.TEXT

    click.echo(f"Deploying Lambda function: {request.function_name}", err=progress_to_stderr)
    click.echo(f"  Region: {request.region}", err=progress_to_stderr)
    click.echo(f"  Runtime: {request.runtime}", err=progress_to_stderr)
    click.echo(
        f"  API Gateway: {'enabled' if request.expose_http else 'disabled'}",
        err=progress_to_stderr,
    )
    click.echo(err=progress_to_stderr)

    def on_stage(index: int, total: int, label: str) -> None:
        click.echo(f"[{index}/{total}] {label}...", err=progress_to_stderr)

    control_plane = ControlPlane.connect(request.region, endpoint_url)
    provisioner = Provisioner(control_plane, options, on_stage=on_stage)
    result = provisioner.deploy(request)

    click.echo(err=progress_to_stderr)
    if result.degraded:
        click.echo("⚠️  Lambda function deployed, but the API Gateway setup failed:", err=True)
        for error in result.errors:
            click.echo(f"  {error}", err=True)
        click.echo("  Re-run 'lambdaship deploy' to retry the API Gateway stage.", err=True)
    else:
        action = "created" if result.function_created else "updated"
        click.echo(f"✓ Lambda function {action} successfully!", err=progress_to_stderr)
    click.echo(err=progress_to_stderr)

    if result.summary is not None:
        click.echo(format_summary(result.summary, fmt))

    if result.degraded and fail_on_degraded:
        sys.exit(2)


@cli.command()
@request_options
@_handle_errors("Plan")
def plan(
    config_file: str | None,
    function_name: str | None,
    runtime: str | None,
    handler: str | None,
    memory_size: int | None,
    timeout: int | None,
    region: str | None,
    role_name: str | None,
    expose_http: bool | None,
    endpoint_url: str | None,
) -> None:
    """Show what deploy would create, update or reuse, without changing anything."""
    request = _resolve(
        config_file,
        function_name=function_name,
        runtime=runtime,
        handler=handler,
        memory_size=memory_size,
        timeout=timeout,
        region=region,
        role_name=role_name,
        expose_http=expose_http,
    )
    control_plane = ControlPlane.connect(request.region, endpoint_url)
    control_plane.account_id()

    click.echo(f"Plan for {request.function_name} ({request.region}):")
    for change in compute_plan(control_plane, request):
        symbol = _PLAN_SYMBOLS.get(change.action, "?")
        detail = f" ({change.detail})" if change.detail else ""
        click.echo(f"  {symbol} {change.action} {change.resource} {change.name}{detail}")


@cli.command()
@request_options
@output_option
@_handle_errors("Status")
def status(
    config_file: str | None,
    function_name: str | None,
    runtime: str | None,
    handler: str | None,
    memory_size: int | None,
    timeout: int | None,
    region: str | None,
    role_name: str | None,
    expose_http: bool | None,
    endpoint_url: str | None,
    output: str,
) -> None:
    """Show the deployed function as the control plane reports it."""
    request = _resolve(
        config_file,
        function_name=function_name,
        runtime=runtime,
        handler=handler,
        memory_size=memory_size,
        timeout=timeout,
        region=region,
        role_name=role_name,
        expose_http=expose_http,
    )
    control_plane = ControlPlane.connect(request.region, endpoint_url)
    summary = describe_deployment(control_plane, request)

    if summary is None:
        click.echo(f"Function '{request.function_name}' not found in {request.region}")
        sys.exit(1)

    click.echo(format_summary(summary, OutputFormat(output)))


@cli.command("package")
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--function-name", help="Function name (names the archive)")
@click.option("--runtime", type=click.Choice(SUPPORTED_RUNTIMES), help="Lambda runtime")
@click.option(
    "--workdir",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Directory holding the function source (default: current directory)",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False),
    default=".",
    help="Directory the archive is written to (default: current directory)",
)
@click.option("--info", is_flag=True, help="Show the detected layout without building")
@_handle_errors("Packaging")
def package_cmd(
    config_file: str | None,
    function_name: str | None,
    runtime: str | None,
    workdir: str,
    output_dir: str,
    info: bool,
) -> None:
    """Build the deployment archive without deploying it."""
    request = _resolve(config_file, function_name=function_name, runtime=runtime)
    layout = detect_project(workdir, request.kind)

    if info:
        click.echo()
        click.echo("Lambda Package Information")
        click.echo("=" * 26)
        click.echo()
        click.echo(f"Runtime family:    {layout.kind.value}")
        click.echo(f"Entry point:       {layout.entry_point} -> {layout.canonical_entry_name}")
        click.echo(f"Manifest:          {layout.manifest or 'none'}")
        click.echo(f"Lock file:         {layout.lock_file or 'none'}")
        click.echo(f"Handler:           {request.handler}")
        click.echo()
        return

    with build_package(request, layout, output_dir, keep=True) as pkg:
        size_kb = pkg.size_bytes / 1024
        click.echo(f"✓ Exported Lambda package to: {pkg.path} ({size_kb:.1f} KB)")


if __name__ == "__main__":
    cli()
