"""Idempotent deployment of a Lambda function and its HTTP front door.

Stages run strictly in sequence, each re-querying the control plane before
deciding between create and update:

1. probe credentials
2. build the deployment package
3. reconcile the execution role
4. reconcile the function
5. reconcile the API Gateway front door (only when requested)
6. rebuild the summary from the control plane

Failures in stages 1-4 are fatal and propagate after the staging area and
archive are cleaned up. A front-door failure leaves the function deployed
and is recorded on the result instead (degraded success), as is a reused
front door whose routing targets another function. Nothing is retried and
nothing is rolled back.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from .config import DeployOptions
from .exceptions import ExternalCallError
from .infra.clients import ControlPlane
from .infra.front_door import ensure_front_door
from .infra.functions import ensure_function
from .infra.identity import ensure_execution_role
from .infra.lambda_builder import build_package, detect_project
from .models import DeploymentRequest, DeploymentResult, DeploymentSummary
from .reporting import describe_deployment

logger = logging.getLogger(__name__)

StageCallback = Callable[[int, int, str], None]

STALE_ROUTING_ERROR = "front-door stage left stale routing"


class Provisioner:
    """
    Drives one deployment request through the control plane.

    Example:
        control_plane = ControlPlane.connect(region="us-east-1")
        provisioner = Provisioner(control_plane, DeployOptions(workdir=Path("fn")))
        result = provisioner.deploy(request)
        print(result.status, result.function.arn)

    Attributes:
        control_plane: Clients for IAM, Lambda, API Gateway and STS
        options: Run settings (directories, waits, propagation delay)
    """

    def __init__(
        self,
        control_plane: ControlPlane,
        options: DeployOptions | None = None,
        on_stage: StageCallback | None = None,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        """
        Initialize the provisioner.

        Args:
            control_plane: Control-plane clients
            options: Run settings (default: current directory, waits on)
            on_stage: Called as ``on_stage(index, total, label)`` before each stage
            sleep: Sleep function used for the role propagation delay
        """
        self.control_plane = control_plane
        self.options = options or DeployOptions()
        self._on_stage = on_stage
        self._sleep = sleep

    def _announce(self, index: int, total: int, label: str) -> None:
        logger.info("[%d/%d] %s", index, total, label)
        if self._on_stage is not None:
            self._on_stage(index, total, label)

    def deploy(self, request: DeploymentRequest) -> DeploymentResult:
        """
        Converge the control plane to ``request``.

        Running the same request twice performs only updates the second
        time and yields the same function configuration and URL.

        Args:
            request: Desired deployment

        Returns:
            Result with status ``deployed`` or ``degraded``

        Raises:
            ValidationError: If no entry point is found (before any call)
            PreconditionError: If credentials are missing or invalid
            PackagingError: If the package cannot be built
            ExternalCallError: If role or function reconciliation fails
        """
        options = self.options
        control_plane = self.control_plane
        total = 6 if request.expose_http else 5
        stage = 0

        def next_stage(label: str) -> None:
            nonlocal stage
            stage += 1
            self._announce(stage, total, label)

        layout = detect_project(options.workdir, request.kind)
        logger.debug("Detected %s project, entry point %s", layout.kind.value, layout.entry_point)

        next_stage("Validating AWS credentials")
        account_id = control_plane.account_id()

        next_stage("Creating deployment package")
        with build_package(request, layout, options.output_dir, keep=options.keep_archive) as pkg:
            next_stage("Setting up IAM role")
            role = ensure_execution_role(
                control_plane.iam,
                request.role_name,
                propagation_delay=options.propagation_delay,
                sleep=self._sleep,
            )

            next_stage(f"Deploying Lambda function: {request.function_name}")
            function, created = ensure_function(
                control_plane.lambda_,
                request,
                role,
                pkg.zip_bytes,
                wait=options.wait,
            )

        result = DeploymentResult(
            request=request,
            role=role,
            function=function,
            function_created=created,
        )

        if request.expose_http:
            next_stage("Setting up API Gateway trigger")
            try:
                result.front_door = ensure_front_door(
                    control_plane.apigateway,
                    control_plane.lambda_,
                    function,
                    request.region,
                    account_id,
                )
            except ExternalCallError as e:
                logger.warning("Front door not provisioned, function is still deployed: %s", e)
                result.errors.append(str(e))
            else:
                if result.front_door.stale:
                    result.errors.append(
                        f"{STALE_ROUTING_ERROR}: API Gateway {result.front_door.api_id} "
                        f"does not route to {function.arn}"
                    )

        next_stage("Collecting deployment summary")
        try:
            result.summary = describe_deployment(control_plane, request)
        except ExternalCallError as e:
            logger.warning("Could not re-read deployment state, reporting local view: %s", e)

        if result.summary is None:
            result.summary = DeploymentSummary(
                function=function,
                region=request.region,
                front_door=result.front_door,
            )

        logger.info(
            "Deployment of %s finished with status %s", request.function_name, result.status
        )
        return result
