"""
lambdaship: idempotent AWS Lambda deployment.

Provisions a Lambda function, its execution role and an optional API
Gateway front door by querying the control plane before every change:
a first run creates, every later run updates in place.

Example:
    from pathlib import Path

    from lambdaship import ControlPlane, DeploymentRequest, DeployOptions, Provisioner

    request = DeploymentRequest(function_name="hello", expose_http=True)
    provisioner = Provisioner(
        ControlPlane.connect(region=request.region),
        DeployOptions(workdir=Path("hello")),
    )
    result = provisioner.deploy(request)
    print(result.status, result.summary.url)
"""

from importlib.metadata import PackageNotFoundError, version

from .config import DeployOptions, resolve_request
from .exceptions import (
    CleanupError,
    ExternalCallError,
    LambdaShipError,
    NoEntryPointError,
    PackagingError,
    PreconditionError,
    ValidationError,
)
from .infra.clients import ControlPlane
from .models import (
    DeploymentRequest,
    DeploymentResult,
    DeploymentSummary,
    FrontDoor,
    FunctionState,
    Package,
    ProjectKind,
    ProjectLayout,
    RoleRef,
)
from .provisioner import Provisioner

try:
    __version__ = version("lambdaship")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

__all__ = [
    # Version
    "__version__",
    # Main classes
    "Provisioner",
    "ControlPlane",
    "DeployOptions",
    "resolve_request",
    # Models
    "DeploymentRequest",
    "DeploymentResult",
    "DeploymentSummary",
    "FrontDoor",
    "FunctionState",
    "Package",
    "ProjectKind",
    "ProjectLayout",
    "RoleRef",
    # Exceptions
    "LambdaShipError",
    "ValidationError",
    "NoEntryPointError",
    "PreconditionError",
    "PackagingError",
    "ExternalCallError",
    "CleanupError",
]
