"""Core models for lambdaship."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .exceptions import ValidationError
from .naming import front_door_name, validate_function_name, validate_role_name

SUPPORTED_RUNTIMES: tuple[str, ...] = (
    "nodejs18.x",
    "nodejs20.x",
    "nodejs22.x",
    "python3.9",
    "python3.10",
    "python3.11",
    "python3.12",
    "python3.13",
)

MIN_MEMORY_MB = 128
MAX_MEMORY_MB = 10240
MAX_TIMEOUT_SECONDS = 900


class ProjectKind(str, Enum):
    """Runtime family of a function project."""

    NODEJS = "nodejs"
    PYTHON = "python"

    @classmethod
    def for_runtime(cls, runtime: str) -> "ProjectKind":
        """Map a runtime identifier (e.g. 'nodejs18.x') to its family."""
        for kind in cls:
            if runtime.startswith(kind.value):
                return kind
        raise ValidationError("runtime", runtime, "Unknown runtime family")


@dataclass(frozen=True)
class DeploymentRequest:
    """
    Desired state of one function deployment.

    Constructed once at entry (see ``config.resolve_request``) and passed
    unchanged through every stage.

    Attributes:
        function_name: Lambda function name (primary key of the function)
        runtime: Lambda runtime identifier, one of ``SUPPORTED_RUNTIMES``
        handler: Handler reference inside the package (e.g. 'index.handler')
        memory_size: Memory limit in MB
        timeout: Timeout in seconds
        region: AWS region
        role_name: Execution role name (created once, then reused)
        expose_http: Whether to front the function with an API Gateway REST API
    """

    function_name: str
    runtime: str = "nodejs18.x"
    handler: str = "index.handler"
    memory_size: int = 128
    timeout: int = 30
    region: str = "us-east-1"
    role_name: str = "lambda-basic-execution"
    expose_http: bool = False

    def __post_init__(self) -> None:
        validate_function_name(self.function_name)
        validate_role_name(self.role_name)
        if self.runtime not in SUPPORTED_RUNTIMES:
            raise ValidationError(
                "runtime",
                self.runtime,
                f"Must be one of: {', '.join(SUPPORTED_RUNTIMES)}",
            )
        if not self.handler or "." not in self.handler:
            raise ValidationError(
                "handler", self.handler, "Must look like '<module>.<function>'"
            )
        if not MIN_MEMORY_MB <= self.memory_size <= MAX_MEMORY_MB:
            raise ValidationError(
                "memory size",
                self.memory_size,
                f"Must be between {MIN_MEMORY_MB} and {MAX_MEMORY_MB} MB",
            )
        if not 0 < self.timeout <= MAX_TIMEOUT_SECONDS:
            raise ValidationError(
                "timeout",
                self.timeout,
                f"Must be between 1 and {MAX_TIMEOUT_SECONDS} seconds",
            )
        if not self.region:
            raise ValidationError("region", self.region, "Region cannot be empty")

    @property
    def kind(self) -> ProjectKind:
        return ProjectKind.for_runtime(self.runtime)

    @property
    def front_door_name(self) -> str:
        return front_door_name(self.function_name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "function_name": self.function_name,
            "runtime": self.runtime,
            "handler": self.handler,
            "memory_size": self.memory_size,
            "timeout": self.timeout,
            "region": self.region,
            "role_name": self.role_name,
            "expose_http": self.expose_http,
        }


@dataclass(frozen=True)
class ProjectLayout:
    """
    Result of probing a working directory, computed exactly once per run.

    Attributes:
        kind: Runtime family the files were matched for
        entry_point: The function file that was found
        manifest: Dependency manifest (package.json / requirements.txt), if any
        lock_file: Lock file (package-lock.json), if any
    """

    kind: ProjectKind
    entry_point: Path
    manifest: Path | None = None
    lock_file: Path | None = None

    @property
    def canonical_entry_name(self) -> str:
        """File name the entry point is stored under inside the package."""
        return f"index{self.entry_point.suffix}"


@dataclass(frozen=True)
class Package:
    """A built deployment archive."""

    path: Path
    layout: ProjectLayout
    zip_bytes: bytes = field(repr=False)

    @property
    def size_bytes(self) -> int:
        return len(self.zip_bytes)


@dataclass(frozen=True)
class RoleRef:
    """Execution role the function runs as."""

    name: str
    arn: str
    created: bool = False


@dataclass(frozen=True)
class FunctionState:
    """A Lambda function as reported by the control plane."""

    name: str
    arn: str
    runtime: str
    handler: str
    memory_size: int
    timeout: int
    role_arn: str
    code_sha256: str = ""
    last_modified: str = ""

    @classmethod
    def from_configuration(cls, config: dict[str, Any]) -> "FunctionState":
        """Build from a Lambda ``Configuration`` response block."""
        return cls(
            name=config["FunctionName"],
            arn=config["FunctionArn"],
            runtime=config.get("Runtime", ""),
            handler=config.get("Handler", ""),
            memory_size=int(config.get("MemorySize", 0)),
            timeout=int(config.get("Timeout", 0)),
            role_arn=config.get("Role", ""),
            code_sha256=config.get("CodeSha256", ""),
            last_modified=config.get("LastModified", ""),
        )

    def matches(self, request: DeploymentRequest) -> bool:
        """True if the observable configuration equals the requested one."""
        return (
            self.runtime == request.runtime
            and self.handler == request.handler
            and self.memory_size == request.memory_size
            and self.timeout == request.timeout
        )


@dataclass(frozen=True)
class FrontDoor:
    """
    API Gateway REST API bound to one function.

    Attributes:
        api_id: REST API id
        name: REST API name (derived from the function name)
        url: Public invoke URL of the deployed stage
        created: True if the routing tree was created in this run
        stale: True if the proxy integration targets a different function ARN
    """

    api_id: str
    name: str
    url: str
    created: bool = False
    stale: bool = False


@dataclass(frozen=True)
class DeploymentSummary:
    """Operator-facing result of a run, rebuilt purely from control-plane queries."""

    function: FunctionState
    region: str
    front_door: FrontDoor | None = None

    @property
    def url(self) -> str | None:
        return self.front_door.url if self.front_door else None

    def as_dict(self) -> dict[str, Any]:
        """Serialize for machine-readable output."""
        return {
            "function_name": self.function.name,
            "function_arn": self.function.arn,
            "region": self.region,
            "runtime": self.function.runtime,
            "handler": self.function.handler,
            "memory_size": self.function.memory_size,
            "timeout": self.function.timeout,
            "code_sha256": self.function.code_sha256,
            "last_modified": self.function.last_modified,
            "url": self.url,
            "front_door_stale": self.front_door.stale if self.front_door else False,
        }


@dataclass
class DeploymentResult:
    """Outcome of one provisioner run."""

    request: DeploymentRequest
    role: RoleRef
    function: FunctionState
    function_created: bool
    front_door: FrontDoor | None = None
    summary: DeploymentSummary | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        """The function is deployed but the front-door stage failed."""
        return bool(self.errors)

    @property
    def status(self) -> str:
        return "degraded" if self.degraded else "deployed"
