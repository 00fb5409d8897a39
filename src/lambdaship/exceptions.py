"""Exceptions for lambdaship."""

from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

# ---------------------------------------------------------------------------
# Base Exception
# ---------------------------------------------------------------------------


class LambdaShipError(Exception):
    """
    Base exception for all lambdaship errors.

    All exceptions raised by this library inherit from this class,
    allowing callers to catch all library-specific errors with a single
    except clause.
    """

    pass


# ---------------------------------------------------------------------------
# Input Exceptions
# ---------------------------------------------------------------------------


class ValidationError(LambdaShipError):
    """
    Raised when a deployment input is malformed or missing.

    Always detected before any control-plane call is made.

    Attributes:
        field: Name of the offending input
        value: The rejected value
        reason: Human-readable explanation
    """

    def __init__(self, field: str, value: Any, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class NoEntryPointError(ValidationError):
    """Raised when the working directory holds none of the recognized entry-point files."""

    def __init__(self, workdir: str, candidates: list[str]) -> None:
        self.workdir = workdir
        self.candidates = candidates
        super().__init__(
            "entry point",
            workdir,
            f"No function file found (expected one of: {', '.join(candidates)})",
        )


# ---------------------------------------------------------------------------
# Environment Exceptions
# ---------------------------------------------------------------------------


class PreconditionError(LambdaShipError):
    """
    Raised when an external prerequisite is absent or invalid.

    Typically this means AWS credentials are not configured or have expired.
    """

    def __init__(self, reason: str, remediation: str | None = None) -> None:
        self.reason = reason
        self.remediation = remediation
        msg = reason
        if remediation:
            msg += f". {remediation}"
        super().__init__(msg)


class PackagingError(LambdaShipError):
    """Raised when the deployment package cannot be built."""

    def __init__(self, function_name: str, reason: str) -> None:
        self.function_name = function_name
        self.reason = reason
        super().__init__(f"Packaging {function_name} failed: {reason}")


class CleanupError(LambdaShipError):
    """
    Raised when a temporary staging area cannot be removed.

    Cleanup is best effort: this error is logged and never fails a run.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to remove {path}: {reason}")


# ---------------------------------------------------------------------------
# Control Plane Exceptions
# ---------------------------------------------------------------------------

_REMEDIATIONS = {
    "AccessDenied": "Check that your credentials grant the required IAM permissions.",
    "AccessDeniedException": "Check that your credentials grant the required IAM permissions.",
    "UnrecognizedClientException": "Re-check your AWS credentials (run 'aws configure').",
    "InvalidClientTokenId": "Re-check your AWS credentials (run 'aws configure').",
    "ExpiredToken": "Your session token has expired. Refresh your credentials.",
    "TooManyRequestsException": "The request was throttled. Re-run the deployment.",
    "ThrottlingException": "The request was throttled. Re-run the deployment.",
    "LimitExceededException": "An account quota was reached. Request a limit increase.",
    "InvalidParameterValueException": "Check the function settings (runtime, handler, role).",
    "ResourceConflictException": "Another update is in progress. Wait and re-run.",
}

_DEFAULT_REMEDIATION = "Re-check your credentials and re-run; reconciliation is idempotent."


class ExternalCallError(LambdaShipError):
    """
    Raised when a control-plane call fails.

    Not distinguished by sub-type: permission denied, quota exceeded and
    transient unavailability all surface here. Fatal during the identity and
    function stages, degraded during the front-door stage.

    Attributes:
        stage: Reconciliation stage that issued the call
        operation: Control-plane operation name (e.g., 'CreateFunction')
        reason: Underlying control-plane message
        code: Control-plane error code, if any
    """

    def __init__(
        self,
        stage: str,
        operation: str,
        reason: str,
        code: str | None = None,
    ) -> None:
        self.stage = stage
        self.operation = operation
        self.reason = reason
        self.code = code
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        code = f" ({self.code})" if self.code else ""
        return f"{self.stage} stage failed in {self.operation}{code}: {self.reason}"

    @property
    def remediation(self) -> str:
        """Suggested operator action for this failure."""
        return _REMEDIATIONS.get(self.code or "", _DEFAULT_REMEDIATION)

    @classmethod
    def from_boto(
        cls, stage: str, operation: str, error: ClientError | BotoCoreError
    ) -> "ExternalCallError":
        """Wrap a botocore error raised by ``operation``."""
        if isinstance(error, ClientError):
            err = error.response.get("Error", {})
            return cls(
                stage=stage,
                operation=operation,
                reason=err.get("Message") or str(error),
                code=err.get("Code"),
            )
        return cls(stage=stage, operation=operation, reason=str(error))


def error_code(error: ClientError) -> str:
    """Return the control-plane error code of a ClientError."""
    return str(error.response.get("Error", {}).get("Code", ""))
