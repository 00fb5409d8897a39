"""boto3 clients for the control plane a deployment drives."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from ..exceptions import PreconditionError

logger = logging.getLogger(__name__)

_CREDENTIALS_HINT = "Run 'aws configure' or export AWS_ACCESS_KEY_ID/AWS_SECRET_ACCESS_KEY"


@dataclass
class ControlPlane:
    """
    The external APIs a deployment talks to.

    Every call is synchronous; clients are injectable so tests can pass
    recording mocks instead of real ones.
    """

    iam: Any
    lambda_: Any
    apigateway: Any
    sts: Any
    region: str

    @classmethod
    def connect(
        cls,
        region: str,
        endpoint_url: str | None = None,
        session: boto3.Session | None = None,
    ) -> ControlPlane:
        """
        Create clients from one boto3 session.

        Args:
            region: AWS region
            endpoint_url: Optional endpoint URL (for LocalStack or other
                AWS-compatible services)
            session: Optional pre-built session (default: a new one)
        """
        if session is None:
            session = boto3.Session()

        kwargs: dict[str, Any] = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url

        return cls(
            iam=session.client("iam", **kwargs),
            lambda_=session.client("lambda", **kwargs),
            apigateway=session.client("apigateway", **kwargs),
            sts=session.client("sts", **kwargs),
            region=region,
        )

    def account_id(self) -> str:
        """
        Probe credentials and return the caller's account id.

        Issued before any mutating call.

        Raises:
            PreconditionError: If credentials are missing or rejected
        """
        try:
            identity = self.sts.get_caller_identity()
        except NoCredentialsError as e:
            raise PreconditionError("AWS credentials not configured", _CREDENTIALS_HINT) from e
        except ClientError as e:
            message = e.response.get("Error", {}).get("Message", str(e))
            raise PreconditionError(
                f"AWS credentials invalid: {message}", _CREDENTIALS_HINT
            ) from e
        except BotoCoreError as e:
            raise PreconditionError(f"Cannot reach AWS: {e}", _CREDENTIALS_HINT) from e

        account = str(identity["Account"])
        logger.debug("Credentials validated for account %s", account)
        return account
