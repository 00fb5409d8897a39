"""Configuration resolution for deployments.

A ``DeploymentRequest`` is resolved once at entry from, lowest precedence
first: built-in defaults, an optional YAML config file, environment
variables, then explicit overrides (CLI options). Nothing downstream reads
the environment again.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .exceptions import ValidationError
from .models import DeploymentRequest

DEFAULTS: dict[str, Any] = {
    "function_name": "my-lambda-function",
    "runtime": "nodejs18.x",
    "handler": "index.handler",
    "memory_size": 128,
    "timeout": 30,
    "region": "us-east-1",
    "role_name": "lambda-basic-execution",
    "expose_http": False,
}

ENV_KEYS: dict[str, str] = {
    "function_name": "FUNCTION_NAME",
    "runtime": "RUNTIME",
    "handler": "HANDLER",
    "memory_size": "MEMORY_SIZE",
    "timeout": "TIMEOUT",
    "region": "REGION",
    "role_name": "ROLE_NAME",
    "expose_http": "API_GATEWAY",
}

_INT_FIELDS = {"memory_size", "timeout"}
_BOOL_FIELDS = {"expose_http"}
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}

DEFAULT_PROPAGATION_DELAY = 10.0
"""Seconds to wait after creating a role before Lambda will accept it."""


@dataclass(frozen=True)
class DeployOptions:
    """Run settings that are not part of the desired resource state."""

    workdir: Path = Path(".")
    output_dir: Path = Path(".")
    endpoint_url: str | None = None
    propagation_delay: float = DEFAULT_PROPAGATION_DELAY
    wait: bool = True
    keep_archive: bool = False


def _coerce(field_name: str, value: Any) -> Any:
    if field_name in _INT_FIELDS:
        if isinstance(value, bool):
            raise ValidationError(field_name.replace("_", " "), value, "Must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(
                field_name.replace("_", " "), value, "Must be an integer"
            ) from None
    if field_name in _BOOL_FIELDS:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        raise ValidationError(field_name.replace("_", " "), value, "Must be true or false")
    return str(value)


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML config file.

    Keys may be request field names (``function_name``) or their environment
    names (``FUNCTION_NAME``); unknown keys are rejected.

    Returns:
        Dict keyed by request field name.
    """
    import yaml

    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except OSError as e:
        raise ValidationError("config file", str(path), f"Cannot read file: {e}") from e
    except yaml.YAMLError as e:
        raise ValidationError("config file", str(path), f"Invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ValidationError("config file", str(path), "Top level must be a mapping")

    env_to_field = {env: name for name, env in ENV_KEYS.items()}
    result: dict[str, Any] = {}
    for key, value in data.items():
        name = key if key in DEFAULTS else env_to_field.get(key)
        if name is None:
            raise ValidationError("config key", key, "Unknown setting")
        # A key with no value parses as None
        if value is None:
            raise ValidationError(name.replace("_", " "), value, f"{key} has no value in {path}")
        result[name] = value
    return result


def resolve_request(
    environ: Mapping[str, str] | None = None,
    config_file: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> DeploymentRequest:
    """Build the one ``DeploymentRequest`` for this run.

    Args:
        environ: Environment mapping (default: ``os.environ``)
        config_file: Optional YAML file with request settings
        overrides: Explicit values (``None`` entries are ignored)

    Returns:
        Validated request.

    Raises:
        ValidationError: If any value is malformed
    """
    if environ is None:
        environ = os.environ

    values: dict[str, Any] = dict(DEFAULTS)

    if config_file is not None:
        values.update(load_config_file(config_file))

    for name, env_key in ENV_KEYS.items():
        if env_key in environ:
            values[name] = environ[env_key]

    for name, value in (overrides or {}).items():
        if value is not None:
            values[name] = value

    return DeploymentRequest(**{name: _coerce(name, value) for name, value in values.items()})
