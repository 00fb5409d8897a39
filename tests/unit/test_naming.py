"""Tests for resource naming."""

import pytest

from lambdaship.exceptions import ValidationError
from lambdaship.naming import (
    PERMISSION_STATEMENT_ID,
    archive_name,
    front_door_name,
    front_door_url,
    invocation_uri,
    invoke_source_arn,
    log_group_name,
    validate_function_name,
    validate_role_name,
)


class TestValidateFunctionName:
    """Tests for function name validation."""

    @pytest.mark.parametrize("name", ["fn1", "my-function", "my_function", "A" * 64])
    def test_valid_names(self, name: str) -> None:
        """Letters, digits, hyphens and underscores up to 64 chars pass."""
        validate_function_name(name)

    def test_empty_name(self) -> None:
        """An empty name is rejected."""
        with pytest.raises(ValidationError, match="cannot be empty"):
            validate_function_name("")

    def test_name_with_spaces(self) -> None:
        """Spaces get a dedicated hint."""
        with pytest.raises(ValidationError, match="Contains spaces"):
            validate_function_name("my fn")

    def test_name_with_invalid_characters(self) -> None:
        """Dots and slashes are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            validate_function_name("my.fn/x")
        assert exc_info.value.field == "function name"
        assert exc_info.value.value == "my.fn/x"

    def test_name_too_long(self) -> None:
        """Names over 64 characters are rejected."""
        with pytest.raises(ValidationError, match="Too long"):
            validate_function_name("a" * 65)


class TestValidateRoleName:
    """Tests for role name validation."""

    def test_default_role_name(self) -> None:
        """The default role name is valid."""
        validate_role_name("lambda-basic-execution")

    def test_iam_punctuation_allowed(self) -> None:
        """IAM allows +=,.@_- in role names."""
        validate_role_name("role+=,.@_-1")

    def test_invalid_characters(self) -> None:
        """Slashes are not part of a role name."""
        with pytest.raises(ValidationError, match="role name"):
            validate_role_name("path/role")

    def test_empty(self) -> None:
        """Empty role name is rejected."""
        with pytest.raises(ValidationError):
            validate_role_name("")


class TestDerivedNames:
    """Tests for names derived from the function name."""

    def test_front_door_name(self) -> None:
        """REST API name is the function name plus -api."""
        assert front_door_name("fn1") == "fn1-api"

    def test_archive_name(self) -> None:
        """Archive is named after the function."""
        assert archive_name("fn1") == "fn1.zip"

    def test_front_door_url(self) -> None:
        """URL points at the prod stage."""
        assert (
            front_door_url("abc123", "eu-west-1")
            == "https://abc123.execute-api.eu-west-1.amazonaws.com/prod"
        )

    def test_invocation_uri(self) -> None:
        """Integration URI wraps the function ARN."""
        arn = "arn:aws:lambda:us-east-1:123456789012:function:fn1"
        assert invocation_uri("us-east-1", arn) == (
            "arn:aws:apigateway:us-east-1:lambda:path/2015-03-31/functions/"
            f"{arn}/invocations"
        )

    def test_invoke_source_arn(self) -> None:
        """Source ARN is scoped to the proxy route of the prod stage."""
        assert (
            invoke_source_arn("us-east-1", "123456789012", "abc123")
            == "arn:aws:execute-api:us-east-1:123456789012:abc123/prod/ANY/{proxy+}"
        )

    def test_permission_statement_id_is_fixed(self) -> None:
        """The statement id does not vary between runs."""
        assert PERMISSION_STATEMENT_ID == "apigateway-prod"

    def test_log_group_name(self) -> None:
        """Lambda writes to /aws/lambda/<name>."""
        assert log_group_name("fn1") == "/aws/lambda/fn1"
