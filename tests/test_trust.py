"""Tests for input classification and trust promotion."""

from __future__ import annotations

import dataclasses
import json

import pytest
from pydantic import BaseModel

from vecguard.errors import TrustViolation, ValidationFailure
from vecguard.security.trust import (
    FILE_PATH_SCHEMA,
    USER_COMMAND_SCHEMA,
    InputSource,
    NetworkResponse,
    TrustedInput,
    classify_input,
    is_trusted,
    promote_to_trusted,
    safe_sanitize,
    sanitize,
    sanitize_and_trust,
    sanitize_environment_var,
    sanitize_file_content,
    sanitize_file_path,
    sanitize_network_response,
    sanitize_user_command,
)


class TestClassifyInput:
    """Trust is a function of source alone."""

    def test_user_command_trusted(self) -> None:
        classified = classify_input("ls -la", InputSource.USER_COMMAND)
        assert classified.trusted is True
        assert classified.source is InputSource.USER_COMMAND
        assert classified.value == "ls -la"

    @pytest.mark.parametrize(
        "source",
        [InputSource.FILE_CONTENT, InputSource.NETWORK, InputSource.ENVIRONMENT],
    )
    def test_external_sources_untrusted(self, source: InputSource) -> None:
        classified = classify_input("data", source)
        assert classified.trusted is False
        assert is_trusted(classified) is False

    def test_source_by_value(self) -> None:
        assert classify_input("x", "network").source is InputSource.NETWORK

    def test_trust_cannot_be_overridden(self) -> None:
        classified = classify_input("x", InputSource.NETWORK)
        with pytest.raises(dataclasses.FrozenInstanceError):
            classified.trusted = True  # type: ignore[misc]
        with pytest.raises(TypeError):
            dataclasses.replace(classified, trusted=True)


class TestTrustedInput:
    def test_direct_construction_forbidden(self) -> None:
        with pytest.raises(TypeError):
            TrustedInput("x", InputSource.USER_COMMAND)

    def test_equality(self) -> None:
        a = sanitize_user_command("ls")
        b = sanitize_user_command("ls")
        assert a == b
        assert hash(a) == hash(b)


class TestPromoteToTrusted:
    """Promotion requires trusted provenance and a passing schema."""

    def test_trusted_and_valid(self) -> None:
        classified = classify_input("  git status  ", InputSource.USER_COMMAND)
        trusted = promote_to_trusted(classified, USER_COMMAND_SCHEMA)
        assert trusted.value == "git status"
        assert trusted.source is InputSource.USER_COMMAND

    def test_untrusted_raises_trust_violation(self) -> None:
        classified = classify_input("rm -rf /", InputSource.NETWORK)
        with pytest.raises(TrustViolation) as exc_info:
            promote_to_trusted(classified, USER_COMMAND_SCHEMA)
        assert exc_info.value.source == "network"

    def test_invalid_raises_validation_failure(self) -> None:
        classified = classify_input("   ", InputSource.USER_COMMAND)
        with pytest.raises(ValidationFailure):
            promote_to_trusted(classified, USER_COMMAND_SCHEMA)

    def test_errors_are_distinct_kinds(self) -> None:
        assert not issubclass(TrustViolation, ValidationFailure)
        assert not issubclass(ValidationFailure, TrustViolation)

    def test_model_schema(self) -> None:
        class Payload(BaseModel):
            name: str

        classified = classify_input({"name": "ok"}, InputSource.USER_COMMAND)
        assert promote_to_trusted(classified, Payload).value == Payload(name="ok")


class TestSanitize:
    def test_valid_input(self) -> None:
        assert sanitize("test command", USER_COMMAND_SCHEMA) == "test command"

    def test_trims_whitespace(self) -> None:
        assert sanitize("  test  ", USER_COMMAND_SCHEMA) == "test"

    def test_empty_command_rejected(self) -> None:
        with pytest.raises(ValidationFailure) as exc_info:
            sanitize("", USER_COMMAND_SCHEMA)
        assert exc_info.value.errors

    def test_null_byte_path_rejected(self) -> None:
        with pytest.raises(ValidationFailure):
            sanitize("/path/to/file\0", FILE_PATH_SCHEMA)

    def test_safe_sanitize_success(self) -> None:
        result = safe_sanitize("ok", USER_COMMAND_SCHEMA)
        assert result.success is True
        assert result.data == "ok"

    def test_safe_sanitize_failure(self) -> None:
        result = safe_sanitize("", USER_COMMAND_SCHEMA)
        assert result.success is False
        assert isinstance(result.error, ValidationFailure)


class TestSanitizeAndTrust:
    """The sanctioned path from external data to a trusted value."""

    def test_network_data_promoted_after_validation(self) -> None:
        trusted = sanitize_and_trust("some data", InputSource.NETWORK, USER_COMMAND_SCHEMA)
        assert isinstance(trusted, TrustedInput)
        assert trusted.value == "some data"
        assert trusted.source is InputSource.NETWORK

    def test_invalid_external_data_rejected(self) -> None:
        with pytest.raises(ValidationFailure):
            sanitize_and_trust("", InputSource.FILE_CONTENT, USER_COMMAND_SCHEMA)

    def test_file_content(self) -> None:
        assert sanitize_file_content("hello").value == "hello"

    def test_file_path(self) -> None:
        assert sanitize_file_path("/var/log/syslog").value == "/var/log/syslog"

    def test_relative_file_path_allowed(self) -> None:
        assert sanitize_file_path("../etc/passwd").value == "../etc/passwd"

    def test_environment_var_too_long(self) -> None:
        with pytest.raises(ValidationFailure):
            sanitize_environment_var("x" * 40_000)

    def test_network_response(self) -> None:
        trusted = sanitize_network_response(json.dumps({"status": 200, "body": "ok"}))
        assert trusted.value == NetworkResponse(status=200, body="ok")
        assert trusted.source is InputSource.NETWORK

    def test_malformed_network_response(self) -> None:
        with pytest.raises(ValidationFailure):
            sanitize_network_response("{not json")

    def test_network_response_missing_field(self) -> None:
        with pytest.raises(ValidationFailure):
            sanitize_network_response(json.dumps({"status": 200}))
