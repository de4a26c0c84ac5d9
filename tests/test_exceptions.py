"""Tests for Toolgate custom exceptions.

Covers the exception hierarchy, stable codes and structured details.
"""

import pytest

from toolgate.exceptions import (
    BadRequestError,
    ConfigurationError,
    ExecutionTimeoutError,
    InternalError,
    NotSupportedError,
    PolicyRejectedError,
    ToolgateError,
)


class TestToolgateError:
    def test_base_error(self):
        err = ToolgateError("something went wrong")
        assert str(err) == "something went wrong"
        assert err.message == "something went wrong"
        assert err.details == {}

    def test_base_error_with_details(self):
        err = ToolgateError("failed", details={"key": "value"})
        assert err.details == {"key": "value"}

    def test_base_code_is_internal(self):
        assert ToolgateError.code == "InternalError"


class TestBadRequestError:
    def test_field_in_details(self):
        err = BadRequestError("payload.source must be a non-empty string", field="payload.source")
        assert err.field == "payload.source"
        assert err.details == {"field": "payload.source"}
        assert err.code == "BadRequest"

    def test_field_merges_with_details(self):
        err = BadRequestError("bad", field="mode", details={"allowed": ["a"]})
        assert err.details == {"allowed": ["a"], "field": "mode"}

    def test_no_field(self):
        err = BadRequestError("Invalid JSON")
        assert err.field is None
        assert err.details == {}

    def test_configuration_error_is_bad_request(self):
        assert issubclass(ConfigurationError, BadRequestError)
        assert ConfigurationError("x").code == "BadRequest"


class TestPolicyRejectedError:
    def test_creation(self):
        err = PolicyRejectedError("rm -rf /", "Command 'rm' is blocked for security reasons")
        assert err.command == "rm -rf /"
        assert err.reason == "Command 'rm' is blocked for security reasons"
        assert err.message == err.reason
        assert err.details["command"] == "rm -rf /"
        assert err.code == "PolicyRejected"


class TestExecutionTimeoutError:
    def test_timeout_in_details(self):
        err = ExecutionTimeoutError("Command timed out after 50ms", timeout_ms=50)
        assert err.timeout_ms == 50
        assert err.details["timeout_ms"] == 50
        assert err.code == "Timeout"

    def test_without_timeout(self):
        err = ExecutionTimeoutError("slow")
        assert "timeout_ms" not in err.details


@pytest.mark.parametrize(
    "cls,code",
    [
        (BadRequestError, "BadRequest"),
        (NotSupportedError, "NotSupported"),
        (ExecutionTimeoutError, "Timeout"),
        (InternalError, "InternalError"),
    ],
)
def test_codes_are_stable(cls, code):
    assert cls.code == code
    assert issubclass(cls, ToolgateError)


def test_policy_rejected_inherits_base():
    assert issubclass(PolicyRejectedError, ToolgateError)
