"""Tests for the response envelope."""

from toolgate.exceptions import BadRequestError, NotSupportedError, PolicyRejectedError
from toolgate.gateway.envelope import ResponseEnvelope, failure, success
from toolgate.models import ShellResult


class TestSuccess:
    def test_wraps_data(self):
        envelope = success({"files": ["a.txt"]})
        assert envelope.success is True
        assert envelope.data == {"files": ["a.txt"]}
        assert envelope.error is None

    def test_wire_shape_omits_empty_fields(self):
        wire = success([1, 2]).to_wire()
        assert wire == {"success": True, "data": [1, 2]}

    def test_hint_and_next_steps_camel_case(self):
        wire = success("ok", hint="try again", next_steps=["fs list"]).to_wire()
        assert wire["hint"] == "try again"
        assert wire["nextSteps"] == ["fs list"]
        assert "next_steps" not in wire

    def test_models_become_wire_dicts(self):
        result = ShellResult(success=True, stdout="hi", exit_code=0)
        envelope = success([result])
        assert envelope.data == [
            {
                "success": True,
                "stdout": "hi",
                "stderr": "",
                "exitCode": 0,
                "timedOut": False,
                "truncated": False,
            }
        ]


class TestFailure:
    def test_toolgate_error_keeps_code_and_details(self):
        envelope = failure(BadRequestError("payload.source must be a string", field="payload.source"))
        assert envelope.success is False
        assert envelope.data is None
        assert envelope.error.code == "BadRequest"
        assert envelope.error.message == "payload.source must be a string"
        assert envelope.error.details == {"field": "payload.source"}

    def test_empty_details_omitted(self):
        wire = failure(NotSupportedError("Unknown tool: nope")).to_wire()
        assert wire == {
            "success": False,
            "error": {"message": "Unknown tool: nope", "code": "NotSupported"},
        }

    def test_policy_rejection(self):
        envelope = failure(PolicyRejectedError("rm -rf /", "Command 'rm' is blocked for security reasons"))
        assert envelope.error.code == "PolicyRejected"
        assert envelope.error.details["command"] == "rm -rf /"

    def test_unknown_exception_is_internal(self):
        envelope = failure(FileNotFoundError("Path not found: missing.txt"))
        assert envelope.error.code == "InternalError"
        assert envelope.error.message == "Path not found: missing.txt"

    def test_message_falls_back_to_type(self):
        envelope = failure(KeyError())
        assert envelope.error.message == "KeyError"

    def test_round_trips_through_model(self):
        wire = failure(BadRequestError("x"), hint="check the payload").to_wire()
        parsed = ResponseEnvelope.model_validate(wire)
        assert parsed.success is False
        assert parsed.hint == "check the payload"
