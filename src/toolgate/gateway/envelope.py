"""
Toolgate Response Envelope

The single point where handler results and internal failures are
translated into the stable wire shape shared by every transport:

    {success, data?, error?: {message, code, details?}, hint?, nextSteps?}
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from toolgate.exceptions import InternalError, ToolgateError
from toolgate.models import WireModel


class ErrorInfo(BaseModel):
    message: str
    code: str
    details: dict[str, Any] | None = None


class ResponseEnvelope(WireModel):
    """Uniform success/error wrapper returned by every dispatch call."""

    success: bool
    data: Any = None
    error: ErrorInfo | None = None
    hint: str | None = None
    next_steps: list[str] | None = Field(default=None)


def success(data: Any, hint: str | None = None, next_steps: list[str] | None = None) -> ResponseEnvelope:
    """Wrap a capability result."""
    return ResponseEnvelope(
        success=True,
        data=_to_plain(data),
        hint=hint or None,
        next_steps=next_steps or None,
    )


def failure(
    err: BaseException,
    hint: str | None = None,
    next_steps: list[str] | None = None,
) -> ResponseEnvelope:
    """Classify an exception into an error envelope.

    ToolgateErrors keep their code, message and details; anything else
    becomes an InternalError carrying the exception's message.
    """
    if isinstance(err, ToolgateError):
        info = ErrorInfo(
            message=err.message,
            code=err.code,
            details=_to_plain(err.details) or None,
        )
    else:
        info = ErrorInfo(message=str(err) or type(err).__name__, code=InternalError.code)
    return ResponseEnvelope(
        success=False,
        error=info,
        hint=hint or None,
        next_steps=next_steps or None,
    )


def _to_plain(value: Any) -> Any:
    """Turn pydantic models (possibly nested in lists/dicts) into wire dicts."""
    if isinstance(value, WireModel):
        return value.to_wire()
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_none=True)
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_plain(v) for v in value]
    return value
