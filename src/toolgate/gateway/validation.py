"""Field validators for tool payloads.

Each helper either returns the typed value or raises BadRequestError
naming the dotted field path (``payload.source``, ``payload.paths[2]``).
"""

from __future__ import annotations

import math
from typing import Any

from toolgate.exceptions import BadRequestError


def ensure_object(value: Any, field: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise BadRequestError(f"{field} must be an object", field=field)
    return value


def ensure_string(value: Any, field: str, allow_empty: bool = False) -> str:
    if not isinstance(value, str):
        raise BadRequestError(f"{field} must be a string", field=field)
    trimmed = value.strip()
    if not allow_empty and not trimmed:
        raise BadRequestError(f"{field} must be a non-empty string", field=field)
    return trimmed


def optional_string(value: Any, field: str) -> str | None:
    if value is None:
        return None
    return ensure_string(value, field)


def ensure_number(value: Any, field: str) -> float | int:
    if isinstance(value, bool):
        raise BadRequestError(f"{field} must be a finite number", field=field)
    if isinstance(value, (int, float)) and math.isfinite(value):
        return value
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            parsed = math.nan
        if math.isfinite(parsed):
            return int(parsed) if parsed.is_integer() else parsed
    raise BadRequestError(f"{field} must be a finite number", field=field)


def optional_number(value: Any, field: str) -> float | int | None:
    if value is None:
        return None
    return ensure_number(value, field)


def ensure_string_array(value: Any, field: str) -> list[str]:
    if not isinstance(value, list):
        raise BadRequestError(f"{field} must be an array of strings", field=field)
    return [ensure_string(entry, f"{field}[{index}]") for index, entry in enumerate(value)]


def ensure_boolean(value: Any, field: str) -> bool:
    if value is True or value is False:
        return value
    if value in ("true", "1"):
        return True
    if value in ("false", "0"):
        return False
    raise BadRequestError(f"{field} must be a boolean", field=field)


def optional_boolean(value: Any, field: str, default: bool = False) -> bool:
    if value is None:
        return default
    return ensure_boolean(value, field)


def ensure_choice(value: Any, field: str, choices: tuple[str, ...]) -> str:
    normalized = ensure_string(value, field).lower()
    if normalized not in choices:
        raise BadRequestError(
            f"{field} must be one of: {', '.join(choices)}",
            field=field,
            details={"allowed": list(choices)},
        )
    return normalized
