"""
Toolgate Argument Sanitizer

Recursive, depth- and size-bounded normalization of untrusted JSON-like
tool arguments. Degrades instead of failing: invalid keys are dropped,
oversized collections truncated, over-deep values replaced with a
sentinel string. ``sanitize`` never raises.

Sanitized strings are memoized in a bounded FIFO cache shared by all
requests of the process.
"""

from __future__ import annotations

import math
import threading
from typing import Any

from toolgate.gateway.security import SecurityClassifier, default_classifier
from toolgate.logging import get_logger

logger = get_logger("toolgate.sanitizer")

MAX_CACHE_SIZE = 1000
MAX_ARRAY_SIZE = 50
MAX_OBJECT_SIZE = 50
MAX_DEPTH = 3
DEPTH_SENTINEL = "[MAX_DEPTH_REACHED]"


class SanitizationCache:
    """Bounded original→cleaned string map with insertion-order eviction.

    Eviction is strict FIFO: a hit does not refresh an entry. Sanitization
    is idempotent, so evicting a hot key only costs one extra miss.
    """

    def __init__(self, max_size: int = MAX_CACHE_SIZE):
        self._max_size = max_size
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            if key in self._entries:
                self._entries[key] = value
                return
            while len(self._entries) >= self._max_size:
                oldest = next(iter(self._entries))
                del self._entries[oldest]
            self._entries[key] = value

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class ArgumentSanitizer:
    """Normalizes tool arguments before they reach any handler."""

    def __init__(
        self,
        classifier: SecurityClassifier | None = None,
        cache: SanitizationCache | None = None,
        max_depth: int = MAX_DEPTH,
        max_array_size: int = MAX_ARRAY_SIZE,
        max_object_size: int = MAX_OBJECT_SIZE,
    ):
        self._classifier = classifier or default_classifier
        self._cache = cache if cache is not None else SanitizationCache()
        self._max_depth = max_depth
        self._max_array_size = max_array_size
        self._max_object_size = max_object_size

    @property
    def cache(self) -> SanitizationCache:
        return self._cache

    def sanitize(self, raw: Any) -> dict[str, Any]:
        if not isinstance(raw, dict):
            return {}
        return self._sanitize_object(raw, self._max_depth)

    def _sanitize_object(self, obj: dict, depth: int) -> dict[str, Any]:
        sanitized: dict[str, Any] = {}
        for index, (key, value) in enumerate(obj.items()):
            if index >= self._max_object_size:
                break
            if not self._classifier.is_valid_object_key(key):
                logger.warning("Invalid argument key dropped: %r", str(key)[:64])
                continue
            cleaned = self._sanitize_value(value, depth)
            if cleaned is not None:
                sanitized[key] = cleaned
        return sanitized

    def _sanitize_value(self, value: Any, depth: int) -> Any:
        if depth <= 0:
            return DEPTH_SENTINEL

        if isinstance(value, str):
            return self._sanitize_string(value)
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return value if math.isfinite(value) else 0
        if isinstance(value, (list, tuple)):
            return self._sanitize_array(value, depth)
        if isinstance(value, dict):
            return self._sanitize_object(value, depth - 1)
        return None

    def _sanitize_array(self, items: list | tuple, depth: int) -> list[Any]:
        result = []
        for item in items[: self._max_array_size]:
            if item is None:
                continue
            # Elements share the array's budget; a directly nested array costs one unit.
            item_depth = depth - 1 if isinstance(item, (list, tuple)) else depth
            cleaned = self._sanitize_value(item, item_depth)
            if cleaned is not None:
                result.append(cleaned)
        return result

    def _sanitize_string(self, text: str) -> str:
        if not text:
            return ""

        cached = self._cache.get(text)
        if cached is not None:
            return cached

        if self._classifier.contains_dangerous_code(text):
            logger.warning(
                "Dangerous pattern detected in argument value",
                extra={"rule": ",".join(self._classifier.matched_rules(text))},
            )

        result = self._classifier.sanitize_input(text)
        self._cache.put(text, result)
        return result
