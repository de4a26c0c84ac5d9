"""
Toolgate Security Classifier

Stateless policy functions consumed by the argument sanitizer and the
shell sandbox:

- is_valid_object_key: reject keys usable for attribute/prototype pollution
- contains_dangerous_code: match known injection signatures
- sanitize_input: neutralize dangerous substrings, keep benign text

Detection is driven by a list of PatternRule objects so coverage can be
extended without touching the sanitizer. The classifier performs no I/O
and never raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

RESERVED_KEYS = frozenset({"__proto__", "constructor", "prototype"})
MAX_KEY_LENGTH = 128
MAX_TOOL_NAME_LENGTH = 100
MAX_PATH_LENGTH = 1000

_KEY_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")
_TOOL_NAME_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")
# Tab, newline and carriage return are kept.
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
_SHELL_INJECTION_RE = re.compile(r"[;&|`$(){}\[\]\\<>*?]")
_BAD_PATH_CHARS_RE = re.compile(r"[\0<>|]")


@dataclass(frozen=True)
class PatternRule:
    """One detection signature.

    ``strip`` rules are also removed by sanitize_input; the others only
    feed detection and logging.
    """

    name: str
    category: str
    pattern: re.Pattern[str]
    strip: bool = True

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _rule(name: str, category: str, pattern: str, strip: bool = True, flags: int = re.IGNORECASE) -> PatternRule:
    return PatternRule(name=name, category=category, pattern=re.compile(pattern, flags), strip=strip)


SCRIPT_RULES: tuple[PatternRule, ...] = (
    _rule("eval_call", "script", r"\beval\s*\("),
    _rule("function_literal", "script", r"\bfunction\s*\("),
    _rule("arrow_function", "script", r"=\s*>", flags=0),
    _rule("javascript_uri", "script", r"javascript:"),
    _rule("vbscript_uri", "script", r"vbscript:"),
    _rule("data_uri", "script", r"\bdata:"),
    _rule("event_handler", "script", r"\bon\w+\s*="),
    _rule("script_open", "script", r"<script"),
    _rule("script_close", "script", r"</script"),
    _rule("template_expression", "script", r"\$\{.*?\}", flags=0),
    _rule("backtick_block", "script", r"`[^`]*`", flags=0),
    _rule("hex_escape", "script", r"\\x[0-9a-fA-F]{2}", flags=0),
    _rule("unicode_escape", "script", r"\\u[0-9a-fA-F]{4}", flags=0),
)

SHELL_RULES: tuple[PatternRule, ...] = (
    _rule("and_chain", "shell", r"&&", strip=False, flags=0),
    _rule("or_chain", "shell", r"\|\|", strip=False, flags=0),
    _rule("command_substitution", "shell", r"\$\(", strip=False, flags=0),
    _rule("destructive_chain", "shell", r";\s*(rm|mv|cp|chmod|chown|dd|mkfs)\b", strip=False),
)

TRAVERSAL_RULES: tuple[PatternRule, ...] = (
    _rule("dot_dot_slash", "traversal", r"\.\.[/\\]", strip=False, flags=0),
    _rule("encoded_dot_dot", "traversal", r"%2e%2e", strip=False),
)

DEFAULT_RULES: tuple[PatternRule, ...] = SCRIPT_RULES + SHELL_RULES + TRAVERSAL_RULES


class SecurityClassifier:
    """Pure classification and cleaning of untrusted strings and keys."""

    def __init__(
        self,
        rules: tuple[PatternRule, ...] | list[PatternRule] = DEFAULT_RULES,
        max_string_length: int = 5000,
    ):
        self._rules = tuple(rules)
        self._max_string_length = max_string_length

    @property
    def rules(self) -> tuple[PatternRule, ...]:
        return self._rules

    def with_rules(self, *extra: PatternRule) -> SecurityClassifier:
        """Return a classifier that also applies ``extra`` rules."""
        return SecurityClassifier(self._rules + tuple(extra), self._max_string_length)

    def is_valid_object_key(self, key: object) -> bool:
        if not isinstance(key, str) or not key or len(key) > MAX_KEY_LENGTH:
            return False
        if key in RESERVED_KEYS:
            return False
        if key.startswith("__") and key.endswith("__"):
            return False
        return _KEY_RE.match(key) is not None

    def matched_rules(self, text: str) -> list[str]:
        if not text:
            return []
        return [rule.name for rule in self._rules if rule.matches(text)]

    def contains_dangerous_code(self, text: str) -> bool:
        if not text:
            return False
        return any(rule.matches(text) for rule in self._rules)

    def sanitize_input(self, text: str) -> str:
        if not text:
            return ""
        if not self.contains_dangerous_code(text):
            return text[: self._max_string_length]

        cleaned = text
        for rule in self._rules:
            if rule.strip:
                cleaned = rule.pattern.sub("", cleaned)
        cleaned = _CONTROL_CHARS_RE.sub("", cleaned)
        return cleaned[: self._max_string_length]

    def contains_shell_injection(self, text: str) -> bool:
        return bool(text) and _SHELL_INJECTION_RE.search(text) is not None

    def is_valid_tool_name(self, name: object) -> bool:
        if not isinstance(name, str) or not name or len(name) > MAX_TOOL_NAME_LENGTH:
            return False
        return _TOOL_NAME_RE.match(name) is not None

    def is_valid_path(self, path: str) -> bool:
        if len(path) > MAX_PATH_LENGTH:
            return False
        if ".." in path or "~" in path:
            return False
        return _BAD_PATH_CHARS_RE.search(path) is None


default_classifier = SecurityClassifier()
