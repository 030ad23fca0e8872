"""Input Sanitizer — strips script markup from arbitrarily nested request data.

Invariants:
    - sanitize() is PURE and TOTAL: never raises, never mutates its input
    - sanitize(sanitize(v)) == sanitize(v) for every StructuredValue
    - No <script> block, `javascript:` scheme or `on<word>=` attribute survives at any depth
    - Mapping keys are preserved as-is; only values are rewritten
    - Containers nested deeper than max_depth are pruned to None (stack stays bounded)

Design Decisions:
    - Patterns re-applied until the string stops changing: a single pass can splice
      a new match together (e.g. "<scr<script></script>ipt>"), which would break idempotence
    - Pruning over raising: the sanitizer runs before validation, so an over-deep
      payload still reaches the validator and fails there with a field-scoped error
"""

import re

from medgate.core.domain_types import StructuredValue

DEFAULT_MAX_DEPTH = 32

SCRIPT_BLOCK_PATTERN = re.compile(
    r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE,
)
JAVASCRIPT_SCHEME_PATTERN = re.compile(r"javascript:", re.IGNORECASE)
EVENT_HANDLER_PATTERN = re.compile(r"on\w+\s*=", re.IGNORECASE)

_UNSAFE_PATTERNS = (
    SCRIPT_BLOCK_PATTERN,
    JAVASCRIPT_SCHEME_PATTERN,
    EVENT_HANDLER_PATTERN,
)


def sanitize_string(text: str) -> str:
    """Remove unsafe patterns until none remain, then trim."""
    previous = None
    while previous != text:
        previous = text
        for pattern in _UNSAFE_PATTERNS:
            text = pattern.sub("", text)
    return text.strip()


def sanitize(value: StructuredValue, max_depth: int = DEFAULT_MAX_DEPTH) -> StructuredValue:
    """Return a sanitized copy of value."""
    return _sanitize(value, 0, max_depth)


def _sanitize(value: StructuredValue, depth: int, max_depth: int) -> StructuredValue:
    if isinstance(value, str):
        return sanitize_string(value)
    if isinstance(value, list):
        if depth >= max_depth:
            return None
        return [_sanitize(item, depth + 1, max_depth) for item in value]
    if isinstance(value, dict):
        if depth >= max_depth:
            return None
        return {
            key: _sanitize(item, depth + 1, max_depth)
            for key, item in value.items()
        }
    # None, bool, int, float
    return value


def contains_unsafe_markup(value: StructuredValue) -> bool:
    """True if any string at any depth still matches an unsafe pattern."""
    stack = [value]
    while stack:
        current = stack.pop()
        if isinstance(current, str):
            if any(p.search(current) for p in _UNSAFE_PATTERNS):
                return True
        elif isinstance(current, list):
            stack.extend(current)
        elif isinstance(current, dict):
            stack.extend(current.values())
    return False
