# nimbus_decide/services/matchers.py
"""Match strategies used by attribute leaf conditions.

Each matcher takes ``(expected, actual)`` and returns a plain ``bool``.
A matcher raises :class:`UnexpectedValueTypeError` when either value has a
type it cannot compare; the leaf evaluator in ``conditions`` turns that into
an ``UNKNOWN`` result. Absent attributes, ``exists`` and ``null`` expected
values never reach this module.
"""


from __future__ import annotations

import math
import re
from typing import Any, Callable, Dict, List, Tuple


class UnexpectedValueTypeError(Exception):
    """Raised when a condition or attribute value cannot be matched.

    Attributes:
        side: ``"condition"`` when the expected value is unsupported,
            ``"attribute"`` when the user's value is incompatible.
    """

    def __init__(self, side: str, detail: str) -> None:
        super().__init__(detail)
        self.side = side
        self.detail = detail


Matcher = Callable[[Any, Any], bool]

_WHITESPACE_RE = re.compile(r"\s")
_NUMERIC_RE = re.compile(r"[0-9]+")


def is_number(value: Any) -> bool:
    """Finite int/float, booleans excluded."""
    if isinstance(value, bool):
        return False
    # ints compare exactly with floats at any size.
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


def _value_kind(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    return type(value).__name__


def legacy_match(expected: Any, actual: Any) -> bool:
    """Plain equality used when a leaf has no ``match`` type."""
    if isinstance(expected, bool) != isinstance(actual, bool):
        return False
    return expected == actual


def exact_match(expected: Any, actual: Any) -> bool:
    expected_kind = _value_kind(expected)
    if expected_kind not in ("boolean", "number", "string"):
        raise UnexpectedValueTypeError(
            "condition", f"unsupported exact value of type {expected_kind}"
        )
    actual_kind = _value_kind(actual)
    if actual_kind != expected_kind:
        raise UnexpectedValueTypeError(
            "attribute",
            f"{actual_kind} value cannot be compared with {expected_kind}",
        )
    return expected == actual


def substring_match(expected: Any, actual: Any) -> bool:
    if not isinstance(expected, str):
        raise UnexpectedValueTypeError(
            "condition", "substring value must be a string"
        )
    if not isinstance(actual, str):
        raise UnexpectedValueTypeError(
            "attribute", f"{_value_kind(actual)} value is not a string"
        )
    return expected in actual


def _numbers(expected: Any, actual: Any) -> Tuple[float, float]:
    if not is_number(expected):
        raise UnexpectedValueTypeError(
            "condition", "numeric comparison needs a finite number"
        )
    if not is_number(actual):
        raise UnexpectedValueTypeError(
            "attribute", f"{_value_kind(actual)} value is not a finite number"
        )
    return expected, actual


def greater_than_match(expected: Any, actual: Any) -> bool:
    expected, actual = _numbers(expected, actual)
    return actual > expected


def greater_or_equal_match(expected: Any, actual: Any) -> bool:
    expected, actual = _numbers(expected, actual)
    return actual >= expected


def less_than_match(expected: Any, actual: Any) -> bool:
    expected, actual = _numbers(expected, actual)
    return actual < expected


def less_or_equal_match(expected: Any, actual: Any) -> bool:
    expected, actual = _numbers(expected, actual)
    return actual <= expected


# ---------- Semantic versions ----------


def _parse_version(side: str, version: Any) -> Tuple[List[int], List[str]]:
    """Split ``version`` into numeric release parts and pre-release parts.

    Build metadata (``+...``) is dropped.
    """
    if not isinstance(version, str):
        raise UnexpectedValueTypeError(
            side, f"{_value_kind(version)} value is not a version string"
        )
    if not version or _WHITESPACE_RE.search(version):
        raise UnexpectedValueTypeError(side, f"invalid version '{version}'")

    version = version.split("+", 1)[0]
    release, _, pre_release = version.partition("-")
    parts = release.split(".")
    if len(parts) > 3 or not all(_NUMERIC_RE.fullmatch(part) for part in parts):
        raise UnexpectedValueTypeError(side, f"invalid version '{version}'")
    if "-" in version and not pre_release:
        raise UnexpectedValueTypeError(side, f"invalid version '{version}'")

    return [int(part) for part in parts], (
        pre_release.split(".") if pre_release else []
    )


def _compare_pre_release(user: List[str], target: List[str]) -> int:
    for user_part, target_part in zip(user, target):
        if user_part == target_part:
            continue
        numeric = _NUMERIC_RE.fullmatch
        if numeric(user_part) and numeric(target_part):
            return -1 if int(user_part) < int(target_part) else 1
        return -1 if user_part < target_part else 1
    return (len(user) > len(target)) - (len(user) < len(target))


def compare_versions(target: Any, actual: Any) -> int:
    """Compare the user's version against the target version.

    Only the components present in ``target`` are compared, so a target of
    ``"2.1"`` equals ``"2.1.9"``.

    Returns:
        A negative number, zero, or a positive number when ``actual`` is
        lower than, equal to, or greater than ``target``.
    """
    target_parts, target_pre = _parse_version("condition", target)
    user_parts, user_pre = _parse_version("attribute", actual)

    for index, target_part in enumerate(target_parts):
        if index >= len(user_parts):
            return -1
        if user_parts[index] != target_part:
            return -1 if user_parts[index] < target_part else 1

    if user_pre and not target_pre:
        # 2.1.0-beta is below 2.1.0, unless the target is only a prefix.
        return -1 if len(user_parts) == len(target_parts) else 0
    if target_pre and not user_pre:
        return 1
    if target_pre and user_pre:
        return _compare_pre_release(user_pre, target_pre)
    return 0


def semver_equal_match(expected: Any, actual: Any) -> bool:
    return compare_versions(expected, actual) == 0


def semver_greater_than_match(expected: Any, actual: Any) -> bool:
    return compare_versions(expected, actual) > 0


def semver_greater_or_equal_match(expected: Any, actual: Any) -> bool:
    return compare_versions(expected, actual) >= 0


def semver_less_than_match(expected: Any, actual: Any) -> bool:
    return compare_versions(expected, actual) < 0


def semver_less_or_equal_match(expected: Any, actual: Any) -> bool:
    return compare_versions(expected, actual) <= 0


EXISTS_MATCH = "exists"
EXACT_MATCH = "exact"

# Registry of value matchers keyed by the datafile ``match`` name.
# ``None`` is the legacy (untyped) equality match.
MATCHERS: Dict[Any, Matcher] = {
    None: legacy_match,
    EXACT_MATCH: exact_match,
    "substring": substring_match,
    "gt": greater_than_match,
    "ge": greater_or_equal_match,
    "lt": less_than_match,
    "le": less_or_equal_match,
    "semver_eq": semver_equal_match,
    "semver_gt": semver_greater_than_match,
    "semver_ge": semver_greater_or_equal_match,
    "semver_lt": semver_less_than_match,
    "semver_le": semver_less_or_equal_match,
}
