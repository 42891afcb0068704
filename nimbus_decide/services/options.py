# nimbus_decide/services/options.py
"""Decide options and their merging rules."""


from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Iterable, Optional


class DecideOption(str, Enum):
    """Options that can be passed to ``decide`` and friends."""

    DISABLE_DECISION_EVENT = "DISABLE_DECISION_EVENT"
    ENABLED_FLAGS_ONLY = "ENABLED_FLAGS_ONLY"
    INCLUDE_REASONS = "INCLUDE_REASONS"
    EXCLUDE_VARIABLES = "EXCLUDE_VARIABLES"


DecideOptions = FrozenSet[DecideOption]


def merge_options(
    defaults: Iterable[DecideOption],
    options: Optional[Iterable[DecideOption]] = None,
) -> DecideOptions:
    """Combine engine defaults with per-call options.

    The result is frozen and computed once per call entry.
    """
    return frozenset(defaults) | frozenset(options or ())


def parse_options(names: Iterable[str]) -> DecideOptions:
    """Convert option names (as used in env vars and JSON) into options.

    Raises:
        ValueError: If a name does not match any ``DecideOption``.
    """
    parsed = set()
    for name in names:
        cleaned = name.strip().upper()
        if not cleaned:
            continue
        try:
            parsed.add(DecideOption(cleaned))
        except ValueError:
            raise ValueError(f"Unknown decide option '{name}'.") from None
    return frozenset(parsed)
