# nimbus_decide/services/reasons.py
"""Per-decision diagnostic messages.

A ``DecisionReasons`` instance lives for exactly one ``decide`` call and is
passed explicitly to every evaluation step that may add to it.
"""


from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .options import DecideOption


class Severity(str, Enum):
    INFO = "info"
    ERROR = "error"


class DecisionReasons:
    """Ordered, append-only collector of (severity, message) pairs."""

    def __init__(self) -> None:
        self._entries: List[Tuple[Severity, str]] = []

    def add_info(self, message: str) -> None:
        self._entries.append((Severity.INFO, message))

    def add_error(self, message: str) -> None:
        self._entries.append((Severity.ERROR, message))

    @property
    def entries(self) -> Tuple[Tuple[Severity, str], ...]:
        return tuple(self._entries)

    def to_report(self, options: Iterable[DecideOption]) -> Tuple[str, ...]:
        """Flatten to messages for the caller.

        Errors are always reported. Info messages only appear when
        ``INCLUDE_REASONS`` is among ``options``.
        """
        include_infos = DecideOption.INCLUDE_REASONS in set(options)
        return tuple(
            message
            for severity, message in self._entries
            if severity is Severity.ERROR or include_infos
        )

    def __len__(self) -> int:
        return len(self._entries)


def log_info(
    logger: logging.Logger,
    reasons: Optional[DecisionReasons],
    template: str,
    *args: object,
) -> str:
    """Log ``template % args`` at info level and record it as a reason."""
    message = template % args if args else template
    logger.info(message)
    if reasons is not None:
        reasons.add_info(message)
    return message


def log_error(
    logger: logging.Logger,
    reasons: Optional[DecisionReasons],
    template: str,
    *args: object,
) -> str:
    """Log ``template % args`` at error level and record it as a reason."""
    message = template % args if args else template
    logger.error(message)
    if reasons is not None:
        reasons.add_error(message)
    return message


def log_warning(
    logger: logging.Logger,
    reasons: Optional[DecisionReasons],
    template: str,
    *args: object,
) -> str:
    """Log at warning level; recorded as an info-level reason."""
    message = template % args if args else template
    logger.warning(message)
    if reasons is not None:
        reasons.add_info(message)
    return message
