# nimbus_decide/services/conditions.py
"""Audience condition trees and their three-valued evaluation.

A condition tree is built from exactly five node types:

- ``UserAttribute``: a leaf comparing one user attribute to a value.
- ``AudienceIdCondition``: a reference to a named audience's tree.
- ``AndCondition`` / ``OrCondition`` / ``NotCondition``: composites.

Evaluation yields a :class:`MatchResult` (``TRUE``, ``FALSE`` or
``UNKNOWN``). ``UNKNOWN`` follows ternary AND/OR/NOT rules and is only
collapsed to "no match" by the audience resolver.
"""


from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple, Union

from .matchers import (
    EXACT_MATCH,
    EXISTS_MATCH,
    MATCHERS,
    UnexpectedValueTypeError,
)
from .models import Audience
from .reasons import DecisionReasons, log_error, log_warning


logger = logging.getLogger(__name__)

CUSTOM_ATTRIBUTE_CONDITION_TYPE = "custom_attribute"


class MatchResult(Enum):
    """Ternary logic value."""

    TRUE = "true"
    FALSE = "false"
    UNKNOWN = "unknown"

    @classmethod
    def from_bool(cls, value: bool) -> "MatchResult":
        return cls.TRUE if value else cls.FALSE

    def invert(self) -> "MatchResult":
        if self is MatchResult.TRUE:
            return MatchResult.FALSE
        if self is MatchResult.FALSE:
            return MatchResult.TRUE
        return MatchResult.UNKNOWN


@dataclass(frozen=True)
class UserAttribute:
    name: str
    match: Optional[str] = None
    value: Any = None
    type: str = CUSTOM_ATTRIBUTE_CONDITION_TYPE


@dataclass(frozen=True)
class AudienceIdCondition:
    audience_id: str


@dataclass(frozen=True)
class AndCondition:
    conditions: Tuple["Condition", ...]


@dataclass(frozen=True)
class OrCondition:
    conditions: Tuple["Condition", ...]


@dataclass(frozen=True)
class NotCondition:
    condition: "Condition"


Condition = Union[
    UserAttribute, AudienceIdCondition, AndCondition, OrCondition, NotCondition
]


@dataclass(frozen=True)
class _Context:
    attributes: Mapping[str, Any]
    audiences: Mapping[str, Audience]
    reasons: Optional[DecisionReasons]


def evaluate(
    condition: Condition,
    attributes: Mapping[str, Any],
    audiences: Optional[Mapping[str, Audience]] = None,
    reasons: Optional[DecisionReasons] = None,
) -> MatchResult:
    """Evaluate ``condition`` against a user's attributes.

    Pure with respect to its inputs: neither ``attributes`` nor the tree
    is modified. Recoverable problems (type mismatches, unknown match
    types, unknown audiences) come back as ``UNKNOWN`` and may append a
    reason to ``reasons``.

    Args:
        condition: Root of the condition tree.
        attributes: User attribute mapping.
        audiences: Audience id -> Audience, used by ``AudienceIdCondition``.
        reasons: Optional per-decision reasons log.

    Raises:
        TypeError: If a node is not one of the five condition types.
    """
    return _evaluate(condition, _Context(attributes, audiences or {}, reasons))


def _evaluate(condition: Condition, ctx: _Context) -> MatchResult:
    handler = _EVALUATORS.get(type(condition))
    if handler is None:
        raise TypeError(
            f"Unsupported condition node {type(condition).__name__}."
        )
    return handler(condition, ctx)


def _evaluate_and(condition: AndCondition, ctx: _Context) -> MatchResult:
    saw_unknown = False
    for child in condition.conditions:
        result = _evaluate(child, ctx)
        if result is MatchResult.FALSE:
            return MatchResult.FALSE
        if result is MatchResult.UNKNOWN:
            saw_unknown = True
    return MatchResult.UNKNOWN if saw_unknown else MatchResult.TRUE


def _evaluate_or(condition: OrCondition, ctx: _Context) -> MatchResult:
    saw_unknown = False
    for child in condition.conditions:
        result = _evaluate(child, ctx)
        if result is MatchResult.TRUE:
            return MatchResult.TRUE
        if result is MatchResult.UNKNOWN:
            saw_unknown = True
    return MatchResult.UNKNOWN if saw_unknown else MatchResult.FALSE


def _evaluate_not(condition: NotCondition, ctx: _Context) -> MatchResult:
    return _evaluate(condition.condition, ctx).invert()


def _evaluate_audience_id(
    condition: AudienceIdCondition, ctx: _Context
) -> MatchResult:
    audience = ctx.audiences.get(condition.audience_id)
    if audience is None:
        log_error(
            logger,
            ctx.reasons,
            'Audience "%s" is not defined in the configuration.',
            condition.audience_id,
        )
        return MatchResult.UNKNOWN
    if audience.conditions is None:
        return MatchResult.TRUE

    logger.debug(
        'Starting to evaluate audience "%s" with conditions: %s.',
        audience.id,
        describe(audience.conditions),
    )
    result = _evaluate(audience.conditions, ctx)
    logger.debug('Audience "%s" evaluated to %s.', audience.id, result.value)
    return result


def _evaluate_user_attribute(
    condition: UserAttribute, ctx: _Context
) -> MatchResult:
    if condition.type != CUSTOM_ATTRIBUTE_CONDITION_TYPE:
        log_warning(
            logger,
            ctx.reasons,
            'Audience condition %s uses an unknown condition type "%s".',
            describe(condition),
            condition.type,
        )
        return MatchResult.UNKNOWN

    present = condition.name in ctx.attributes
    actual = ctx.attributes.get(condition.name)

    if condition.match == EXISTS_MATCH:
        return MatchResult.from_bool(present and actual is not None)

    # An absent attribute and an explicit null both satisfy a null check.
    if condition.value is None and condition.match in (None, EXACT_MATCH):
        return MatchResult.from_bool(actual is None)

    matcher = MATCHERS.get(condition.match)
    if matcher is None:
        log_warning(
            logger,
            ctx.reasons,
            'Audience condition %s uses an unknown match type "%s".',
            describe(condition),
            condition.match,
        )
        return MatchResult.UNKNOWN

    if not present:
        logger.debug(
            'Audience condition %s evaluated to UNKNOWN because no value was '
            'passed for user attribute "%s".',
            describe(condition),
            condition.name,
        )
        return MatchResult.UNKNOWN

    if actual is None:
        logger.debug(
            'Audience condition %s evaluated to UNKNOWN because a null value '
            'was passed for user attribute "%s".',
            describe(condition),
            condition.name,
        )
        return MatchResult.UNKNOWN

    try:
        return MatchResult.from_bool(matcher(condition.value, actual))
    except UnexpectedValueTypeError as exc:
        if exc.side == "condition":
            log_warning(
                logger,
                ctx.reasons,
                'Audience condition %s has an unsupported condition value '
                '(%s).',
                describe(condition),
                exc.detail,
            )
        else:
            log_warning(
                logger,
                ctx.reasons,
                'Audience condition %s evaluated to UNKNOWN because the value '
                'for user attribute "%s" is unexpected (%s).',
                describe(condition),
                condition.name,
                exc.detail,
            )
        return MatchResult.UNKNOWN


_EVALUATORS: Dict[type, Callable[[Any, _Context], MatchResult]] = {
    AndCondition: _evaluate_and,
    OrCondition: _evaluate_or,
    NotCondition: _evaluate_not,
    AudienceIdCondition: _evaluate_audience_id,
    UserAttribute: _evaluate_user_attribute,
}


def implicit_or(audience_ids: Iterable[str]) -> OrCondition:
    """OR together one ``AudienceIdCondition`` per audience id."""
    return OrCondition(
        tuple(AudienceIdCondition(audience_id) for audience_id in audience_ids)
    )


def to_list(condition: Condition) -> Any:
    """Render a tree back into the nested list form used in datafiles."""
    if isinstance(condition, AndCondition):
        return ["and", *(to_list(child) for child in condition.conditions)]
    if isinstance(condition, OrCondition):
        return ["or", *(to_list(child) for child in condition.conditions)]
    if isinstance(condition, NotCondition):
        return ["not", to_list(condition.condition)]
    if isinstance(condition, AudienceIdCondition):
        return condition.audience_id
    if isinstance(condition, UserAttribute):
        return {
            "type": condition.type,
            "name": condition.name,
            "match": condition.match,
            "value": condition.value,
        }
    return repr(condition)


def describe(condition: Condition) -> str:
    """Compact JSON rendering of a tree, for log messages."""
    return json.dumps(to_list(condition), default=str)
