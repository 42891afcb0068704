# nimbus_decide/services/audience_service.py
"""Audience resolution for experiments and rollout rules.

Decides whether a user qualifies for an experiment's audience. The
ternary result of the condition tree is collapsed here: anything other
than a definite ``TRUE`` means the user does not qualify.
"""


from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .conditions import MatchResult, describe, evaluate, implicit_or
from .models import Experiment, ProjectConfig
from .reasons import DecisionReasons, log_error, log_info


logger = logging.getLogger(__name__)

ENTITY_EXPERIMENT = "experiment"
ENTITY_RULE = "rule"


def is_experiment_active(
    experiment: Experiment, reasons: Optional[DecisionReasons] = None
) -> bool:
    """Return True if the experiment is running, logging a reason if not."""
    if not experiment.is_running:
        log_info(
            logger, reasons, 'Experiment "%s" is not running.', experiment.key
        )
        return False
    return True


def does_user_meet_audience_conditions(
    config: ProjectConfig,
    experiment: Experiment,
    attributes: Mapping[str, Any],
    entity_type: str,
    entity_key: str,
    reasons: Optional[DecisionReasons] = None,
) -> bool:
    """Determine whether a user qualifies for an experiment's audience.

    Rules:
        - A structured ``audience_conditions`` tree wins when present.
        - Otherwise the flat ``audience_ids`` list is an implicit OR.
        - No audience ids and no tree -> every user qualifies.
        - ``UNKNOWN`` collapses to False.

    Args:
        config: Snapshot providing the audience definitions.
        experiment: Experiment or rollout rule being evaluated.
        attributes: The user's attributes (already a defensive copy).
        entity_type: ``"experiment"`` or ``"rule"``, used in messages.
        entity_key: Experiment key or rule index, used in messages.
        reasons: Optional per-decision reasons log.

    Returns:
        bool: True only when the audience evaluation is definitely TRUE.
    """
    if experiment.audience_conditions is not None:
        result = evaluate_audience_conditions(
            config, experiment, attributes, entity_type, entity_key, reasons
        )
    else:
        result = evaluate_audience(
            config, experiment, attributes, entity_type, entity_key, reasons
        )
    return result is MatchResult.TRUE


def evaluate_audience(
    config: ProjectConfig,
    experiment: Experiment,
    attributes: Mapping[str, Any],
    entity_type: str,
    entity_key: str,
    reasons: Optional[DecisionReasons] = None,
) -> MatchResult:
    """Evaluate the implicit OR over ``experiment.audience_ids``."""
    if not experiment.audience_ids:
        # No audiences: the experiment targets everyone.
        log_info(
            logger,
            reasons,
            'Audiences for %s "%s" collectively evaluated to TRUE.',
            entity_type,
            entity_key,
        )
        return MatchResult.TRUE

    condition = implicit_or(experiment.audience_ids)
    logger.debug(
        'Evaluating audiences for %s "%s": %s.',
        entity_type,
        entity_key,
        list(experiment.audience_ids),
    )
    return _evaluate_logged(
        config, condition, attributes, entity_type, entity_key, reasons
    )


def evaluate_audience_conditions(
    config: ProjectConfig,
    experiment: Experiment,
    attributes: Mapping[str, Any],
    entity_type: str,
    entity_key: str,
    reasons: Optional[DecisionReasons] = None,
) -> MatchResult:
    """Evaluate the structured ``audience_conditions`` tree."""
    condition = experiment.audience_conditions
    if condition is None:
        return MatchResult.UNKNOWN

    logger.debug(
        'Evaluating audiences for %s "%s": %s.',
        entity_type,
        entity_key,
        describe(condition),
    )
    return _evaluate_logged(
        config, condition, attributes, entity_type, entity_key, reasons
    )


def _evaluate_logged(
    config, condition, attributes, entity_type, entity_key, reasons
) -> MatchResult:
    try:
        result = evaluate(condition, attributes, config.audiences, reasons)
    except Exception as exc:  # malformed tree or a failing leaf
        log_error(logger, reasons, "Condition invalid: %s", exc)
        return MatchResult.FALSE

    log_info(
        logger,
        reasons,
        'Audiences for %s "%s" collectively evaluated to %s.',
        entity_type,
        entity_key,
        result.value.upper(),
    )
    return result
