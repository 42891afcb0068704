# nimbus_decide/services/allocation_service.py
"""Default allocation: audience-gated walk over experiments then rollouts.

Traffic hashing is not done here. Picking the variation inside a
qualifying experiment is delegated to a ``VariationPicker`` so a real
bucketer can be plugged in.
"""


from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from .audience_service import (
    ENTITY_EXPERIMENT,
    ENTITY_RULE,
    does_user_meet_audience_conditions,
    is_experiment_active,
)
from .models import (
    DecisionSource,
    Experiment,
    FeatureFlag,
    FlagDecision,
    ProjectConfig,
    Variation,
)
from .options import DecideOptions
from .reasons import DecisionReasons, log_info


logger = logging.getLogger(__name__)

VariationPicker = Callable[[Experiment, str], Optional[Variation]]

EVERYONE_ELSE_RULE = "Everyone Else"


def forced_or_first_variation(
    experiment: Experiment, user_id: str
) -> Optional[Variation]:
    """Forced variation for the user if any, otherwise the first variation."""
    forced_key = experiment.forced_variations.get(user_id)
    if forced_key is not None:
        variation = experiment.get_variation(forced_key)
        if variation is not None:
            return variation
    return experiment.variations[0] if experiment.variations else None


class RuleAllocator:
    """Walk a flag's experiments, then its rollout rules, in order."""

    def __init__(self, picker: VariationPicker = forced_or_first_variation) -> None:
        self._picker = picker

    def allocate(
        self,
        flag: FeatureFlag,
        user_id: str,
        attributes: Mapping[str, Any],
        config: ProjectConfig,
        options: DecideOptions,
        reasons: Optional[DecisionReasons],
    ) -> FlagDecision:
        for experiment in config.get_experiments_for_flag(flag):
            if not is_experiment_active(experiment, reasons):
                continue
            if not does_user_meet_audience_conditions(
                config,
                experiment,
                attributes,
                ENTITY_EXPERIMENT,
                experiment.key,
                reasons,
            ):
                log_info(
                    logger,
                    reasons,
                    'User "%s" does not meet conditions to be in experiment "%s".',
                    user_id,
                    experiment.key,
                )
                continue

            variation = self._picker(experiment, user_id)
            if variation is not None:
                log_info(
                    logger,
                    reasons,
                    'User "%s" is in variation "%s" of experiment "%s".',
                    user_id,
                    variation.key,
                    experiment.key,
                )
                return FlagDecision(
                    variation, DecisionSource.FEATURE_TEST, experiment
                )
            log_info(
                logger,
                reasons,
                'User "%s" is not in any variation of experiment "%s".',
                user_id,
                experiment.key,
            )

        rules = flag.rollout_rules
        for index, rule in enumerate(rules):
            is_last = index == len(rules) - 1
            rule_label = EVERYONE_ELSE_RULE if is_last else str(index + 1)
            if not is_experiment_active(rule, reasons):
                continue
            if not does_user_meet_audience_conditions(
                config, rule, attributes, ENTITY_RULE, rule_label, reasons
            ):
                log_info(
                    logger,
                    reasons,
                    'User "%s" does not meet conditions for targeting rule "%s".',
                    user_id,
                    rule_label,
                )
                continue

            variation = self._picker(rule, user_id)
            if variation is not None:
                log_info(
                    logger,
                    reasons,
                    'User "%s" meets conditions for targeting rule "%s".',
                    user_id,
                    rule_label,
                )
                return FlagDecision(variation, DecisionSource.ROLLOUT, rule)

        log_info(
            logger,
            reasons,
            'User "%s" is not in any experiment or rollout rule for flag "%s".',
            user_id,
            flag.key,
        )
        return FlagDecision(None, DecisionSource.ROLLOUT, None)
