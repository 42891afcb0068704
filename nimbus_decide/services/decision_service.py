# nimbus_decide/services/decision_service.py
"""Decision orchestration for nimbus-decide.

``DecisionEngine`` turns a flag key, a user context and a set of decide
options into an immutable :class:`Decision`. Allocation, impression
events, notifications and type conversion are delegated to injected
collaborators. No method of the engine raises to its caller: every failure
degrades to a well-formed decision with a reason.
"""


from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from .collaborators import (
    Allocator,
    ConfigProvider,
    EventDispatcher,
    NotificationSink,
    TypeConverter,
)
from .models import (
    Decision,
    DecisionNotification,
    DecisionSource,
    FeatureFlag,
    FlagDecision,
    ProjectConfig,
    Variation,
)
from .options import DecideOption, DecideOptions, merge_options
from .reasons import DecisionReasons, log_error
from .user_context import UserContext


logger = logging.getLogger(__name__)

NOT_READY_MESSAGE = "Decision engine not configured properly yet."
FLAG_KEY_INVALID_MESSAGE = 'No flag was found for key "%s".'
VARIABLE_VALUE_INVALID_MESSAGE = (
    'Variable value for key "%s" is invalid or wrong type.'
)
NOT_IN_EXPERIMENT_MESSAGE = (
    'The user "%s" is not included in an experiment for flag "%s".'
)


def flag_key_invalid_message(flag_key: str) -> str:
    return FLAG_KEY_INVALID_MESSAGE % flag_key


def variable_value_invalid_message(variable_key: str) -> str:
    return VARIABLE_VALUE_INVALID_MESSAGE % variable_key


class DecisionEngine:
    """Entry point for flag decisions.

    The engine holds no per-decision state; one instance can serve many
    threads against a shared configuration snapshot.

    Args:
        config_provider: Supplies the configuration snapshot.
        allocator: Chooses a variation for a flag.
        event_dispatcher: Receives impression events.
        notification_sink: Receives one notification per decision.
        type_converter: Converts raw variable values.
        default_options: Options applied to every call.
    """

    def __init__(
        self,
        config_provider: ConfigProvider,
        allocator: Allocator,
        event_dispatcher: EventDispatcher,
        notification_sink: NotificationSink,
        type_converter: TypeConverter,
        default_options: Iterable[DecideOption] = (),
    ) -> None:
        self.config_provider = config_provider
        self.allocator = allocator
        self.event_dispatcher = event_dispatcher
        self.notification_sink = notification_sink
        self.type_converter = type_converter
        self.default_options: DecideOptions = frozenset(default_options)

    def create_user_context(
        self, user_id: str, attributes: Optional[Mapping[str, Any]] = None
    ) -> UserContext:
        return UserContext(self, user_id, attributes)

    # ---------- Public API ----------

    def decide(
        self,
        user_context: UserContext,
        flag_key: str,
        options: Optional[Iterable[DecideOption]] = None,
    ) -> Decision:
        """Decide a single flag for a user.

        Steps:
            - Fail fast when no configuration is loaded or the flag is
              unknown (error decision, notification still published).
            - Ask the allocator for a variation using a snapshot of the
              user's attributes.
            - Send one impression when the variation came from an
              experiment, unless ``DISABLE_DECISION_EVENT`` is set.
            - Resolve variables unless ``EXCLUDE_VARIABLES`` is set.
            - Publish a decision notification and return the decision.

        Returns:
            Decision: always; errors are reported through ``reasons``.
        """
        all_options = merge_options(self.default_options, options)
        attributes = user_context.copy_attributes()

        config = self.config_provider.get_config()
        if config is None:
            logger.error(NOT_READY_MESSAGE)
            return self._error_decision(
                flag_key, user_context, attributes, NOT_READY_MESSAGE
            )

        flag = config.get_flag(flag_key)
        if flag is None:
            message = flag_key_invalid_message(flag_key)
            logger.error(message)
            return self._error_decision(
                flag_key, user_context, attributes, message
            )

        return self._decide_flag(config, flag, user_context, attributes, all_options)

    def decide_for_keys(
        self,
        user_context: UserContext,
        keys: Sequence[str],
        options: Optional[Iterable[DecideOption]] = None,
    ) -> Dict[str, Decision]:
        """Decide several flags, in order, keyed by flag key.

        With ``ENABLED_FLAGS_ONLY``, disabled decisions are left out of the
        mapping entirely.
        """
        decisions: Dict[str, Decision] = {}

        if self.config_provider.get_config() is None:
            logger.error("%s Returning no decisions.", NOT_READY_MESSAGE)
            return decisions

        if not keys:
            return decisions

        all_options = merge_options(self.default_options, options)
        enabled_only = DecideOption.ENABLED_FLAGS_ONLY in all_options

        for key in keys:
            decision = self.decide(user_context, key, options)
            if not enabled_only or decision.enabled:
                decisions[key] = decision

        return decisions

    def decide_all(
        self,
        user_context: UserContext,
        options: Optional[Iterable[DecideOption]] = None,
    ) -> Dict[str, Decision]:
        """Decide every flag in the configuration, in declaration order."""
        config = self.config_provider.get_config()
        if config is None:
            logger.error("%s Returning no decisions.", NOT_READY_MESSAGE)
            return {}

        return self.decide_for_keys(user_context, list(config.flag_keys), options)

    # ---------- Internals ----------

    def _decide_flag(
        self,
        config: ProjectConfig,
        flag: FeatureFlag,
        user_context: UserContext,
        attributes: Dict[str, Any],
        options: DecideOptions,
    ) -> Decision:
        user_id = user_context.user_id
        reasons = DecisionReasons()
        include_reasons = DecideOption.INCLUDE_REASONS in options

        flag_decision = self._allocate(
            config,
            flag,
            user_id,
            attributes,
            options,
            reasons if include_reasons else None,
            reasons,
        )
        variation = flag_decision.variation

        sent_event = False
        enabled = False
        if variation is not None:
            if flag_decision.source == DecisionSource.FEATURE_TEST:
                if DecideOption.DISABLE_DECISION_EVENT not in options:
                    sent_event = self._send_impression(
                        config, flag_decision, user_id, attributes
                    )
            else:
                message = NOT_IN_EXPERIMENT_MESSAGE % (user_id, flag.key)
                logger.info(message)
                reasons.add_info(message)
            enabled = bool(variation.feature_enabled)

        variables: Dict[str, Any] = {}
        if DecideOption.EXCLUDE_VARIABLES not in options:
            variables = self._resolve_variables(flag, variation, enabled, reasons)

        reasons_to_report = reasons.to_report(options)
        variation_key = variation.key if variation is not None else None
        rule_key = (
            flag_decision.experiment.key
            if flag_decision.experiment is not None
            else None
        )

        self._notify(
            DecisionNotification(
                user_id=user_id,
                attributes=MappingProxyType(attributes),
                flag_key=flag.key,
                enabled=enabled,
                variables=MappingProxyType(variables),
                variation_key=variation_key,
                rule_key=rule_key,
                reasons=reasons_to_report,
                decision_event_dispatched=sent_event,
            )
        )

        logger.info(
            'Feature "%s" is enabled for user "%s"? %s', flag.key, user_id, enabled
        )

        return Decision(
            variation_key=variation_key,
            enabled=enabled,
            variables=MappingProxyType(variables),
            rule_key=rule_key,
            flag_key=flag.key,
            user_context=user_context,
            reasons=reasons_to_report,
        )

    def _allocate(
        self,
        config: ProjectConfig,
        flag: FeatureFlag,
        user_id: str,
        attributes: Dict[str, Any],
        options: DecideOptions,
        allocator_reasons: Optional[DecisionReasons],
        reasons: DecisionReasons,
    ) -> FlagDecision:
        try:
            return self.allocator.allocate(
                flag,
                user_id,
                dict(attributes),
                config,
                options,
                allocator_reasons,
            )
        except Exception as exc:
            log_error(
                logger,
                reasons,
                'Allocation failed for flag "%s": %s',
                flag.key,
                exc,
            )
            return FlagDecision()

    def _send_impression(
        self,
        config: ProjectConfig,
        flag_decision: FlagDecision,
        user_id: str,
        attributes: Dict[str, Any],
    ) -> bool:
        try:
            self.event_dispatcher.send_impression(
                config,
                flag_decision.experiment,
                user_id,
                dict(attributes),
                flag_decision.variation,
            )
        except Exception:
            logger.exception(
                'Failed to dispatch impression for user "%s".', user_id
            )
            return False
        return True

    def _resolve_variables(
        self,
        flag: FeatureFlag,
        variation: Optional[Variation],
        enabled: bool,
        reasons: DecisionReasons,
    ) -> Dict[str, Any]:
        """One entry per declared variable; overrides apply only when enabled."""
        values: Dict[str, Any] = {}
        for variable in flag.variables:
            raw_value = variable.default_value
            if enabled and variation is not None:
                raw_value = variation.variables.get(variable.id, raw_value)

            try:
                converted = self.type_converter.convert(raw_value, variable.type)
            except Exception:
                logger.exception(
                    'Type converter failed for variable "%s".', variable.key
                )
                converted = None

            if converted is None:
                log_error(
                    logger, reasons, VARIABLE_VALUE_INVALID_MESSAGE, variable.key
                )

            values[variable.key] = converted
        return values

    def _error_decision(
        self,
        flag_key: str,
        user_context: UserContext,
        attributes: Dict[str, Any],
        message: str,
    ) -> Decision:
        decision = Decision.error(flag_key, user_context, message)
        self._notify(
            DecisionNotification(
                user_id=user_context.user_id,
                attributes=MappingProxyType(attributes),
                flag_key=flag_key,
                enabled=False,
                variables=MappingProxyType({}),
                variation_key=None,
                rule_key=None,
                reasons=decision.reasons,
                decision_event_dispatched=False,
            )
        )
        return decision

    def _notify(self, payload: DecisionNotification) -> None:
        try:
            self.notification_sink.publish(payload)
        except Exception:
            logger.exception(
                'Failed to publish decision notification for flag "%s".',
                payload.flag_key,
            )
