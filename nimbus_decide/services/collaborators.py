# nimbus_decide/services/collaborators.py
"""Contracts for the collaborators the decision engine depends on."""


from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from .models import (
    DecisionNotification,
    Experiment,
    FeatureFlag,
    FlagDecision,
    ProjectConfig,
    Variation,
    VariableType,
)
from .options import DecideOptions
from .reasons import DecisionReasons


class ConfigProvider(Protocol):
    """Supplies the current configuration snapshot, or None if not ready."""

    def get_config(self) -> Optional[ProjectConfig]: ...


class WritableConfigProvider(ConfigProvider, Protocol):
    """A config provider whose snapshot can be replaced at runtime."""

    def save_config(self, config: ProjectConfig) -> None: ...


class Allocator(Protocol):
    """Selects a variation for a user among a flag's experiments/rules."""

    def allocate(
        self,
        flag: FeatureFlag,
        user_id: str,
        attributes: Mapping[str, Any],
        config: ProjectConfig,
        options: DecideOptions,
        reasons: Optional[DecisionReasons],
    ) -> FlagDecision: ...


class EventDispatcher(Protocol):
    """Fire-and-forget sink for impression events."""

    def send_impression(
        self,
        config: ProjectConfig,
        experiment: Experiment,
        user_id: str,
        attributes: Mapping[str, Any],
        variation: Variation,
    ) -> None: ...


class NotificationSink(Protocol):
    """Fire-and-forget sink for decision notifications."""

    def publish(self, payload: DecisionNotification) -> None: ...


class TypeConverter(Protocol):
    """Converts a raw variable value to its declared type.

    Returns None when the value cannot be converted.
    """

    def convert(self, raw_value: str, declared_type: VariableType) -> Any: ...
