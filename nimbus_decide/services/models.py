# nimbus_decide/services/models.py
"""Configuration and decision domain models for nimbus-decide.

Every model here is an immutable dataclass. Configuration entities are
built once per configuration snapshot (see ``repositories.datafile_repo``)
and shared read-only between threads.
"""


from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from .conditions import Condition
    from .user_context import UserContext


EXPERIMENT_STATUS_RUNNING = "Running"


class VariableType(str, Enum):
    """Declared type of a flag variable."""

    STRING = "string"
    INTEGER = "integer"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    JSON = "json"


class DecisionSource(str, Enum):
    """Where the allocation service found the selected variation."""

    FEATURE_TEST = "feature-test"
    ROLLOUT = "rollout"


@dataclass(frozen=True)
class FeatureVariable:
    """A typed variable declared on a flag, with its raw default value."""
    id: str
    key: str
    type: VariableType
    default_value: str


@dataclass(frozen=True)
class Variation:
    """A named bundle of variable overrides plus an enabled flag.

    ``variables`` maps a variable *id* to its raw override value.
    """
    id: str
    key: str
    feature_enabled: bool = False
    variables: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Audience:
    """A named, reusable condition tree over user attributes."""
    id: str
    name: str
    conditions: Optional["Condition"] = None


@dataclass(frozen=True)
class Experiment:
    """An audience-gated mechanism that selects a variation.

    Rollout rules share this shape; only the logging entity type differs.

    Attributes:
        audience_ids: Flat list of audience ids (implicit OR).
        audience_conditions: Structured condition tree. Takes precedence
            over ``audience_ids`` when present.
        forced_variations: user id -> variation key overrides.
    """
    id: str
    key: str
    status: str = EXPERIMENT_STATUS_RUNNING
    audience_ids: Tuple[str, ...] = ()
    audience_conditions: Optional["Condition"] = None
    variations: Tuple[Variation, ...] = ()
    forced_variations: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_running(self) -> bool:
        return self.status == EXPERIMENT_STATUS_RUNNING

    def get_variation(self, key: str) -> Optional[Variation]:
        for variation in self.variations:
            if variation.key == key:
                return variation
        return None


@dataclass(frozen=True)
class FeatureFlag:
    """A feature flag with its declared variables and associated rules."""
    id: str
    key: str
    variables: Tuple[FeatureVariable, ...] = ()
    experiment_ids: Tuple[str, ...] = ()
    rollout_rules: Tuple[Experiment, ...] = ()


@dataclass(frozen=True)
class ProjectConfig:
    """Read-only configuration snapshot.

    ``flags`` keeps declaration order; ``decide_all`` relies on it.
    """
    flags: Tuple[FeatureFlag, ...] = ()
    experiments: Mapping[str, Experiment] = field(default_factory=dict)
    audiences: Mapping[str, Audience] = field(default_factory=dict)
    revision: str = "0"

    def get_flag(self, key: str) -> Optional[FeatureFlag]:
        for flag in self.flags:
            if flag.key == key:
                return flag
        return None

    @property
    def flag_keys(self) -> Tuple[str, ...]:
        return tuple(flag.key for flag in self.flags)

    def get_experiments_for_flag(self, flag: FeatureFlag) -> Tuple[Experiment, ...]:
        return tuple(
            self.experiments[exp_id]
            for exp_id in flag.experiment_ids
            if exp_id in self.experiments
        )


@dataclass(frozen=True)
class FlagDecision:
    """Result handed back by the allocation service."""
    variation: Optional[Variation] = None
    source: DecisionSource = DecisionSource.ROLLOUT
    experiment: Optional[Experiment] = None


@dataclass(frozen=True)
class Decision:
    """Immutable result of a single ``decide`` call."""
    variation_key: Optional[str]
    enabled: bool
    variables: Mapping[str, Any]
    rule_key: Optional[str]
    flag_key: str
    user_context: "UserContext"
    reasons: Tuple[str, ...] = ()

    @classmethod
    def error(
        cls, flag_key: str, user_context: "UserContext", reason: str
    ) -> "Decision":
        """Build the terminal decision returned when evaluation cannot run."""
        return cls(
            variation_key=None,
            enabled=False,
            variables=MappingProxyType({}),
            rule_key=None,
            flag_key=flag_key,
            user_context=user_context,
            reasons=(reason,),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize into a JSON-safe dict (user context flattened)."""
        return {
            "flag_key": self.flag_key,
            "enabled": self.enabled,
            "variation_key": self.variation_key,
            "rule_key": self.rule_key,
            "variables": dict(self.variables),
            "user_id": self.user_context.user_id,
            "reasons": list(self.reasons),
        }


@dataclass(frozen=True)
class DecisionNotification:
    """Payload published to the notification sink once per decision."""
    user_id: str
    attributes: Mapping[str, Any]
    flag_key: str
    enabled: bool
    variables: Mapping[str, Any]
    variation_key: Optional[str]
    rule_key: Optional[str]
    reasons: Tuple[str, ...]
    decision_event_dispatched: bool
    type: str = "flag"
