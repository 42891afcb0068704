# nimbus_decide/repositories/datafile_repo.py
"""Build configuration snapshots from JSON datafiles.

A datafile looks like::

    {
        "revision": "42",
        "audiences": [{"id": "1", "name": "pro", "conditions": [...]}],
        "experiments": [{"id": "e1", "key": "checkout_test", ...}],
        "featureFlags": [{"id": "f1", "key": "checkout_flow", ...}]
    }

Condition expressions use the nested list form ``["and", ...]`` where each
operand is a leaf dict, an audience id string or another list.
"""


from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..errors.handlers import BadRequest
from ..services.conditions import (
    AndCondition,
    AudienceIdCondition,
    Condition,
    NotCondition,
    OrCondition,
    UserAttribute,
)
from ..services.models import (
    Audience,
    EXPERIMENT_STATUS_RUNNING,
    Experiment,
    FeatureFlag,
    FeatureVariable,
    ProjectConfig,
    VariableType,
    Variation,
)
from ..validators.datafile_validator import validate_datafile


logger = logging.getLogger(__name__)

_OPERATORS = {"and": AndCondition, "or": OrCondition}


def build_condition(raw: Any) -> Optional[Condition]:
    """Turn a datafile condition expression into a condition tree.

    Args:
        raw: A leaf dict, an audience id, a nested list, or a JSON string
            holding one of those.

    Returns:
        The tree, or ``None`` for an empty expression.

    Raises:
        ValueError: If the expression is malformed.
    """
    if isinstance(raw, str):
        stripped = raw.strip()
        if stripped.startswith(("[", "{")):
            return build_condition(json.loads(stripped))
        return AudienceIdCondition(raw)

    if isinstance(raw, dict):
        if "name" not in raw:
            raise ValueError(f"Leaf condition without a name: {raw!r}")
        return UserAttribute(
            name=raw["name"],
            match=raw.get("match"),
            value=raw.get("value"),
            type=raw.get("type", "custom_attribute"),
        )

    if isinstance(raw, list):
        if not raw:
            return None

        operator = "or"
        operands: List[Any] = raw
        if isinstance(raw[0], str) and raw[0].lower() in ("and", "or", "not"):
            operator = raw[0].lower()
            operands = raw[1:]

        children = [
            child
            for child in (build_condition(operand) for operand in operands)
            if child is not None
        ]
        if operator == "not":
            if len(children) != 1:
                raise ValueError("A 'not' expression takes exactly one operand.")
            return NotCondition(children[0])
        return _OPERATORS[operator](tuple(children))

    raise ValueError(f"Unsupported condition expression: {raw!r}")


def _build_variation(raw: Dict[str, Any]) -> Variation:
    return Variation(
        id=str(raw["id"]),
        key=raw["key"],
        feature_enabled=bool(raw.get("featureEnabled", False)),
        variables={
            str(item["id"]): item["value"] for item in raw.get("variables", [])
        },
    )


def _build_experiment(raw: Dict[str, Any]) -> Experiment:
    conditions = raw.get("audienceConditions")
    return Experiment(
        id=str(raw["id"]),
        key=raw["key"],
        status=raw.get("status", EXPERIMENT_STATUS_RUNNING),
        audience_ids=tuple(str(a) for a in raw.get("audienceIds", [])),
        audience_conditions=(
            build_condition(conditions) if conditions is not None else None
        ),
        variations=tuple(_build_variation(v) for v in raw.get("variations", [])),
        forced_variations=dict(raw.get("forcedVariations", {})),
    )


def _build_flag(raw: Dict[str, Any]) -> FeatureFlag:
    return FeatureFlag(
        id=str(raw["id"]),
        key=raw["key"],
        variables=tuple(
            FeatureVariable(
                id=str(v["id"]),
                key=v["key"],
                type=VariableType(v["type"]),
                default_value=v["defaultValue"],
            )
            for v in raw.get("variables", [])
        ),
        experiment_ids=tuple(str(e) for e in raw.get("experimentIds", [])),
        rollout_rules=tuple(
            _build_experiment(rule) for rule in raw.get("rolloutRules", [])
        ),
    )


def config_from_dict(data: Dict[str, Any]) -> ProjectConfig:
    """Validate a datafile and build an immutable configuration snapshot.

    Raises:
        BadRequest: If the datafile violates the schema or holds a
            malformed condition expression.
    """
    validate_datafile(data)

    try:
        audiences = {}
        for raw in data.get("audiences", []):
            audience = Audience(
                id=str(raw["id"]),
                name=raw.get("name", str(raw["id"])),
                conditions=build_condition(raw.get("conditions", [])),
            )
            audiences[audience.id] = audience

        experiments = {}
        for raw in data.get("experiments", []):
            experiment = _build_experiment(raw)
            experiments[experiment.id] = experiment

        flags = tuple(_build_flag(raw) for raw in data.get("featureFlags", []))
    except (ValueError, KeyError) as exc:
        raise BadRequest(f"Invalid datafile: {exc}")

    config = ProjectConfig(
        flags=flags,
        experiments=experiments,
        audiences=audiences,
        revision=str(data.get("revision", "0")),
    )
    logger.info(
        "Built configuration revision %s with %d flag(s).",
        config.revision,
        len(config.flags),
    )
    return config


def load_datafile(path: Union[str, Path]) -> ProjectConfig:
    """Read a datafile from disk and build its snapshot.

    Raises:
        RuntimeError: If the file cannot be read or is not valid JSON.
        BadRequest: If the content violates the datafile schema.
    """
    datafile_path = Path(path)
    try:
        with datafile_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as exc:
        raise RuntimeError(f"Failed to read datafile '{datafile_path}'.") from exc

    return config_from_dict(data)
