# nimbus_decide/blueprints/flags/decide.py
"""Runtime decision endpoint for nimbus-decide.

This blueprint exposes the public ``/decide/`` API used by client
applications to get flag decisions for a user.
"""

from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, jsonify, request

from ...services.decision_service import DecisionEngine
from ...services.options import parse_options
from ...validators.decide_validator import validate_decide_payload


decide_bp = Blueprint("decide_bp", __name__, url_prefix="/decide")

ENGINE_EXTENSION = "nimbus_decide.engine"


def get_engine() -> DecisionEngine:
    """Return the decision engine attached to the current app."""
    return current_app.extensions[ENGINE_EXTENSION]


@decide_bp.post("/")
def post_decide() -> tuple[Any, int]:
    """Decide one, several or all flags for a user (public API).

    Request JSON body (DecideRequest):
        {
            "user_id": "string",
            "user_attributes": { ... },
            "flag_key": "string"          # one decision
            | "flag_keys": ["string"],    # several decisions
            "options": ["INCLUDE_REASONS", ...]
        }

    Behaviour:
        - With ``flag_key``: returns a single decision object. Unknown
          flags still return 200 with ``enabled: false`` and a reason.
        - With ``flag_keys``: returns ``{"decisions": {key: decision}}``.
        - With neither: decides every flag in the configuration.

    Returns:
        A tuple ``(response, status_code)``; status is 200 on success.
    """
    payload = request.get_json(silent=True) or {}
    validate_decide_payload(payload)

    options = parse_options(payload.get("options", []))
    engine = get_engine()
    user = engine.create_user_context(
        payload["user_id"], payload.get("user_attributes") or {}
    )

    if "flag_key" in payload:
        decision = user.decide(payload["flag_key"], options)
        return jsonify(decision.to_dict()), 200

    if "flag_keys" in payload:
        decisions = user.decide_for_keys(payload["flag_keys"], options)
    else:
        decisions = user.decide_all(options)

    return (
        jsonify(
            {
                "decisions": {
                    key: decision.to_dict() for key, decision in decisions.items()
                }
            }
        ),
        200,
    )
