# nimbus_decide/blueprints/admin/config_admin.py
"""Admin-facing configuration endpoints for nimbus-decide.

Lets an operator replace the configuration snapshot of the served engine
and list the flags it declares. Both endpoints go through the engine's own
config provider, so they always agree with ``/decide/`` and ``/health/``.
"""


from __future__ import annotations

from typing import Any

from flask import Blueprint, request, jsonify

from ...errors.handlers import Conflict, ServiceUnavailable
from ...repositories import datafile_repo
from ..flags.decide import get_engine


config_admin_bp = Blueprint("config_admin", __name__, url_prefix="/admin/config")


@config_admin_bp.post("/")
def post_config() -> tuple[Any, int]:
    """Validate a datafile and make it the current configuration.

    - Validates the payload against datafile.schema.json.
    - Builds an immutable snapshot and hands it to the engine's provider.

    Returns:
        tuple: (JSON {"revision", "flags"}, HTTP status code).
               Returns 409 if the provider cannot be updated at runtime.
    """
    provider = get_engine().config_provider
    save_config = getattr(provider, "save_config", None)
    if save_config is None:
        raise Conflict("The configuration provider is read-only.")

    payload = request.get_json(silent=True)

    # Raises BadRequest (400) if the datafile is invalid
    config = datafile_repo.config_from_dict(payload)
    save_config(config)

    return jsonify({"revision": config.revision, "flags": list(config.flag_keys)}), 200


@config_admin_bp.get("/flags")
def list_flags() -> tuple[Any, int]:
    """
    List flag keys of the current configuration, in declaration order.

    Returns:
        tuple: (JSON list of flag keys, HTTP status code).
               Returns 503 if no configuration is loaded.
    """
    config = get_engine().config_provider.get_config()
    if config is None:
        raise ServiceUnavailable("No configuration loaded yet.")

    return jsonify(list(config.flag_keys)), 200
