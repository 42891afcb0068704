from flask import Blueprint, jsonify

from ..flags.decide import get_engine

health_bp = Blueprint("health_bp", __name__, url_prefix="/health")

@health_bp.get("/")
def health() -> jsonify:
    """
    Health probe.

    Returns:
        {"status": "ok", "config_ready": <bool>}
    """
    ready = get_engine().config_provider.get_config() is not None
    return jsonify({"status": "ok", "config_ready": ready})
