# nimbus_decide/app.py

"""nimbus-decide service entrypoint.

This module creates and configures the Flask application around a
``DecisionEngine`` and applies development-time CORS settings for local
frontends. It then starts the HTTP server using environment-based
configuration.
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

from nimbus_decide.blueprints.admin.config_admin import config_admin_bp
from nimbus_decide.blueprints.flags.decide import ENGINE_EXTENSION, decide_bp
from nimbus_decide.blueprints.system.health import health_bp
from nimbus_decide.errors.handlers import register_error_handlers
from nimbus_decide.repositories import datafile_repo, memory_repo
from nimbus_decide.services.allocation_service import RuleAllocator
from nimbus_decide.services.decision_service import DecisionEngine
from nimbus_decide.services.event_service import InMemoryEventDispatcher
from nimbus_decide.services.notification_center import NotificationCenter
from nimbus_decide.services.options import parse_options
from nimbus_decide.services.type_converter import DefaultTypeConverter


logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure root logging from the ``LOG_LEVEL`` environment variable."""
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_default_engine() -> DecisionEngine:
    """Build an engine wired to the in-memory collaborators.

    Default decide options come from ``NIMBUS_DEFAULT_DECIDE_OPTIONS``
    (comma-separated option names). The impression buffer keeps the last
    ``NIMBUS_EVENT_BUFFER_SIZE`` events.
    """
    default_options = parse_options(
        os.getenv("NIMBUS_DEFAULT_DECIDE_OPTIONS", "").split(",")
    )
    max_events = int(os.getenv("NIMBUS_EVENT_BUFFER_SIZE", "1000"))
    return DecisionEngine(
        config_provider=memory_repo.MemoryConfigProvider(),
        allocator=RuleAllocator(),
        event_dispatcher=InMemoryEventDispatcher(max_events=max_events),
        notification_sink=NotificationCenter(),
        type_converter=DefaultTypeConverter(),
        default_options=default_options,
    )


def create_app(engine: Optional[DecisionEngine] = None) -> Flask:
    """Create and configure the nimbus-decide Flask application instance.

    This factory loads environment variables, optionally loads the datafile
    named by ``NIMBUS_DATAFILE``, registers blueprints, and applies global
    error handlers.

    Args:
        engine: Engine to serve; a default in-memory engine when omitted.

    Returns:
        Flask: A configured Flask application instance.
    """
    load_dotenv()
    configure_logging()
    app = Flask(__name__)

    engine = engine or build_default_engine()

    datafile = os.getenv("NIMBUS_DATAFILE")
    if datafile:
        save_config = getattr(engine.config_provider, "save_config", None)
        if save_config is None:
            raise RuntimeError(
                "NIMBUS_DATAFILE is set but the engine's config provider is read-only."
            )
        save_config(datafile_repo.load_datafile(datafile))
        logger.info("Loaded datafile %s.", datafile)

    app.extensions[ENGINE_EXTENSION] = engine

    # Register JSON error handlers (400/409/503/500, etc.).
    register_error_handlers(app)

    # System & health
    app.register_blueprint(health_bp)         # /health/

    # Admin APIs
    app.register_blueprint(config_admin_bp)   # /admin/config/

    # Public decision endpoint (SDK / runtime)
    app.register_blueprint(decide_bp)         # /decide/

    return app


if __name__ == "__main__":
    app = create_app()

    # Allow local frontends to call this API directly.
    # In production, CORS should be enforced at the reverse proxy layer.
    CORS(
        app,
        resources={
            r"/*": {
                "origins": [
                    "http://localhost:3000",
                    "http://localhost:5173",
                ],
            },
        },
        supports_credentials=False,
        allow_headers=["Content-Type"],
        methods=["GET", "POST", "OPTIONS"],
    )

    # HTTP server configuration derived from environment variables.
    port = int(os.getenv("BACKEND_PORT", "8000"))
    debug = os.getenv("DEBUG", "false").lower() == "true"

    app.run(
        host="0.0.0.0",
        port=port,
        debug=debug,
    )
