# nimbus_decide/errors/handlers.py
"""Centralized JSON error handling for the nimbus-decide service.

Defines the exceptions raised by validators and blueprints and registers
Flask error handlers so that every error leaves the service as a JSON
``{"error": ..., "detail": ...}`` payload.
"""


from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException


logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for errors mapped to an HTTP status.

    Attributes:
        detail: Human-readable description of the error.
    """

    status_code = 500
    error_name = "InternalServerError"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class BadRequest(ServiceError):
    """Invalid payload or datafile (HTTP 400)."""

    status_code = 400
    error_name = "BadRequest"


class Conflict(ServiceError):
    """Request conflicts with the service state (HTTP 409)."""

    status_code = 409
    error_name = "Conflict"


class ServiceUnavailable(ServiceError):
    """No configuration snapshot loaded yet (HTTP 503)."""

    status_code = 503
    error_name = "ServiceUnavailable"


def register_error_handlers(app: Flask) -> None:
    """Register JSON error handlers on ``app``.

    Args:
        app: The Flask application instance to configure.
    """

    @app.errorhandler(ServiceError)
    def _on_service_error(err: ServiceError) -> tuple[Any, int]:
        """Return the status carried by the exception class."""
        return (
            jsonify({"error": err.error_name, "detail": err.detail}),
            err.status_code,
        )

    @app.errorhandler(HTTPException)
    def _on_http_exception(err: HTTPException) -> tuple[Any, int]:
        """Fallback for other HTTP errors (for example 405)."""
        code = err.code or 500
        name = err.name or "HTTPException"
        return jsonify({"error": name, "detail": err.description}), code

    @app.errorhandler(Exception)
    def _on_unexpected(err: Exception) -> tuple[Any, int]:
        """Last-resort handler to avoid HTML stack traces."""
        logger.exception("Unhandled error: %s", err)
        return (
            jsonify(
                {
                    "error": "InternalServerError",
                    "detail": "An unexpected error occurred.",
                }
            ),
            500,
        )
