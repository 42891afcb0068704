# nimbus_decide/validators/decide_validator.py
"""
Validator for /decide/ requests using JSON Schema.

This module loads the DecideRequest JSON Schema once at import time and
exposes a helper to validate incoming payloads, raising BadRequest on error.
"""


from pathlib import Path
import json
from jsonschema import validate as js_validate, ValidationError
from ..errors.handlers import BadRequest


# Resolve schema path
SCHEMA_PATH = (
    Path(__file__).parent.parent / "schemas" / "DecideRequest.schema.json"
)

# Load schema
with SCHEMA_PATH.open("r", encoding="utf-8") as f:
    DECIDE_REQUEST_SCHEMA = json.load(f)


def validate_decide_payload(payload: dict) -> None:
    """
    Validate the decide request body against the DecideRequest schema.

    Args:
        payload: Parsed JSON body.

    Raises:
        BadRequest: If payload is not JSON, doesn't match the schema, or
            asks for both ``flag_key`` and ``flag_keys``.
    """
    if not isinstance(payload, dict):
        raise BadRequest("Payload must be a JSON object.")

    try:
        js_validate(instance=payload, schema=DECIDE_REQUEST_SCHEMA)
    except ValidationError as e:
        msg = getattr(e, "message", None) or str(e)
        raise BadRequest(f"Invalid DecideRequest: {msg}")

    if "flag_key" in payload and "flag_keys" in payload:
        raise BadRequest("Use either 'flag_key' or 'flag_keys', not both.")
