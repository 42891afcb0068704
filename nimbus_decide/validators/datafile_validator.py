# nimbus_decide/validators/datafile_validator.py
"""
Validator for configuration datafiles using JSON Schema.

The schema is loaded once at import time.
"""


from pathlib import Path
import json
from jsonschema import validate as js_validate, ValidationError
from ..errors.handlers import BadRequest

# Resolve schema path
SCHEMA_PATH = (Path(__file__).resolve().parent.parent / "schemas" / "datafile.schema.json")

# Load schema
with SCHEMA_PATH.open("r", encoding="utf-8") as f:
    DATAFILE_SCHEMA = json.load(f)


def validate_datafile(payload: dict) -> None:
    """
    Validate a datafile against the datafile schema.

    Args:
        payload: Parsed JSON datafile.

    Raises:
        BadRequest: If payload is not an object or violates the schema.
    """
    if not isinstance(payload, dict):
        raise BadRequest("Datafile must be a JSON object.")

    try:
        js_validate(instance=payload, schema=DATAFILE_SCHEMA)
    except ValidationError as e:
        msg = getattr(e, "message", None) or str(e)
        raise BadRequest(f"Invalid datafile: {msg}")
