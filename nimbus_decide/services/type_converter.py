# nimbus_decide/services/type_converter.py
"""Default conversion of raw variable values to their declared types."""


from __future__ import annotations

import json
from typing import Any, Optional

from .models import VariableType


class DefaultTypeConverter:
    """Convert datafile strings into Python values.

    Failures return ``None``; the caller decides how to report them.
    """

    def convert(self, raw_value: Optional[str], declared_type: VariableType) -> Any:
        if raw_value is None:
            return None

        try:
            if declared_type == VariableType.STRING:
                return str(raw_value)
            if declared_type == VariableType.INTEGER:
                return int(raw_value)
            if declared_type == VariableType.DOUBLE:
                return float(raw_value)
            if declared_type == VariableType.BOOLEAN:
                lowered = str(raw_value).strip().lower()
                if lowered in ("true", "false"):
                    return lowered == "true"
                return None
            if declared_type == VariableType.JSON:
                parsed = json.loads(raw_value)
                # A JSON variable is always an object.
                return parsed if isinstance(parsed, dict) else None
        except (TypeError, ValueError):
            return None

        return None
