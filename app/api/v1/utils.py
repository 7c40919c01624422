"""
Request helpers shared by the v1 endpoints.
"""

import json
from typing import Any, Dict

from app.utils.exceptions import ValidationError


def parse_json_body(body: bytes) -> Dict[str, Any]:
    """Decode an already-verified raw body into a JSON object."""
    if not body:
        return {}
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError(f"Invalid JSON payload: {e}") from e
    if not isinstance(payload, dict):
        raise ValidationError("Payload must be a JSON object")
    return payload
