# app/utils/json_parser.py
"""
Helpers for the JSON documents kept in the document store and for
GeoJSON boundary files.
"""

import json
from typing import Optional, Any


def safe_parse_json(raw: str | bytes) -> Optional[Any]:
    """Parse JSON text or bytes safely. Returns None on error."""
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None


def dump_json(value: Any) -> str:
    """Compact JSON encoding used for every stored document."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def get_nested(data: dict, *keys: str, default: Any = None) -> Any:
    """Safely navigate nested dict keys. Returns default if any key is missing."""
    current = data
    for key in keys:
        if not isinstance(current, dict):
            return default
        current = current.get(key, default)
        if current is default:
            return default
    return current
