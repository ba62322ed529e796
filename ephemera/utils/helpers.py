"""
Helper functions for common operations.
"""
import json
from typing import Any, List


def safe_json_loads(json_str: str | None, default: Any = None) -> Any:
    """
    Safely load JSON with default fallback.

    Args:
        json_str: JSON string
        default: Default value if parsing fails

    Returns:
        Parsed JSON or default value
    """
    try:
        return json.loads(json_str)
    except (json.JSONDecodeError, TypeError):
        return default


def parse_waveform(raw: str | None) -> List[float]:
    """
    Parse a voice-note waveform sent as a JSON array.

    Anything that is not a JSON list of numbers yields an empty waveform
    instead of failing the upload.

    Example:
        >>> parse_waveform("[0.1, 0.5, 1]")
        [0.1, 0.5, 1.0]
        >>> parse_waveform("not json")
        []
    """
    data = safe_json_loads(raw, default=[])
    if not isinstance(data, list):
        return []

    waveform = []
    for value in data:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return []
        waveform.append(float(value))
    return waveform

