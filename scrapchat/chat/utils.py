"""
Helpers for walking loosely-typed JSON payloads.
"""

from typing import Any


def dig(obj: Any, *path: Any, default: Any = None) -> Any:
    """
    Walk nested dicts/lists, returning default on any missing step.

    Integer steps index lists, other steps look up dict keys.
    """
    for key in path:
        if isinstance(key, int):
            if not isinstance(obj, list) or not -len(obj) <= key < len(obj):
                return default
            obj = obj[key]
        else:
            if not isinstance(obj, dict) or key not in obj:
                return default
            obj = obj[key]
    return obj
