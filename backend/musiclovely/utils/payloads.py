"""Tolerant field lookup for provider payloads.

The audio provider has shipped several response shapes for the same
endpoint (``audioUrl`` vs ``audio_url``, items under ``data.response.sunoData``
vs ``data.musics``). Every extractor here takes an ordered list of
candidate keys and returns the first one that holds a usable value.
"""
from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False


def dig(payload: Any, path: str) -> Any:
    """Follow a dotted *path* through nested dicts; ``None`` if any hop is missing."""
    current = payload
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


def first_value(payload: Any, *paths: str) -> Any:
    """Return the first non-empty value among dotted *paths*."""
    for path in paths:
        value = dig(payload, path)
        if not _is_empty(value):
            return value
    return None


def first_str(payload: Any, *paths: str) -> str | None:
    value = first_value(payload, *paths)
    if value is None:
        return None
    return str(value).strip()


def first_list(payload: Any, *paths: str) -> list[dict]:
    """Return the first non-empty list of dicts among dotted *paths*."""
    for path in paths:
        value = dig(payload, path)
        if isinstance(value, list) and value:
            return [item for item in value if isinstance(item, dict)]
    return []


def to_float(value: Any, default: float | None = None) -> float | None:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def parse_progress(value: Any) -> int:
    """Read a provider progress value: ``45``, ``"45"`` or ``"45%"``."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return max(0, min(100, int(value)))
    if isinstance(value, str):
        try:
            return max(0, min(100, int(float(value.strip().rstrip("%") or 0))))
        except ValueError:
            return 0
    return 0


def is_http_url(value: Any) -> bool:
    return isinstance(value, str) and value.strip().lower().startswith(("http://", "https://"))


def loads_or_none(raw: str | bytes | None) -> dict | None:
    """Parse a JSON object from raw request text; ``None`` when it is not one."""
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except (ValueError, TypeError):
        return None
    return parsed if isinstance(parsed, dict) else None
