"""Helpers for pulling structured data out of generated text."""

from __future__ import annotations

import json
import re
from typing import Any, Callable

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```")
_FENCED_ANY = re.compile(r"```\s*([\s\S]*?)\s*```")


def extract_json(text: str) -> Any:
    """Parse JSON from ``text``, preferring a fenced ```json block.

    Raises:
        ValueError: If no valid JSON can be decoded.
    """
    if text is None:
        raise ValueError("No text to parse")
    match = _FENCED_JSON.search(text) or _FENCED_ANY.search(text)
    candidate = match.group(1) if match else text
    try:
        return json.loads(candidate.strip())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON: {exc}") from exc


def extract_json_object(text: str, fallback: Callable[[str], dict]) -> dict:
    """Return a JSON object from ``text`` or ``fallback(text)`` when unusable."""
    try:
        data = extract_json(text)
    except ValueError:
        return fallback(text)
    if not isinstance(data, dict):
        return fallback(text)
    return data
