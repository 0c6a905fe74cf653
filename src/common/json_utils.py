"""
JSON Utilities for model response parsing.

Extraction calls ask the model for a single JSON object. Responses may still
arrive wrapped in markdown fences, surrounded by prose, or slightly malformed
(single quotes, trailing commas). This module recovers the object.

Uses json-repair library as a fallback when standard json.loads() fails.
"""

import json
import re
from typing import Any, Dict

from json_repair import repair_json

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_OBJECT_PATTERN = re.compile(r"\{.*\}", re.DOTALL)


def parse_llm_json(text: str) -> Dict[str, Any]:
    """
    Parse a JSON object from a model response.

    Args:
        text: Raw response text that should contain one JSON object

    Returns:
        Parsed dictionary

    Raises:
        ValueError: If no JSON object can be extracted or repaired

    Example:
        >>> parse_llm_json('```json\\n{"intent": "AFFIRM"}\\n```')
        {'intent': 'AFFIRM'}
        >>> parse_llm_json("{'education': 'Liceu',}")
        {'education': 'Liceu'}
    """
    if not text or not text.strip():
        raise ValueError("Empty input: no JSON content to parse")

    candidate = _FENCE_PATTERN.sub("", text.strip()).strip()
    if not candidate.startswith("{"):
        match = _OBJECT_PATTERN.search(candidate)
        if not match:
            raise ValueError(f"No JSON object found in text: {text[:200]}")
        candidate = match.group(0)

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        parsed = repair_json(candidate, return_objects=True)

    # A single object wrapped in brackets is accepted as the object itself
    if isinstance(parsed, list) and len(parsed) == 1:
        parsed = parsed[0]

    if not isinstance(parsed, dict):
        raise ValueError(
            f"Expected a JSON object, got {type(parsed).__name__}: {text[:200]}"
        )
    return parsed
