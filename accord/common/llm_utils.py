"""Helpers for reading structured answers out of LLM responses."""

from __future__ import annotations

import json
import re
from typing import Optional

_FENCE = re.compile(r"```(?:json)?\s*\n?")


def parse_llm_json(raw: str) -> Optional[dict]:
    """Parse a JSON object from an LLM response.

    Models often wrap JSON in code fences or add a sentence before it. Tries,
    in order: the text with fences removed, then the span between the first
    '{' and the last '}'. Returns None when no JSON object can be recovered.
    """
    if not raw or not raw.strip():
        return None

    cleaned = _FENCE.sub("", raw).strip()
    candidates = [cleaned]

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if 0 <= start < end:
        candidates.append(cleaned[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None
