"""Helpers for reading structured data out of model replies."""

from __future__ import annotations

import json
import re
from typing import Any

_FENCED_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_json_reply(text: str) -> dict[str, Any]:
    """Extract a JSON object from a model reply.

    Tries, in order: the whole reply, a fenced ```json block, then the
    outermost ``{...}`` span.

    Raises:
        ValueError: If no JSON object can be recovered.
    """

    candidates = [text]
    fenced = _FENCED_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    obj = _OBJECT_RE.search(text)
    if obj:
        candidates.append(obj.group(0))

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise ValueError("Failed to parse JSON from LLM response")
