# src/llm/json_output.py — v1
"""Strict JSON extraction from model responses.

A fenced block (```json ... ```) is unwrapped; anything that does not then
parse as a JSON object raises BadModelOutput. There are no fallbacks.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterable

from manuscript_pipeline.core.errors import BadModelOutput

_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?```\s*$", re.DOTALL)


def strip_code_fence(content: str) -> str:
    """Remove one surrounding markdown code fence, if present."""
    text = content.strip()
    match = _FENCE.match(text)
    if match:
        return match.group(1).strip()
    return text


def parse_json_object(
    content: str,
    required_fields: Iterable[str] = (),
) -> dict[str, Any]:
    """Parse a model response into a JSON object.

    Raises:
        BadModelOutput: Not valid JSON, not an object, or missing a field.
    """
    text = strip_code_fence(content)
    if not text:
        raise BadModelOutput("model output was empty")
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise BadModelOutput(
            "model output was not valid JSON", detail=f"{exc.msg} at position {exc.pos}"
        ) from exc
    if not isinstance(parsed, dict):
        raise BadModelOutput("model output was not a JSON object")

    missing = [f for f in required_fields if f not in parsed]
    if missing:
        raise BadModelOutput(
            f"model output is missing required field(s): {', '.join(missing)}"
        )
    return parsed
