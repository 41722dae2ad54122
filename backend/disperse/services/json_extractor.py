"""Recover a JSON object from free-form model output."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\n?")


class MalformedModelOutput(Exception):
    pass


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def extract_json(text: str) -> dict[str, Any]:
    """Parse the object spanning the first ``{`` to the last ``}`` in *text*.

    Prose around the object and Markdown code fences are tolerated. Nothing
    about the parsed fields is validated here.
    """
    logger.debug("Raw model output: %s", text)

    cleaned = strip_code_fences(text)
    logger.debug("Model output without fences: %s", cleaned)

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or start >= end:
        logger.error("No JSON object in model output (start=%d end=%d): %.200s", start, end, cleaned)
        raise MalformedModelOutput("No JSON object found in model output")

    candidate = cleaned[start : end + 1]
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in model output (%d chars): %.200s", len(text), candidate)
        raise MalformedModelOutput(f"Failed to parse model JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise MalformedModelOutput("Model output JSON is not an object")
    return parsed
