"""
Lenient JSON parsing for model output.

Local models do not always return tool-call arguments as a JSON object.
Some return the arguments as a string, occasionally wrapped in a
markdown fence or with a trailing comma. These helpers turn such values
into a dict before they reach the executor's schema validation.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_PATTERNS = (
    r"```json\s*([\s\S]*?)\s*```",
    r"```\s*([\s\S]*?)\s*```",
)


def extract_json_from_text(text: str) -> str:
    """
    Extract a JSON object from text that may contain markdown.

    Returns the fenced block or the outermost {...} span when found,
    otherwise the stripped input.
    """
    text = text.strip()

    for pattern in _FENCE_PATTERNS:
        match = re.search(pattern, text, re.IGNORECASE)
        if match:
            return match.group(1).strip()

    match = re.search(r"(\{[\s\S]*\})", text)
    if match:
        return match.group(1)

    return text


def clean_json_string(text: str) -> str:
    """Strip // and /* */ comments and trailing commas before } or ]."""
    text = re.sub(r"/\*[\s\S]*?\*/", "", text)
    text = re.sub(r"(?m)^\s*//[^\n]*", "", text)
    text = re.sub(r",\s*([\}\]])", r"\1", text)
    return text.strip()


def parse_json_safely(
    text: str,
    default: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Parse a JSON object with fallbacks.

    Tries in order:
    1. Direct JSON parsing
    2. Extract from markdown + parse
    3. Clean comments/trailing commas + parse
    4. Return default
    """
    if default is None:
        default = {}

    if not text or not text.strip():
        return default

    candidates = [text]
    extracted = extract_json_from_text(text)
    if extracted != text:
        candidates.append(extracted)
    candidates.append(clean_json_string(extracted))

    for candidate in candidates:
        try:
            result = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(result, dict):
            return result
        logger.debug(f"JSON parsed but not an object: {type(result).__name__}")

    logger.warning(f"Failed to parse JSON object: {text[:100]}...")
    return default


def parse_tool_arguments(raw: Any) -> dict[str, Any]:
    """
    Normalize the arguments of a model tool call into a dict.

    Objects pass through, strings are parsed leniently and anything else
    (None, numbers, lists) becomes an empty dict.
    """
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        return parse_json_safely(raw)
    if raw is not None:
        logger.warning(f"Unexpected tool arguments type: {type(raw).__name__}")
    return {}


__all__ = [
    "extract_json_from_text",
    "clean_json_string",
    "parse_json_safely",
    "parse_tool_arguments",
]
