"""LLM response parser utility.

Turns the raw string an LLM returns into plain JSON data. Shape checking is
left to the caller (the insight normalizer validates every item itself).
Handles the common failure modes:
- JSON wrapped in markdown code blocks (```json ... ```)
- Commentary before or after the JSON array or object
"""

import json
import re
from typing import Any


class LLMParseError(Exception):
    """Raised when no JSON array or object can be recovered from a response.

    Includes the raw response so callers can log it for debugging without
    having to catch and re-wrap the original exception themselves.
    """

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.raw = raw


def extract_llm_json(response: str) -> Any:
    """Extract the JSON array or object from an LLM response string.

    Tries these strategies in order, stopping at the first that produces
    a JSON array or object:
        1. Strip markdown code fences and parse the remainder directly.
        2. Extract the outermost [...] block via regex.
        3. Extract the outermost {...} block via regex.
        4. Fail with LLMParseError including the raw response.

    Args:
        response: Raw string returned by LLMClient.complete().

    Returns:
        The decoded list or dict.

    Raises:
        LLMParseError: If no JSON array or object is found. The .raw
            attribute contains the original response.
    """
    cleaned = _strip_code_fences(response)

    data = _try_parse(cleaned)
    if data is None:
        data = _extract_block(cleaned, r"\[.*\]")
    if data is None:
        data = _extract_block(cleaned, r"\{.*\}")
    if data is None:
        raise LLMParseError("No JSON array or object found in LLM response", raw=response)
    return data


# ── Private helpers ────────────────────────────────────────────────────────────

def _strip_code_fences(text: str) -> str:
    """Remove ```json ... ``` or ``` ... ``` wrappers."""
    text = re.sub(r"```(?:json)?\s*", "", text)
    text = re.sub(r"```", "", text)
    return text.strip()


def _try_parse(text: str) -> list | dict | None:
    """Attempt a direct json.loads(); return None unless it yields a list or dict."""
    try:
        result = json.loads(text)
    except json.JSONDecodeError:
        return None
    return result if isinstance(result, (list, dict)) else None


def _extract_block(text: str, pattern: str) -> list | dict | None:
    """Find the first block matching pattern in text and parse it."""
    match = re.search(pattern, text, re.DOTALL)
    if not match:
        return None
    return _try_parse(match.group(0))
