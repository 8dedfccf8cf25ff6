"""
Translation utility functions for batching and JSON extraction.
Provides capabilities for slicing string records into backend batches and for
reading id -> text objects out of free-form model responses.
"""

import json
import math
from typing import Dict, Iterable, Optional

from sims4_translator.ai.exceptions import TranslationFormatError

_decoder = json.JSONDecoder()


def count_batches(total_items: int, batch_size: int) -> int:
    """Number of batches needed for ``total_items`` records."""
    if batch_size <= 0:
        raise ValueError("batch_size must be a positive integer")
    return math.ceil(total_items / batch_size) if total_items else 0


def batch_bounds(batch_index: int, total_items: int, batch_size: int) -> tuple:
    """
    Record positions ``[start, end)`` covered by batch ``batch_index`` (0-based).

    Example:
        >>> batch_bounds(2, 11, 5)
        (10, 11)
    """
    start = batch_index * batch_size
    return start, min(start + batch_size, total_items)


def build_source_payload(records: Iterable) -> Dict[str, str]:
    """Batch payload sent to the backend: record id -> source text."""
    return {record.id: record.source for record in records}


def build_source_json(records: Iterable) -> str:
    """Pretty source JSON for the manual copy/paste workflow."""
    return json.dumps(build_source_payload(records), ensure_ascii=False, indent=2)


def find_json_object(text: str) -> Optional[Dict]:
    """
    First JSON object embedded in mixed text.

    Every ``{`` is tried in order, so stray braces and quotes in the
    surrounding prose never hide an object that follows them.

    Example:
        >>> find_json_object('Tokens like {0.SimFirstName stay. {"A": "x"}')
        {'A': 'x'}
    """
    if not text:
        return None

    position = text.find('{')
    while position >= 0:
        try:
            result, _ = _decoder.raw_decode(text, position)
        except json.JSONDecodeError:
            result = None
        if isinstance(result, dict):
            return result
        position = text.find('{', position + 1)
    return None


def _strip_code_fence(text: str) -> Optional[str]:
    """Return the body of a ```json ... ``` block, if the text contains one."""
    fence_start = text.find('```')
    if fence_start < 0:
        return None
    body_start = text.find('\n', fence_start)
    if body_start < 0:
        return None
    fence_end = text.find('```', body_start)
    if fence_end < 0:
        return None
    return text[body_start + 1:fence_end].strip()


def safe_parse_json_object(text: str) -> Optional[Dict]:
    """
    Safely parse JSON object from potentially malformed text.

    Tries multiple strategies:
    1. Direct parse
    2. Body of a markdown code block
    3. First object that decodes from any `{` in the text

    Args:
        text: Text to parse

    Returns:
        Parsed dict or None on failure
    """
    if not text:
        return None

    text = text.strip()

    # Strategy 1: Direct parse
    try:
        result = json.loads(text)
        if isinstance(result, dict):
            return result
    except json.JSONDecodeError:
        pass

    # Strategy 2: Markdown code block
    fenced = _strip_code_fence(text)
    if fenced:
        try:
            result = json.loads(fenced)
            if isinstance(result, dict):
                return result
        except json.JSONDecodeError:
            pass

    # Strategy 3: First object decodable from any opening brace
    return find_json_object(text)


def extract_translation_map(text: str) -> Dict[str, str]:
    """
    Read an id -> translated text mapping out of a backend response.

    Raises:
        TranslationFormatError: no JSON object found, or a value is not a string.
    """
    result = safe_parse_json_object(text)
    if result is None:
        preview = (text or "")[:200]
        raise TranslationFormatError(
            "No JSON object found in response",
            details={"response_preview": preview},
        )

    invalid = [key for key, value in result.items() if not isinstance(value, str)]
    if invalid:
        raise TranslationFormatError(
            f"Response values must be strings (invalid keys: {', '.join(invalid[:5])})",
            details={"invalid_keys": invalid},
        )
    return result
