"""
JSON extraction from LLM text.

Model output often wraps JSON in prose or markdown fences. These helpers
locate balanced JSON candidates while respecting string literals.
"""

import json
import re
from typing import Any, Iterator, List, Optional

from ..core.errors import ParseFailureError

_FENCE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)```", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Return the body of the first fenced block, or the text unchanged."""
    if not text:
        return ""
    match = _FENCE.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def iter_balanced_json(text: str) -> Iterator[str]:
    """Yield balanced ``{...}`` / ``[...]`` substrings in order of appearance.

    Quotes only open a string inside a candidate, so apostrophes in the
    surrounding prose do not confuse the scan. A mismatched closing bracket
    abandons the current candidate.
    """
    if not text:
        return

    in_string = False
    escape = False
    stack: List[str] = []
    start_idx: Optional[int] = None

    for i, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"' and stack:
            in_string = True
            continue

        if ch in "{[":
            if not stack:
                start_idx = i
            stack.append(ch)
            continue

        if ch in "}]":
            if not stack:
                continue
            open_ch = stack[-1]
            if (open_ch == "{" and ch == "}") or (open_ch == "[" and ch == "]"):
                stack.pop()
                if not stack and start_idx is not None:
                    yield text[start_idx:i + 1]
                    start_idx = None
            else:
                stack.clear()
                start_idx = None


def find_balanced_json(text: str) -> Optional[str]:
    """First balanced JSON candidate in text, or None."""
    return next(iter_balanced_json(text), None)


def _is_structured(value: Any) -> bool:
    if isinstance(value, dict):
        return True
    return isinstance(value, list) and any(isinstance(item, (dict, str)) for item in value)


def extract_json(text: str) -> Any:
    """Decode the first balanced JSON value holding objects or strings.

    Args:
        text: Raw model output

    Returns:
        Decoded dict or list

    Raises:
        ParseFailureError: If no candidate decodes to structured data
    """
    body = strip_code_fence(text)
    for candidate in iter_balanced_json(body):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if _is_structured(value):
            return value
    raise ParseFailureError("no JSON array or object found in response")


def unwrap_items(value: Any, list_keys: tuple) -> List[Any]:
    """Turn a decoded JSON value into a list of items.

    An object holding a list under one of ``list_keys`` yields that list;
    any other object is a single item.
    """
    if isinstance(value, list):
        return value
    if isinstance(value, dict):
        for key in list_keys:
            nested = value.get(key)
            if isinstance(nested, list):
                return nested
        return [value]
    raise ParseFailureError(f"unexpected JSON value of type {type(value).__name__}")
