# src/tasknest/ai/extract.py

"""
Pull a JSON payload out of free-form model text.

Models wrap JSON in prose or code fences. We take the first balanced
{...} or [...] fragment (brackets inside string literals are ignored) and
decode only that.
"""

from __future__ import annotations

import json
from typing import Any

from ..core.errors import EnrichmentMalformed

_CLOSERS = {"{": "}", "[": "]"}


def find_balanced(text: str, openers: str = "{[") -> str | None:
    """Return the first balanced fragment starting with one of `openers`, or None."""
    starts = [i for i in (text.find(o) for o in openers) if i != -1]
    if not starts:
        return None

    start = min(starts)
    stack: list[str] = []
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in "}]":
            if not stack or stack[-1] != ch:
                return None
            stack.pop()
            if not stack:
                return text[start : i + 1]

    return None


def extract_json(text: str, openers: str = "{[") -> Any:
    """Decode the first balanced fragment. Raises EnrichmentMalformed if there is none or it is not JSON."""
    fragment = find_balanced(text or "", openers)
    if fragment is None:
        raise EnrichmentMalformed("no JSON payload in model response")
    try:
        return json.loads(fragment)
    except ValueError as e:
        raise EnrichmentMalformed(f"model payload is not valid JSON: {e}") from e
