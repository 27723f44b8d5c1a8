"""Robust JSON extraction from model responses using sliding brace-balancing."""

from __future__ import annotations

import json
import logging
import re

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


def extract_json(text: str) -> dict | list | None:
    """Try to extract the first valid JSON object or array from *text*.

    Strategy:
    1. ``json.loads`` on the full text (fast path).
    2. The body of the first markdown code fence, if any.
    3. Slide through the text looking for ``{`` or ``[`` and attempt
       brace-balanced extraction.
    4. Return ``None`` if nothing works.
    """
    if not text or not text.strip():
        return None

    stripped = text.strip()

    try:
        return json.loads(stripped)
    except ValueError:
        pass

    fenced = _FENCE_RE.search(stripped)
    if fenced:
        try:
            return json.loads(fenced.group(1).strip())
        except ValueError:
            stripped = fenced.group(1).strip() or stripped

    for i, ch in enumerate(stripped):
        if ch in "{[":
            result = _extract_balanced(stripped, i, ch, "}" if ch == "{" else "]")
            if result is not None:
                return result

    logger.debug("No JSON found in %d chars of model output", len(text))
    return None


def extract_json_object(text: str) -> dict | None:
    """Like :func:`extract_json` but only accepts a top-level object."""
    parsed = extract_json(text)
    return parsed if isinstance(parsed, dict) else None


def _extract_balanced(
    text: str, start: int, open_ch: str, close_ch: str
) -> dict | list | None:
    """Parse the brace-balanced substring starting at *start*."""
    depth = 0
    in_string = False
    escape = False

    for i in range(start, len(text)):
        ch = text[i]

        if escape:
            escape = False
            continue

        if ch == "\\":
            if in_string:
                escape = True
            continue

        if ch == '"':
            in_string = not in_string
            continue

        if in_string:
            continue

        if ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                try:
                    return json.loads(text[start : i + 1])
                except ValueError:
                    return None

    return None
