"""Turn raw model output into a validated Grouping.

Model text is untrusted: it may wrap the JSON in prose or a markdown fence,
stop mid-array under a token limit, or invent non-numeric ids. Recovery is
layered:

1. Keep only the contents of a ```json fenced block, if there is one.
2. Narrow to the span from the first ``{`` to the last ``}``.
3. Parse and validate strictly.
4. If (and only if) the JSON is syntactically broken, decode the
   ``"groups": [...]`` array element by element and keep every complete
   group before the break.

Anything that survives parsing but violates the schema is a hard
``MalformedResponse``; it is never downgraded to recovery.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from pydantic import ValidationError

from tidytabs.errors import MalformedResponse
from tidytabs.models.grouping import Group, Grouping

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_GROUPS_ARRAY_RE = re.compile(r'"groups"\s*:\s*\[')

_decoder = json.JSONDecoder()


# ---------------------------------------------------------------------------
# Text narrowing
# ---------------------------------------------------------------------------


def _strip_fence(text: str) -> str:
    m = _FENCE_RE.search(text)
    if m:
        return m.group(1).strip()
    return text


def _json_candidate(text: str) -> str:
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start : end + 1]
    return text


# ---------------------------------------------------------------------------
# Per-group validation
# ---------------------------------------------------------------------------


def _coerce_tab_id(value: Any) -> int | None:
    """Coerce one id to an int, or None if it is not a finite whole number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f) or f != int(f):
        return None
    return int(f)


def _group_from_raw(raw: Any) -> Group | None:
    """Build a Group from one decoded element.

    Raises ValueError when the element breaks the schema (label or tabIds
    missing/mistyped). Returns None when the element is well-formed but no
    usable tab ids remain.
    """
    if not isinstance(raw, dict):
        raise ValueError("Each group must be an object")
    label = raw.get("label")
    if not isinstance(label, str) or not label.strip():
        raise ValueError('Each group must have a non-empty "label" string')
    tab_ids = raw.get("tabIds")
    if not isinstance(tab_ids, list):
        raise ValueError('Each group must have a "tabIds" array')

    ids = [i for i in (_coerce_tab_id(v) for v in tab_ids) if i is not None]
    if not ids:
        return None
    try:
        return Group(label=label, tab_ids=ids)
    except ValidationError as e:
        raise ValueError(str(e)) from e


def _groups_from_document(doc: Any) -> list[Group]:
    if not isinstance(doc, dict) or not isinstance(doc.get("groups"), list):
        raise ValueError('Response missing "groups" array')
    groups = []
    for raw in doc["groups"]:
        group = _group_from_raw(raw)
        if group is not None:
            groups.append(group)
    return groups


# ---------------------------------------------------------------------------
# Partial recovery
# ---------------------------------------------------------------------------


def _decode_group_elements(text: str) -> list[Any]:
    """Decode complete elements of the "groups" array, stopping at the first break.

    Tolerates a dangling comma and a missing closing bracket, which is what
    a response cut off mid-array looks like.
    """
    m = _GROUPS_ARRAY_RE.search(text)
    if not m:
        return []

    elements: list[Any] = []
    pos = m.end()
    length = len(text)
    while True:
        while pos < length and (text[pos].isspace() or text[pos] == ","):
            pos += 1
        if pos >= length or text[pos] == "]":
            break
        try:
            element, pos = _decoder.raw_decode(text, pos)
        except (json.JSONDecodeError, RecursionError):
            break
        elements.append(element)
    return elements


def _recover_groups(text: str) -> list[Group]:
    groups = []
    for raw in _decode_group_elements(text):
        try:
            group = _group_from_raw(raw)
        except ValueError:
            continue
        if group is not None:
            groups.append(group)
    return groups


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def interpret(raw_text: str) -> Grouping:
    """Parse model output into a Grouping.

    Raises:
        MalformedResponse: no valid group could be recovered.
    """
    narrowed = _strip_fence((raw_text or "").strip())
    candidate = _json_candidate(narrowed)

    try:
        doc = json.loads(candidate)
    except (json.JSONDecodeError, RecursionError) as e:
        groups = _recover_groups(narrowed)
        if groups:
            logger.warning(
                "Parsed partial response due to truncation: recovered %d group(s) (%s)",
                len(groups),
                e,
            )
            return Grouping(groups=groups, recovered=True)
        raise MalformedResponse(f"Invalid JSON response: {e}", raw_text) from e

    try:
        groups = _groups_from_document(doc)
    except ValueError as e:
        raise MalformedResponse(str(e), raw_text) from e

    if not groups:
        raise MalformedResponse("Response contained no groups with valid tab ids", raw_text)
    return Grouping(groups=groups)
