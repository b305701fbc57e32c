"""Best-effort recovery of JSON arrays from LLM responses.

Responses are often wrapped in markdown fences, prefixed with prose, or cut
off mid-object when the completion hits its token limit. Each strategy is
tried in turn until one yields items.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_OBJECT = re.compile(r"\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}")


def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", text).strip()


def _as_list(value: Any) -> list[dict] | None:
    if isinstance(value, list):
        return [v for v in value if isinstance(v, dict)]
    if isinstance(value, dict):
        # {"items": [...]} envelopes
        for key in ("items", "data", "results"):
            if isinstance(value.get(key), list):
                return [v for v in value[key] if isinstance(v, dict)]
    return None


def _try_load(text: str) -> list[dict] | None:
    try:
        return _as_list(json.loads(text))
    except json.JSONDecodeError:
        return None


def _bracketed(text: str) -> str | None:
    start, end = text.find("["), text.rfind("]")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def _truncated(text: str) -> str | None:
    """Cut at the last complete object and re-close the array."""
    start = text.find("[")
    if start == -1:
        return None
    body = text[start:]
    cut = body.rfind("},")
    if cut == -1:
        cut = body.rfind("}")
    if cut == -1:
        return None
    return body[: cut + 1] + "]"


def _objects(text: str) -> list[dict]:
    recovered: list[dict] = []
    for match in _OBJECT.finditer(text):
        try:
            obj = json.loads(match.group(0))
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            recovered.append(obj)
    return recovered


def parse_json_array(text: str | None, required_key: str | None = None) -> list[dict]:
    """Recover a list of objects from a possibly malformed JSON response.

    Strategies, in order: direct parse; substring between the first "[" and
    the last "]"; truncate at the last complete object and re-close the
    array; regex extraction of individual objects.

    Args:
        text: Raw model output
        required_key: Keep only objects carrying this key (e.g. "item_description")

    Returns:
        Recovered objects (possibly empty); never raises on bad input
    """
    if not text:
        return []
    cleaned = strip_code_fences(text)

    def usable(items: list[dict] | None) -> list[dict]:
        if not items:
            return []
        if required_key:
            items = [i for i in items if i.get(required_key)]
        return items

    attempts = (
        ("direct", lambda: _try_load(cleaned)),
        ("bracketed", lambda: _try_load(_bracketed(cleaned) or "")),
        ("truncated", lambda: _try_load(_truncated(cleaned) or "")),
        ("objects", lambda: _objects(cleaned)),
    )
    for name, attempt in attempts:
        items = usable(attempt())
        if items:
            if name != "direct":
                logger.info(f"Recovered {len(items)} objects from malformed JSON ({name})")
            return items

    logger.warning("No usable objects found in model response")
    return []
