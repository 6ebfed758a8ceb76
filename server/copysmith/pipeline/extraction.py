# ─────────────────────────────────────────────────────────────────────────────
# Response Extractor — recover one JSON object from free-form model text
# ─────────────────────────────────────────────────────────────────────────────
# Order: strip fences → whole string → first balanced {...} that parses →
# greedy first-"{"-to-last-"}" → ExtractionError.
# ─────────────────────────────────────────────────────────────────────────────

import json
import re
from typing import Any

import structlog

from copysmith.exceptions import ExtractionError

logger = structlog.get_logger(__name__)

_FENCE = re.compile(r"```(?:json)?")
_GREEDY_OBJECT = re.compile(r"\{[\s\S]*\}")


def _parse_object(candidate: str) -> dict[str, Any] | None:
    """json.loads, but only a JSON object counts as success."""
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _first_balanced_object(text: str, start: int) -> dict[str, Any] | None:
    """Scan from ``start`` and try each span that closes back to depth zero.

    Braces inside JSON strings are counted too; a span cut short by one
    simply fails to parse and the scan carries on to the next closure.
    """
    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                parsed = _parse_object(text[start : i + 1])
                if parsed is not None:
                    return parsed
    return None


def extract_structured(text: str | None) -> dict[str, Any]:
    """Extract the first well-formed JSON object from model output.

    Raises:
        ExtractionError: If the text is empty or no object can be parsed.
    """
    if not text or not isinstance(text, str):
        raise ExtractionError("empty response")

    cleaned = _FENCE.sub("", text).strip()

    parsed = _parse_object(cleaned)
    if parsed is not None:
        return parsed

    start = cleaned.find("{")
    if start == -1:
        logger.debug("extraction_no_brace", chars=len(cleaned))
        raise ExtractionError()

    parsed = _first_balanced_object(cleaned, start)
    if parsed is not None:
        logger.debug("extraction_balanced_span")
        return parsed

    match = _GREEDY_OBJECT.search(cleaned)
    if match:
        parsed = _parse_object(match.group(0))
        if parsed is not None:
            logger.debug("extraction_greedy_span")
            return parsed

    raise ExtractionError()
