"""Best-effort repair of near-valid JSON emitted by generation models.

Models occasionally wrap JSON in Markdown fences, add prose around it, leave
trailing commas or forget to quote keys. sanitize_json fixes exactly those
patterns and nothing else; it is not a parser. Text that already parses is
returned unchanged, which makes sanitize_json idempotent on valid JSON.
"""

import json
import re
from typing import Any

from src.utils.exceptions import GenerationError

FENCE_PATTERN = re.compile(r"^\s*```(?:json|JSON)?\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)
# Double-quoted JSON string literal, including escaped characters
STRING_LITERAL = re.compile(r'"(?:[^"\\]|\\.)*"', re.DOTALL)
TRAILING_COMMA = re.compile(r",(\s*[}\]])")
UNQUOTED_KEY = re.compile(r"([{,]\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*):")


def _loads_ok(text: str) -> bool:
    try:
        json.loads(text)
    except ValueError:
        return False
    return True


def strip_code_fences(text: str) -> str:
    match = FENCE_PATTERN.match(text)
    return match.group(1).strip() if match else text.strip()


def extract_json_object(text: str) -> str:
    """Cut leading/trailing prose down to the outermost {...} span, if there is one."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return text
    return text[start : end + 1]


def _repair_segment(segment: str) -> str:
    segment = TRAILING_COMMA.sub(r"\1", segment)
    return UNQUOTED_KEY.sub(r'\1"\2"\3:', segment)


def sanitize_json(text: str) -> str:
    """Return a repaired version of text that is more likely to parse as JSON.

    Steps, applied only while the text still fails to parse:
    1. strip Markdown code fences
    2. cut surrounding prose to the outermost object
    3. remove trailing commas and quote bare keys, outside string literals only

    Example:
        >>> sanitize_json('```json\\n{title: "Stew",}\\n```')
        '{"title": "Stew"}'
    """
    cleaned = strip_code_fences(text)
    if _loads_ok(cleaned):
        return cleaned

    cleaned = extract_json_object(cleaned)
    if _loads_ok(cleaned):
        return cleaned

    # Repair only between string literals so values like "a, }" stay untouched
    pieces = []
    last = 0
    for match in STRING_LITERAL.finditer(cleaned):
        pieces.append(_repair_segment(cleaned[last : match.start()]))
        pieces.append(match.group(0))
        last = match.end()
    pieces.append(_repair_segment(cleaned[last:]))
    return "".join(pieces)


def parse_json_object(text: str) -> dict[str, Any]:
    """Sanitize and parse model output into a dict.

    Raises:
        GenerationError: If the text is empty, still invalid after repair, or not an object.
    """
    if not text or not text.strip():
        raise GenerationError("Model returned an empty response")

    repaired = sanitize_json(text)
    try:
        parsed = json.loads(repaired)
    except ValueError as e:
        raise GenerationError(f"Model response is not valid JSON after repair: {e}", cause=e) from e

    if not isinstance(parsed, dict):
        raise GenerationError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
