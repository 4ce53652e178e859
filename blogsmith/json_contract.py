"""
Extract and validate a JSON object from free-form model output.

Models wrap JSON in prose, code fences, or raw control characters. The repair
is deliberately simple: drop control characters and fences, then parse the
span from the first "{" to the last "}". No bracket balancing is attempted, so
text with several unrelated objects is sliced over-wide and parses only if the
combined span happens to be valid JSON.
"""
import json
import unicodedata
from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import MalformedResponse

T = TypeVar("T", bound=BaseModel)

_FENCES = ("```json", "```JSON", "```")


def strip_control_characters(text: str) -> str:
    """Remove every character in Unicode category Cc (includes \\n and \\t)."""
    return "".join(ch for ch in text if unicodedata.category(ch) != "Cc")


def strip_code_fences(text: str) -> str:
    for fence in _FENCES:
        text = text.replace(fence, "")
    return text


def extract_json(text: str) -> Dict[str, Any]:
    """
    Return the JSON object embedded in `text`.

    Raises:
        MalformedResponse: no object span found, or the span is not valid JSON
    """
    if not text:
        raise MalformedResponse("no JSON object found")

    cleaned = strip_code_fences(strip_control_characters(text))

    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise MalformedResponse("no JSON object found")

    candidate = cleaned[start:end + 1]
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"invalid JSON: {e}") from e

    if not isinstance(parsed, dict):
        raise MalformedResponse(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


def parse_contract(text: str, model: Type[T]) -> T:
    """
    Extract JSON from `text` and validate it against `model`.

    Raises:
        MalformedResponse: extraction failed or the object violates the schema
    """
    payload = extract_json(text)
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponse(f"{model.__name__} validation failed: {e}") from e
