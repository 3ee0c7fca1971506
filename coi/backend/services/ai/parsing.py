"""
Parsing of free-form model output into certificate records.

Model responses arrive as bare JSON, JSON inside a ```json fence, prose
around a single JSON object, or the literal sentinel ``null`` meaning the
document is not an ACORD 25 certificate.
"""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ...models import ExtractionResult
from ..exceptions import MalformedResponseError
from .validation import _clean_null_from_arrays

logger = logging.getLogger(__name__)

NULL_SENTINEL = "null"

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)


def is_null_sentinel(raw_text: str | None) -> bool:
    return raw_text is not None and raw_text.strip() == NULL_SENTINEL


def strip_code_fences(raw_text: str) -> str:
    """Remove leading ```json / ``` and trailing ``` markers."""
    text = raw_text.strip()
    text = re.sub(r"^```(?:json)?\s*", "", text, flags=re.IGNORECASE)
    text = re.sub(r"\s*```$", "", text)
    return text


def _first_balanced_object(text: str) -> str | None:
    """
    Return the first balanced ``{...}`` span, honouring JSON string literals
    so braces inside values do not end the object early.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
            elif char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        # Unbalanced from this brace; try the next opening brace
        start = text.find("{", start + 1)
    return None


def extract_json_span(raw_text: str) -> str:
    """Pick the JSON candidate out of a model response."""
    text = raw_text.strip()

    match = _FENCED_JSON.search(text)
    if match:
        return match.group(1).strip()

    span = _first_balanced_object(text)
    if span is not None:
        return span

    return text


def parse_response(raw_text: str | None) -> dict[str, Any] | None:
    """
    Parse a model response into a JSON object.

    Args:
        raw_text: Text returned by the provider.

    Returns:
        The parsed object, or None when the model answered with the null sentinel.

    Raises:
        MalformedResponseError: If the text is empty or not recoverable as a JSON object.
    """
    if raw_text is None or not raw_text.strip():
        raise MalformedResponseError("Empty response from model", raw_text=raw_text)

    if is_null_sentinel(raw_text):
        return None

    candidate = extract_json_span(raw_text)
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.error("Failed to parse model response: %s", raw_text[:500])
        raise MalformedResponseError(
            f"Invalid JSON in model response: {e}", raw_text=raw_text
        ) from e

    if parsed is None:
        # e.g. "```json\nnull\n```"
        return None

    if not isinstance(parsed, dict):
        raise MalformedResponseError(
            f"Expected a JSON object, got {type(parsed).__name__}", raw_text=raw_text
        )

    return parsed


def to_extraction_result(data: dict[str, Any] | None) -> ExtractionResult | None:
    """
    Validate a parsed object against the certificate schema.

    Raises:
        MalformedResponseError: If the object does not fit the schema.
    """
    if data is None:
        return None

    try:
        return ExtractionResult.model_validate(_clean_null_from_arrays(data))
    except PydanticValidationError as e:
        logger.error("Model response does not match certificate schema: %s", e)
        raise MalformedResponseError(
            f"Response does not match certificate schema: {e.error_count()} error(s)",
            raw_text=json.dumps(data)[:500],
        ) from e


def parse_certificate(raw_text: str | None) -> ExtractionResult | None:
    """Parse raw model text straight into an ExtractionResult (or None)."""
    return to_extraction_result(parse_response(raw_text))
