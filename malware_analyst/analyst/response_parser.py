"""
Response Parser: turns a provider's structured payload into an AnalysisResult.

Providers hand over either a JSON string (function-call arguments, schema-
constrained text) or an already-decoded dict (Anthropic tool input). Either
way the payload must satisfy the full AnalysisResult model: there is no
partial result, a malformed payload is a SchemaViolation.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from malware_analyst.exceptions import SchemaViolation
from malware_analyst.models.schemas import AnalysisResult

logger = logging.getLogger(__name__)

_DECODER = json.JSONDecoder()


def parse_analysis_payload(payload: Any, provider: str = "model") -> AnalysisResult:
    """
    Validate a structured payload.

    Raises:
        SchemaViolation: payload missing, not JSON, or not matching the schema
    """
    if payload is None or payload == "":
        raise SchemaViolation(f"{provider} returned no structured analysis payload.")

    data = payload
    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.error(f"{provider} structured payload is not valid JSON: {e}")
            raise SchemaViolation(
                f"{provider} returned a structured payload that is not valid JSON: {e}"
            ) from e

    if not isinstance(data, dict):
        raise SchemaViolation(
            f"{provider} returned a {type(data).__name__} where a JSON object was expected."
        )

    try:
        return AnalysisResult.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        logger.error(f"{provider} payload failed schema validation: {fields}")
        raise SchemaViolation(
            f"{provider} response does not match the analysis schema (problem fields: {fields})."
        ) from e


def extract_json(text: str) -> dict | None:
    """
    First JSON object embedded in a plain-text completion.

    Used only by the opt-in text fallback for endpoints that ignore
    `tool_choice`. Every "{" is tried as a start position, so prose braces or
    a malformed block before the real payload are skipped.
    """
    text = text or ""
    start = text.find("{")
    while start != -1:
        try:
            value, _ = _DECODER.raw_decode(text, start)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    return None
