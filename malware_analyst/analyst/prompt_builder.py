"""
Prompt Builder: constructs provider-neutral prompts and the tool definition.

Handles the extraction request, the rule-synthesis request, and the cleanup
of the rule text a model sends back.
"""

from __future__ import annotations

import re

from malware_analyst.analyst.system_prompt import (
    ANALYSIS_SCHEMA,
    EXTRACT_FUNCTION_DESCRIPTION,
    EXTRACT_FUNCTION_NAME,
    EXTRACTION_INSTRUCTIONS,
    RULE_INSTRUCTIONS,
    SCHEMA_DIRECTIVE,
    TOOL_DIRECTIVE,
)
from malware_analyst.models.schemas import AnalysisResult

MIN_INDICATOR_LENGTH = 5
DEFAULT_RULE_LABEL = "Behavior"

_WHITESPACE_RE = re.compile(r"\s+")
_LEADING_FENCE_RE = re.compile(r"\A\s*```(?:[\w+-]*[ \t]*\n)?")
_TRAILING_FENCE_RE = re.compile(r"\n?[ \t]*```\s*\Z")


def build_extraction_prompt(report_text: str, tool_calling: bool = True) -> str:
    """
    Build the role-framed extraction request.

    Args:
        report_text: Behavior report (fetched or user-edited; may be empty)
        tool_calling: True when the provider is forced to call a function,
            False when it is schema-constrained instead
    """
    return EXTRACTION_INSTRUCTIONS.format(
        directive=TOOL_DIRECTIVE if tool_calling else SCHEMA_DIRECTIVE,
        report=report_text,
    )


def extraction_tool() -> dict:
    """OpenAI-style function tool definition, also accepted by DashScope."""
    return {
        "type": "function",
        "function": {
            "name": EXTRACT_FUNCTION_NAME,
            "description": EXTRACT_FUNCTION_DESCRIPTION,
            "parameters": ANALYSIS_SCHEMA,
        },
    }


def key_indicators(result: AnalysisResult) -> list[str]:
    """
    File, registry and domain IOCs worth matching on.

    Keeps strings longer than MIN_INDICATOR_LENGTH, first occurrence wins.
    """
    iocs = result.indicators_of_compromise
    seen: set[str] = set()
    indicators: list[str] = []
    for value in [*iocs.files, *iocs.registry_keys, *iocs.domains]:
        if value and len(value) > MIN_INDICATOR_LENGTH and value not in seen:
            seen.add(value)
            indicators.append(value)
    return indicators


def rule_name(malware_family_guess: str) -> str:
    """Suspicious_<family> with whitespace runs replaced by underscores."""
    label = _WHITESPACE_RE.sub("_", (malware_family_guess or "").strip())
    return f"Suspicious_{label or DEFAULT_RULE_LABEL}"


def build_rule_prompt(result: AnalysisResult, author: str) -> str:
    indicators = key_indicators(result)
    return RULE_INSTRUCTIONS.format(
        rule_name=rule_name(result.malware_family_guess),
        author=author,
        summary=result.summary,
        indicators="\n".join(f"- {s}" for s in indicators) or "- (none)",
    )


def strip_code_fence(text: str) -> str:
    """
    Remove a ``` wrapper (optionally language-tagged) from both ends and trim.

    "```yara\\nrule X {}\\n```" -> "rule X {}"
    """
    cleaned = _LEADING_FENCE_RE.sub("", text or "", count=1)
    cleaned = _TRAILING_FENCE_RE.sub("", cleaned, count=1)
    return cleaned.strip()
