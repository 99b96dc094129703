"""
Anthropic provider: Claude Messages API with a single forced tool.

The structured result is the `input` of the first `tool_use` content block,
which the SDK has already decoded into a dict.
"""

from __future__ import annotations

import logging
from typing import Optional

import anthropic

from malware_analyst.analyst.prompt_builder import build_extraction_prompt
from malware_analyst.analyst.providers.base import BaseProvider
from malware_analyst.analyst.response_parser import parse_analysis_payload
from malware_analyst.analyst.system_prompt import (
    ANALYSIS_SCHEMA,
    EXTRACT_FUNCTION_DESCRIPTION,
    EXTRACT_FUNCTION_NAME,
    EXTRACTION_SYSTEM_PROMPT,
    RULE_SYSTEM_PROMPT,
)
from malware_analyst.exceptions import SchemaViolation, UpstreamError
from malware_analyst.models.enums import ProviderKind
from malware_analyst.models.schemas import AnalysisResult, ProviderCredentials

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseProvider):
    kind = ProviderKind.ANTHROPIC
    display_name = "Claude"
    author_tag = "Claude AI Analyst"

    @property
    def default_model(self) -> str:
        return self.settings.anthropic_model

    def _client(self, credentials: ProviderCredentials) -> anthropic.Anthropic:
        return anthropic.Anthropic(
            api_key=credentials.api_key,
            timeout=self.settings.request_timeout,
            max_retries=0,
        )

    def _extract(self, report_text: str, credentials: ProviderCredentials, model: str) -> AnalysisResult:
        response = self._client(credentials).messages.create(
            model=model,
            max_tokens=self.settings.max_output_tokens,
            system=EXTRACTION_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": build_extraction_prompt(report_text)}],
            tools=[{
                "name": EXTRACT_FUNCTION_NAME,
                "description": EXTRACT_FUNCTION_DESCRIPTION,
                "input_schema": ANALYSIS_SCHEMA,
            }],
            tool_choice={"type": "tool", "name": EXTRACT_FUNCTION_NAME},
        )

        for block in response.content or []:
            if getattr(block, "type", None) == "tool_use" and block.name == EXTRACT_FUNCTION_NAME:
                return parse_analysis_payload(block.input, provider=self.display_name)

        raise SchemaViolation(f"{self.display_name} did not call '{EXTRACT_FUNCTION_NAME}' as expected.")

    def _complete_text(self, prompt: str, credentials: ProviderCredentials, model: str) -> Optional[str]:
        response = self._client(credentials).messages.create(
            model=model,
            max_tokens=self.settings.max_output_tokens,
            system=RULE_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.settings.rule_temperature,
        )
        chunks = [
            block.text
            for block in response.content or []
            if getattr(block, "type", None) == "text" and block.text
        ]
        return "\n".join(chunks) or None

    def _upstream_error(self, exc: Exception) -> UpstreamError:
        if isinstance(exc, anthropic.APIStatusError):
            return UpstreamError(self.display_name, exc.status_code, exc.message)
        if isinstance(exc, anthropic.APIConnectionError):
            return UpstreamError(self.display_name, None, f"{type(exc).__name__}: {exc}")
        return super()._upstream_error(exc)
