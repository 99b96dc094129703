"""
OpenAI-compatible provider: any endpoint that speaks the Chat Completions API.

The user supplies the base URL along with the key. Function calling is forced
with `tool_choice`; the structured result is the JSON-encoded string at
choices[0].message.tool_calls[0].function.arguments.

Endpoints that ignore `tool_choice` and answer in plain text are a
SchemaViolation unless OPENAI_COMPATIBLE_TEXT_FALLBACK is enabled, in which
case a JSON object embedded in the text is tried first.
"""

from __future__ import annotations

import logging
from typing import Optional

import openai
from openai import OpenAI

from malware_analyst.analyst.prompt_builder import build_extraction_prompt, extraction_tool
from malware_analyst.analyst.providers.base import BaseProvider
from malware_analyst.analyst.response_parser import extract_json, parse_analysis_payload
from malware_analyst.analyst.system_prompt import (
    EXTRACT_FUNCTION_NAME,
    EXTRACTION_SYSTEM_PROMPT,
    RULE_SYSTEM_PROMPT,
)
from malware_analyst.exceptions import SchemaViolation, UpstreamError
from malware_analyst.models.enums import ProviderKind
from malware_analyst.models.schemas import AnalysisResult, ProviderCredentials

logger = logging.getLogger(__name__)

_ENDPOINT_SUFFIX = "/chat/completions"


def sdk_base_url(url: str) -> str:
    """Accept either a base URL or the full .../chat/completions endpoint."""
    url = url.strip().rstrip("/")
    if url.endswith(_ENDPOINT_SUFFIX):
        url = url[: -len(_ENDPOINT_SUFFIX)]
    return url


class OpenAICompatibleProvider(BaseProvider):
    kind = ProviderKind.OPENAI_COMPATIBLE
    display_name = "Custom model"
    author_tag = "Custom AI Analyst"
    requires_base_url = True

    @property
    def default_model(self) -> str:
        return self.settings.openai_compatible_model

    def _client(self, credentials: ProviderCredentials) -> OpenAI:
        # max_retries=0: one outbound call per operation
        return OpenAI(
            api_key=credentials.api_key,
            base_url=sdk_base_url(credentials.base_url),
            timeout=self.settings.request_timeout,
            max_retries=0,
        )

    def _extract(self, report_text: str, credentials: ProviderCredentials, model: str) -> AnalysisResult:
        completion = self._client(credentials).chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
                {"role": "user", "content": build_extraction_prompt(report_text)},
            ],
            tools=[extraction_tool()],
            tool_choice={"type": "function", "function": {"name": EXTRACT_FUNCTION_NAME}},
        )
        message = completion.choices[0].message if completion.choices else None

        tool_calls = (message.tool_calls if message else None) or []
        if tool_calls and tool_calls[0].type == "function":
            return parse_analysis_payload(tool_calls[0].function.arguments, provider=self.display_name)

        content = (message.content if message else None) or ""
        if self.settings.openai_compatible_text_fallback and content:
            logger.warning(
                f"[{self.kind.value}] No tool call in response; trying JSON embedded in text content"
            )
            data = extract_json(content)
            if data is not None:
                return parse_analysis_payload(data, provider=self.display_name)

        raise SchemaViolation(
            f"{self.display_name} did not call '{EXTRACT_FUNCTION_NAME}' as expected. "
            "Check that the model supports function/tool calling."
        )

    def _complete_text(self, prompt: str, credentials: ProviderCredentials, model: str) -> Optional[str]:
        completion = self._client(credentials).chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": RULE_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.settings.rule_temperature,
        )
        if not completion.choices:
            return None
        return completion.choices[0].message.content

    def _upstream_error(self, exc: Exception) -> UpstreamError:
        if isinstance(exc, openai.APIStatusError):
            return UpstreamError(self.display_name, exc.status_code, exc.message)
        if isinstance(exc, openai.APIConnectionError):
            return UpstreamError(self.display_name, None, f"{type(exc).__name__}: {exc}")
        return super()._upstream_error(exc)
