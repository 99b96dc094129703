"""
Gemini provider: schema-constrained generation via the google-genai SDK.

The analysis schema is passed as `response_json_schema` with a JSON mime type,
so the model's text is the structured payload itself (no tool call involved).
"""

from __future__ import annotations

import logging
from typing import Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from malware_analyst.analyst.prompt_builder import build_extraction_prompt
from malware_analyst.analyst.providers.base import BaseProvider
from malware_analyst.analyst.response_parser import parse_analysis_payload
from malware_analyst.analyst.system_prompt import ANALYSIS_SCHEMA
from malware_analyst.exceptions import UpstreamError
from malware_analyst.models.enums import ProviderKind
from malware_analyst.models.schemas import AnalysisResult, ProviderCredentials

logger = logging.getLogger(__name__)


class GeminiProvider(BaseProvider):
    kind = ProviderKind.GEMINI
    display_name = "Gemini"
    author_tag = "Gemini AI Analyst"

    @property
    def default_model(self) -> str:
        return self.settings.gemini_model

    def _client(self, credentials: ProviderCredentials) -> genai.Client:
        return genai.Client(
            api_key=credentials.api_key,
            http_options=types.HttpOptions(timeout=int(self.settings.request_timeout * 1000)),
        )

    def _extract(self, report_text: str, credentials: ProviderCredentials, model: str) -> AnalysisResult:
        response = self._client(credentials).models.generate_content(
            model=model,
            contents=build_extraction_prompt(report_text, tool_calling=False),
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
                response_json_schema=ANALYSIS_SCHEMA,
            ),
        )
        text = (response.text or "").strip()
        return parse_analysis_payload(text, provider=self.display_name)

    def _complete_text(self, prompt: str, credentials: ProviderCredentials, model: str) -> Optional[str]:
        response = self._client(credentials).models.generate_content(
            model=model,
            contents=prompt,
            config=types.GenerateContentConfig(temperature=self.settings.rule_temperature),
        )
        return response.text

    def _upstream_error(self, exc: Exception) -> UpstreamError:
        if isinstance(exc, genai_errors.APIError):
            return UpstreamError(self.display_name, exc.code, exc.message or str(exc))
        return super()._upstream_error(exc)
