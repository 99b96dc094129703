"""
DashScope provider: Qwen models over the DashScope text-generation REST API.

Request:  {model, input: {messages}, tools?}
Response: structured result at output.tool_calls[0], plain text at output.text.
When the service answers in "message" format the same data sits under
output.choices[0].message instead; both shapes are accepted.

DashScope reports errors in the body ({"code", "message"}), sometimes with a
200 status, so the body is checked as well as the status.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from malware_analyst.analyst.prompt_builder import build_extraction_prompt, extraction_tool
from malware_analyst.analyst.providers.base import BaseProvider
from malware_analyst.analyst.response_parser import parse_analysis_payload
from malware_analyst.analyst.system_prompt import EXTRACT_FUNCTION_NAME, RULE_SYSTEM_PROMPT
from malware_analyst.exceptions import SchemaViolation, UpstreamError
from malware_analyst.models.enums import ProviderKind
from malware_analyst.models.schemas import AnalysisResult, ProviderCredentials

logger = logging.getLogger(__name__)


class DashScopeProvider(BaseProvider):
    kind = ProviderKind.DASHSCOPE
    display_name = "DashScope"
    author_tag = "Qwen AI Analyst"

    @property
    def default_model(self) -> str:
        return self.settings.dashscope_model

    def _extract(self, report_text: str, credentials: ProviderCredentials, model: str) -> AnalysisResult:
        body = {
            "model": model,
            "input": {
                "messages": [
                    {"role": "system", "content": "You are a helpful assistant."},
                    {"role": "user", "content": build_extraction_prompt(report_text)},
                ]
            },
            "tools": [extraction_tool()],
        }
        output = self._call(credentials, body)

        tool_call = _first_tool_call(output)
        if not tool_call or tool_call.get("type") != "function":
            raise SchemaViolation(
                f"{self.display_name} model did not call '{EXTRACT_FUNCTION_NAME}' as expected."
            )
        function = tool_call.get("function") or {}
        return parse_analysis_payload(function.get("arguments"), provider=self.display_name)

    def _complete_text(self, prompt: str, credentials: ProviderCredentials, model: str) -> Optional[str]:
        body = {
            "model": model,
            "input": {
                "messages": [
                    {"role": "system", "content": RULE_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ]
            },
            "parameters": {"temperature": self.settings.rule_temperature},
        }
        output = self._call(credentials, body)
        if output.get("text"):
            return output["text"]
        return (_first_message(output) or {}).get("content")

    def _call(self, credentials: ProviderCredentials, body: dict) -> dict[str, Any]:
        """POST to DashScope and return the `output` object."""
        resp = requests.post(
            self.settings.dashscope_url,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {credentials.api_key}",
            },
            json=body,
            timeout=self.settings.request_timeout,
        )

        try:
            data = resp.json()
        except ValueError:
            data = None

        if not 200 <= resp.status_code < 300:
            message = _body_message(data) or (resp.text or resp.reason or "")[:200]
            raise UpstreamError(self.display_name, resp.status_code, message)
        if not isinstance(data, dict):
            raise UpstreamError(self.display_name, resp.status_code, "response body is not a JSON object")
        if data.get("code"):
            raise UpstreamError(
                self.display_name, resp.status_code, f"{data.get('message', '')} (code: {data['code']})"
            )

        output = data.get("output")
        return output if isinstance(output, dict) else {}


def _first_message(output: dict) -> Optional[dict]:
    choices = output.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message")
        return message if isinstance(message, dict) else None
    return None


def _first_tool_call(output: dict) -> Optional[dict]:
    tool_calls = output.get("tool_calls")
    if not tool_calls:
        tool_calls = (_first_message(output) or {}).get("tool_calls")
    if isinstance(tool_calls, list) and tool_calls and isinstance(tool_calls[0], dict):
        return tool_calls[0]
    return None


def _body_message(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    message = data.get("message") or ""
    if data.get("code"):
        message = f"{message} (code: {data['code']})"
    return message
