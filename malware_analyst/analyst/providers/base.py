"""
Base provider: abstract class all AI provider adapters inherit from.

Provides:
- Credential checks before any network call (MissingCredential / MissingEndpoint)
- Timing and logging around both operations
- Translation of SDK / transport exceptions into UpstreamError
- Rule-text cleanup and the EmptyCompletion check

To add a new provider:
1. Inherit from BaseProvider
2. Set `kind`, `display_name`, `author_tag` (and `requires_base_url` if needed)
3. Implement `default_model`, `_extract()` and `_complete_text()`
4. Register the class in registry.py
"""

from __future__ import annotations

import abc
import logging
import time
from typing import Optional

from malware_analyst.analyst.prompt_builder import build_rule_prompt, strip_code_fence
from malware_analyst.config import Settings, get_settings
from malware_analyst.exceptions import (
    AnalystError,
    EmptyCompletion,
    MissingCredential,
    MissingEndpoint,
    UpstreamError,
)
from malware_analyst.models.enums import ProviderKind
from malware_analyst.models.schemas import AnalysisResult, ProviderCredentials

logger = logging.getLogger(__name__)


class BaseProvider(abc.ABC):

    kind: ProviderKind
    display_name: str = "AI provider"
    author_tag: str = "AI Analyst"
    requires_base_url: bool = False

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    @abc.abstractmethod
    def default_model(self) -> str:
        ...

    @abc.abstractmethod
    def _extract(self, report_text: str, credentials: ProviderCredentials, model: str) -> AnalysisResult:
        """Send the structured-extraction request and parse the provider's envelope."""
        ...

    @abc.abstractmethod
    def _complete_text(self, prompt: str, credentials: ProviderCredentials, model: str) -> Optional[str]:
        """Plain text completion used for rule synthesis. Return None when there is no text."""
        ...

    # ── Public contract ──────────────────────────────────────────────────────

    def extract(self, report_text: str, credentials: ProviderCredentials) -> AnalysisResult:
        """
        Extract a structured AnalysisResult from a behavior report.

        The report is sent as-is, even when empty.

        Raises:
            MissingCredential / MissingEndpoint: before any network call
            UpstreamError: transport fault or non-2xx response
            SchemaViolation: no structured payload, or one not matching the schema
        """
        self.check_credentials(credentials)
        model = self._model(credentials)
        logger.info(
            f"[{self.kind.value}] Extracting analysis "
            f"(model={model}, report_chars={len(report_text or '')})"
        )

        start = time.monotonic()
        result = self._guarded(self._extract, report_text or "", credentials, model)
        logger.info(
            f"[{self.kind.value}] Analysis extracted in {int((time.monotonic() - start) * 1000)}ms: "
            f"family={result.malware_family_guess!r}, "
            f"techniques={len(result.mitre_attack_techniques)}"
        )
        return result

    def synthesize_rule(self, result: AnalysisResult, credentials: ProviderCredentials) -> str:
        """
        Ask the model for a YARA rule derived from an analysis result.

        Raises:
            MissingCredential / MissingEndpoint: before any network call
            UpstreamError: transport fault or non-2xx response
            EmptyCompletion: the provider returned no text
        """
        self.check_credentials(credentials)
        model = self._model(credentials)
        prompt = build_rule_prompt(result, self.author_tag)
        logger.info(f"[{self.kind.value}] Generating YARA rule (model={model})")

        raw_text = self._guarded(self._complete_text, prompt, credentials, model)
        rule = strip_code_fence(raw_text or "")
        if not rule:
            raise EmptyCompletion(f"{self.display_name} returned no rule text.")
        return rule

    def check_credentials(self, credentials: ProviderCredentials) -> None:
        if not credentials.api_key:
            raise MissingCredential(f"{self.display_name} API key was not provided.")
        if self.requires_base_url and not credentials.base_url:
            raise MissingEndpoint(f"{self.display_name} API URL was not provided.")

    # ── Internals ────────────────────────────────────────────────────────────

    def _model(self, credentials: ProviderCredentials) -> str:
        return credentials.model or self.default_model

    def _guarded(self, func, *args):
        try:
            return func(*args)
        except AnalystError:
            raise
        except Exception as e:
            logger.error(f"[{self.kind.value}] Upstream call failed: {type(e).__name__}: {e}")
            raise self._upstream_error(e) from e

    def _upstream_error(self, exc: Exception) -> UpstreamError:
        """Map a library exception to UpstreamError. Subclasses refine status/message."""
        status = getattr(exc, "status_code", None)
        return UpstreamError(self.display_name, status, f"{type(exc).__name__}: {exc}")
