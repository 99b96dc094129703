"""
Analysis Service: drives a session through lookup, normalization and analysis.

API endpoints call this service. This service calls the lookup client, the
report normalizer and the provider adapters, and records every outcome on
the session before re-raising, so the session always reflects the last
attempt.
"""

from __future__ import annotations

import logging
from typing import BinaryIO, Optional

from malware_analyst.analyst.providers import get_provider
from malware_analyst.analyst.report_normalizer import normalize_report
from malware_analyst.config import Settings, get_settings
from malware_analyst.exceptions import AnalystError, MissingCredential
from malware_analyst.lookup.virustotal import VirusTotalClient
from malware_analyst.models.enums import ProviderKind
from malware_analyst.models.schemas import ProviderCredentials
from malware_analyst.utils.hashing import normalize_hash, sha256_fileobj
from malware_analyst.workflow.session import AnalysisSession

logger = logging.getLogger(__name__)


def _require_vt_key(vt_api_key: str) -> None:
    # Refused before the sample is hashed or recorded.
    if not vt_api_key:
        raise MissingCredential("VirusTotal API key was not provided.")


class AnalysisService:

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    # ── Step 1: sample → report ──────────────────────────────────────────────

    def load_from_file(
        self,
        session: AnalysisSession,
        fileobj: BinaryIO,
        file_name: Optional[str],
        vt_api_key: str,
    ) -> AnalysisSession:
        """Hash an uploaded sample, then fetch and normalize its VirusTotal report."""
        _require_vt_key(vt_api_key)
        digest = sha256_fileobj(fileobj)
        logger.info(f"[session {session.id}] Sample {file_name or '<unnamed>'} hashed: {digest}")
        token = session.provide_sample(digest, file_name=file_name)
        return self._lookup(session, digest, token, vt_api_key)

    def load_from_hash(self, session: AnalysisSession, value: str, vt_api_key: str) -> AnalysisSession:
        """Fetch and normalize the VirusTotal report for a user-entered digest."""
        digest = normalize_hash(value)
        _require_vt_key(vt_api_key)
        token = session.provide_sample(digest)
        return self._lookup(session, digest, token, vt_api_key)

    def _lookup(
        self,
        session: AnalysisSession,
        digest: str,
        token: int,
        vt_api_key: str,
    ) -> AnalysisSession:
        """
        Runs outside the session lock. If the sample was replaced meanwhile,
        the outcome is dropped and the session keeps its newer state.
        """
        client = VirusTotalClient(
            vt_api_key,
            base_url=self.settings.virustotal_base,
            timeout=self.settings.request_timeout,
        )
        try:
            raw = client.lookup(digest)
        except AnalystError as e:
            session.lookup_failed(e.message, token=token)
            raise

        report = normalize_report(raw)
        if session.report_loaded(report, token=token):
            logger.info(f"[session {session.id}] Report ready ({len(report)} chars)")
        else:
            logger.info(f"[session {session.id}] Report for {digest} superseded by a newer sample")
        return session

    # ── Step 2: report → structured result + rule ────────────────────────────

    def analyze(
        self,
        session: AnalysisSession,
        provider_kind: ProviderKind,
        credentials: ProviderCredentials,
    ) -> AnalysisSession:
        """
        Extract a structured result from the session's report, then a YARA rule.

        A failure at either step leaves the session `failed` with the message;
        a result produced before a rule failure is kept.
        """
        provider = get_provider(provider_kind, self.settings)
        session.begin_analysis(provider.kind)
        try:
            result = provider.extract(session.report_text, credentials)
            session.result_ready(result)
            session.rule_ready(provider.synthesize_rule(result, credentials))
        except AnalystError as e:
            logger.warning(f"[session {session.id}] Analysis failed: {e.message}")
            session.analysis_failed(e.message)
            raise
        except Exception as e:
            session.analysis_failed(f"{type(e).__name__}: {e}")
            raise
        return session

    def regenerate_rule(
        self,
        session: AnalysisSession,
        provider_kind: ProviderKind,
        credentials: ProviderCredentials,
    ) -> AnalysisSession:
        """Synthesize a fresh rule for the stored result without re-running extraction."""
        provider = get_provider(provider_kind, self.settings)
        result = session.begin_rule_regeneration(provider.kind)
        try:
            session.rule_ready(provider.synthesize_rule(result, credentials))
        except AnalystError as e:
            logger.warning(f"[session {session.id}] Rule generation failed: {e.message}")
            session.analysis_failed(e.message)
            raise
        except Exception as e:
            session.analysis_failed(f"{type(e).__name__}: {e}")
            raise
        return session
