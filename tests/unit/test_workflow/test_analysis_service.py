from __future__ import annotations

import io

import pytest

from malware_analyst.exceptions import (
    EmptyCompletion,
    InvalidIdentifier,
    MissingCredential,
    NotFound,
    RemoteError,
    SchemaViolation,
)
from malware_analyst.models.enums import ProviderKind, WorkflowState
from malware_analyst.services.analysis_service import AnalysisService
from malware_analyst.utils.hashing import sha256_bytes
from malware_analyst.workflow.session import AnalysisSession

SAMPLE = b"MZ\x90\x00sample-bytes"


class _FakeVirusTotal:
    """Stands in for VirusTotalClient; `outcome` is a report dict or an exception."""

    outcome = None
    instances: list["_FakeVirusTotal"] = []

    def __init__(self, api_key, base_url=None, timeout=None):
        self.api_key = api_key
        self.base_url = base_url
        self.looked_up: list[str] = []
        _FakeVirusTotal.instances.append(self)

    def lookup(self, identifier):
        self.looked_up.append(identifier)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class _FakeProvider:
    def __init__(self, kind, result=None, rule="rule X {}", extract_error=None, rule_error=None):
        self.kind = kind
        self._result = result
        self._rule = rule
        self._extract_error = extract_error
        self._rule_error = rule_error
        self.reports: list[str] = []
        self.rule_calls = 0

    def extract(self, report_text, credentials):
        self.reports.append(report_text)
        if self._extract_error:
            raise self._extract_error
        return self._result

    def synthesize_rule(self, result, credentials):
        self.rule_calls += 1
        if self._rule_error:
            raise self._rule_error
        return self._rule


@pytest.fixture
def fake_vt(monkeypatch):
    _FakeVirusTotal.outcome = None
    _FakeVirusTotal.instances = []
    monkeypatch.setattr("malware_analyst.services.analysis_service.VirusTotalClient", _FakeVirusTotal)
    return _FakeVirusTotal


def _use_provider(monkeypatch, provider):
    monkeypatch.setattr(
        "malware_analyst.services.analysis_service.get_provider",
        lambda kind, settings=None: provider,
    )


def _ready_session() -> AnalysisSession:
    session = AnalysisSession()
    session.edit_report("Drops updater.dll and adds a Run key.")
    return session


class TestLoadSample:

    def test_file_is_hashed_and_report_normalized(self, settings, fake_vt, vt_file_report):
        fake_vt.outcome = vt_file_report
        session = AnalysisService(settings).load_from_file(
            AnalysisSession(), io.BytesIO(SAMPLE), "invoice.exe", "vt-key"
        )

        client = fake_vt.instances[0]
        assert client.api_key == "vt-key"
        assert client.base_url == "https://vt.test/api/v3"
        assert client.looked_up == [sha256_bytes(SAMPLE)]
        assert session.state == WorkflowState.REPORT_READY
        assert session.identifier == sha256_bytes(SAMPLE)
        assert session.file_name == "invoice.exe"
        assert session.report_text.startswith("[File Overview]")
        assert "File name: evasive_loader.exe" in session.report_text

    def test_hash_is_normalized_before_lookup(self, settings, fake_vt, vt_file_report):
        fake_vt.outcome = vt_file_report
        session = AnalysisService(settings).load_from_hash(
            AnalysisSession(), "  SHA256:46A18BCE8E2FF662B700C91D340A519376E712FE0AF0D335536E4F9FD253F10A ", "k"
        )
        assert session.identifier == "46a18bce8e2ff662b700c91d340a519376e712fe0af0d335536e4f9fd253f10a"

    def test_invalid_hash_leaves_session_untouched(self, settings, fake_vt):
        session = AnalysisSession()
        with pytest.raises(InvalidIdentifier):
            AnalysisService(settings).load_from_hash(session, "not-a-hash", "k")
        assert session.state == WorkflowState.EMPTY
        assert fake_vt.instances == []

    def test_not_found_keeps_identifier(self, settings, fake_vt):
        digest = sha256_bytes(SAMPLE)
        fake_vt.outcome = NotFound(digest)
        session = AnalysisSession()
        with pytest.raises(NotFound):
            AnalysisService(settings).load_from_file(session, io.BytesIO(SAMPLE), "invoice.exe", "k")

        assert session.state == WorkflowState.FAILED
        assert session.identifier == digest
        assert session.report_text == ""
        assert digest in session.error

    def test_missing_key_before_hashing(self, settings, fake_vt):
        session = AnalysisSession()
        fileobj = io.BytesIO(SAMPLE)
        with pytest.raises(MissingCredential):
            AnalysisService(settings).load_from_file(session, fileobj, "invoice.exe", "")
        assert fileobj.tell() == 0
        assert session.state == WorkflowState.EMPTY
        assert fake_vt.instances == []

    def test_missing_key_for_hash(self, settings, fake_vt):
        session = AnalysisSession()
        with pytest.raises(MissingCredential):
            AnalysisService(settings).load_from_hash(session, "d41d8cd98f00b204e9800998ecf8427e", "")
        assert session.identifier is None
        assert fake_vt.instances == []

    def test_remote_error_fails_session(self, settings, fake_vt):
        fake_vt.outcome = RemoteError(429, "Quota exceeded")
        session = AnalysisSession()
        with pytest.raises(RemoteError):
            AnalysisService(settings).load_from_hash(session, "d41d8cd98f00b204e9800998ecf8427e", "k")
        assert session.state == WorkflowState.FAILED
        assert "Quota exceeded" in session.error


class TestAnalyze:

    def test_result_and_rule(self, monkeypatch, settings, credentials, analysis_result):
        provider = _FakeProvider(ProviderKind.GEMINI, result=analysis_result, rule="rule Suspicious_Agent_Tesla {}")
        _use_provider(monkeypatch, provider)
        session = AnalysisService(settings).analyze(_ready_session(), ProviderKind.GEMINI, credentials)

        assert session.state == WorkflowState.RESULT_READY
        assert session.result == analysis_result
        assert session.rule_text == "rule Suspicious_Agent_Tesla {}"
        assert provider.reports == ["Drops updater.dll and adds a Run key."]

    def test_edited_report_is_what_gets_sent(self, monkeypatch, settings, credentials, analysis_result):
        provider = _FakeProvider(ProviderKind.GEMINI, result=analysis_result)
        _use_provider(monkeypatch, provider)
        session = _ready_session()
        session.edit_report("")
        AnalysisService(settings).analyze(session, ProviderKind.GEMINI, credentials)
        assert provider.reports == [""]

    def test_extraction_failure(self, monkeypatch, settings, credentials):
        provider = _FakeProvider(ProviderKind.DASHSCOPE, extract_error=SchemaViolation("no tool call"))
        _use_provider(monkeypatch, provider)
        session = _ready_session()
        with pytest.raises(SchemaViolation):
            AnalysisService(settings).analyze(session, ProviderKind.DASHSCOPE, credentials)

        assert session.state == WorkflowState.FAILED
        assert session.result is None
        assert session.error == "no tool call"
        assert provider.rule_calls == 0

    def test_rule_failure_keeps_result(self, monkeypatch, settings, credentials, analysis_result):
        provider = _FakeProvider(
            ProviderKind.GEMINI, result=analysis_result, rule_error=EmptyCompletion("Gemini returned no rule text.")
        )
        _use_provider(monkeypatch, provider)
        session = _ready_session()
        with pytest.raises(EmptyCompletion):
            AnalysisService(settings).analyze(session, ProviderKind.GEMINI, credentials)

        assert session.state == WorkflowState.FAILED
        assert session.result == analysis_result
        assert session.rule_text == ""

    def test_regenerate_rule(self, monkeypatch, settings, credentials, analysis_result):
        failing = _FakeProvider(ProviderKind.GEMINI, result=analysis_result, rule_error=EmptyCompletion("empty"))
        _use_provider(monkeypatch, failing)
        session = _ready_session()
        service = AnalysisService(settings)
        with pytest.raises(EmptyCompletion):
            service.analyze(session, ProviderKind.GEMINI, credentials)

        retry = _FakeProvider(ProviderKind.ANTHROPIC, rule="rule Y {}")
        _use_provider(monkeypatch, retry)
        service.regenerate_rule(session, ProviderKind.ANTHROPIC, credentials)

        assert session.state == WorkflowState.RESULT_READY
        assert session.rule_text == "rule Y {}"
        assert session.provider == ProviderKind.ANTHROPIC
        assert retry.reports == []


class TestOverlappingLookups:

    def test_superseded_lookup_is_discarded(self, monkeypatch, settings):
        first = "d41d8cd98f00b204e9800998ecf8427e"
        second = "46a18bce8e2ff662b700c91d340a519376e712fe0af0d335536e4f9fd253f10a"
        session = AnalysisSession()
        service = AnalysisService(settings)

        class _SlowVirusTotal(_FakeVirusTotal):
            def lookup(self, identifier):
                if identifier == first:
                    # A second lookup on the same session completes while this one is in flight.
                    service.load_from_hash(session, second, "k")
                return {"data": {"attributes": {"names": [f"{identifier[:6]}.exe"]}}}

        monkeypatch.setattr("malware_analyst.services.analysis_service.VirusTotalClient", _SlowVirusTotal)
        service.load_from_hash(session, first, "k")

        assert session.state == WorkflowState.REPORT_READY
        assert session.identifier == second
        assert "File name: 46a18b.exe" in session.report_text
        assert "d41d8c.exe" not in session.report_text

    def test_superseded_failure_is_not_recorded(self, monkeypatch, settings):
        session = AnalysisSession()
        service = AnalysisService(settings)

        class _FailingVirusTotal(_FakeVirusTotal):
            def lookup(self, identifier):
                session.edit_report("Typed by hand")
                raise RemoteError(503, "Service unavailable")

        monkeypatch.setattr("malware_analyst.services.analysis_service.VirusTotalClient", _FailingVirusTotal)
        with pytest.raises(RemoteError):
            service.load_from_hash(session, "d41d8cd98f00b204e9800998ecf8427e", "k")

        assert session.state == WorkflowState.REPORT_READY
        assert session.report_text == "Typed by hand"
        assert session.error is None
