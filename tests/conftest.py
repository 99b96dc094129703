"""
Test fixtures: shared across all test files.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from malware_analyst.config import Settings
from malware_analyst.models.schemas import AnalysisResult, ProviderCredentials


FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def vt_file_report():
    """Raw VirusTotal v3 file report."""
    with open(FIXTURES_DIR / "vt_file_report.json") as f:
        return json.load(f)


@pytest.fixture
def analysis_payload():
    """Well-formed structured payload, as a provider would return it (decoded)."""
    with open(FIXTURES_DIR / "analysis_result.json") as f:
        return json.load(f)


@pytest.fixture
def analysis_json(analysis_payload):
    return json.dumps(analysis_payload)


@pytest.fixture
def analysis_result(analysis_payload):
    return AnalysisResult.model_validate(analysis_payload)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        virustotal_base_url="https://vt.test/api/v3",
        dashscope_url="https://dashscope.test/generation",
        request_timeout=5,
    )


@pytest.fixture
def credentials():
    return ProviderCredentials(api_key="test-key")
