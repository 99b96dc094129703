"""Tests for the VirusTotal report normalizer."""

import copy
import json

import pytest

from malware_analyst.analyst.report_normalizer import (
    MAX_ACTIVITY_LINES,
    NO_ATTRIBUTES_MESSAGE,
    SECTION_HEADERS,
    normalize_report,
)


def _section(report: str, header: str) -> list[str]:
    """Lines under a header, up to the blank line that ends the section."""
    lines = report.split("\n")
    start = lines.index(header) + 1
    body = []
    for line in lines[start:]:
        if not line:
            break
        body.append(line)
    return body


class TestFullReport:

    def test_sections_in_stable_order(self, vt_file_report):
        report = normalize_report(vt_file_report)
        positions = [report.index(h) for h in SECTION_HEADERS]
        assert positions == sorted(positions)

    def test_overview(self, vt_file_report):
        overview = _section(normalize_report(vt_file_report), "[File Overview]")
        assert "File name: evasive_loader.exe" in overview
        assert "File type: Win32 EXE" in overview
        assert "Size: 245760 bytes" in overview
        assert any(line.startswith("SHA256: 46a18bce") for line in overview)

    def test_detection_summary(self, vt_file_report):
        summary = _section(normalize_report(vt_file_report), "[Detection Summary]")
        assert summary[0] == "Malicious: 48, Suspicious: 2, Harmless: 0, Undetected: 21"
        assert "Suggested threat label: trojan.agenttesla/msil" in summary

    def test_detection_names_distinct_and_capped(self, vt_file_report):
        names = _section(normalize_report(vt_file_report), "[Detection Names]")
        assert len(names) == 5
        verdicts = [line.split(": ", 1)[1] for line in names]
        assert len(set(verdicts)) == 5
        assert verdicts[0] == "Win32:AgentTesla-B [Trj]"
        assert "- ClamAV" not in "\n".join(names)

    def test_sandbox_verdicts(self, vt_file_report):
        sandbox = _section(normalize_report(vt_file_report), "[Sandbox Verdicts]")
        assert "- Zenbox: malicious (MALWARE, TROJAN, EVADER)" in sandbox
        assert "- C2AE: undetected (no classification)" in sandbox

    def test_behavior_activity_deduplicated(self, vt_file_report):
        sandbox = _section(normalize_report(vt_file_report), "[Sandbox Verdicts]")
        activity = [line for line in sandbox if not line.startswith(("- Zenbox", "- C2AE"))]
        assert activity == [
            "- Writes file: C:\\Users\\Admin\\AppData\\Local\\Temp\\updater.dll",
            "- Writes file: C:\\ProgramData\\SystemCache\\config.dat",
            "- Drops file: updater.dll (SHA256: 9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08)",
            "- Sets registry key: HKCU\\Software\\Microsoft\\Windows\\CurrentVersion\\Run\\SystemUpdater",
            "- Connects to IP: 198.51.100.10 port 443 (TCP)",
            "- Connects to IP: 203.0.113.7 port 8080 (unknown)",
        ]

    def test_activity_without_verdicts_replaces_placeholder(self):
        raw = {"data": {"attributes": {"crowdsourced_ids_results": [
            {"registry_keys_set": ["HKLM\\Software\\Evil"]},
            None,
            {"attributes": {"files_dropped": "junk", "network_communications": [{"destination_port": 80}]}},
        ]}}}
        sandbox = _section(normalize_report(raw), "[Sandbox Verdicts]")
        assert sandbox == ["- Sets registry key: HKLM\\Software\\Evil"]

    def test_activity_capped_per_kind(self):
        written = [f"C:\\Temp\\file{i}.tmp" for i in range(25)]
        raw = {"data": {"attributes": {"crowdsourced_ids_results": [{"attributes": {"files_written": written}}]}}}
        sandbox = _section(normalize_report(raw), "[Sandbox Verdicts]")
        assert len(sandbox) == MAX_ACTIVITY_LINES
        assert sandbox[0] == "- Writes file: C:\\Temp\\file0.tmp"

    def test_imports_distinct_and_capped(self, vt_file_report):
        imports = _section(normalize_report(vt_file_report), "[Imported Libraries]")
        libraries = [line for line in imports if line.startswith("- ")]
        assert libraries == [
            "- KERNEL32.dll",
            "- ws2_32.dll",
            "- ADVAPI32.dll",
            "- USER32.dll",
            "- WININET.dll",
        ]
        assert "  network functions: socket, connect, send" in imports
        assert "  network functions: InternetOpenA" in imports

    def test_deterministic(self, vt_file_report):
        assert normalize_report(vt_file_report) == normalize_report(copy.deepcopy(vt_file_report))


class TestDegradedInput:

    @pytest.mark.parametrize("raw", [None, {}, [], "text", 42, {"data": None}, {"data": {"attributes": None}}])
    def test_no_attributes_returns_single_line(self, raw):
        assert normalize_report(raw) == NO_ATTRIBUTES_MESSAGE

    def test_minimal_attributes_emit_all_headers_with_placeholders(self):
        report = normalize_report({"data": {"attributes": {"size": None}}})
        for header in SECTION_HEADERS:
            assert header in report
        assert "File name: Unknown" in report
        assert "File type: Unknown" in report
        assert "Size: Unknown" in report
        assert "Malicious: 0, Suspicious: 0, Harmless: 0" in report
        assert "- No engine reported a named detection." in report
        assert "- No sandbox verdicts available." in report
        assert "- No import information available." in report

    def test_null_and_wrong_typed_fields(self):
        raw = {
            "data": {
                "attributes": {
                    "names": None,
                    "meaningful_name": "fallback.exe",
                    "last_analysis_stats": {"malicious": None, "suspicious": "3", "harmless": []},
                    "last_analysis_results": {"A": None, "B": {"result": ""}, "C": "oops"},
                    "sandbox_verdicts": [{"category": None}, "junk"],
                    "pe_info": {"import_list": [None, {"library_name": None}, {"imported_functions": None}]},
                    "popular_threat_classification": None,
                }
            }
        }
        report = normalize_report(raw)
        assert "File name: fallback.exe" in report
        assert "Malicious: 0, Suspicious: 3, Harmless: 0" in report
        assert "- No engine reported a named detection." in report
        assert "- Unknown sandbox: unknown (no classification)" in report
        assert "- No import information available." in report

    @pytest.mark.parametrize("body", [
        '{"data": {"attributes": {"size": 1e999}}}',
        '{"data": {"attributes": {"size": -Infinity}}}',
        '{"data": {"attributes": {"last_analysis_stats": {"malicious": Infinity, "harmless": NaN}}}}',
        '{"data": {"attributes": {"last_analysis_stats": {"suspicious": "1e999"}}}}',
    ])
    def test_non_finite_numbers(self, body):
        report = normalize_report(json.loads(body))
        assert "Malicious: 0" in report or "Size: 0 bytes" in report
        for header in SECTION_HEADERS:
            assert header in report

    def test_empty_attributes_still_emit_headers(self):
        report = normalize_report({"data": {"attributes": {}}})
        assert [h for h in SECTION_HEADERS if h in report] == list(SECTION_HEADERS)

    def test_missing_arrays(self):
        raw = {"data": {"attributes": {"names": [], "pe_info": {}, "sandbox_verdicts": {}}}}
        report = normalize_report(raw)
        for header in SECTION_HEADERS:
            assert header in report
