"""
Report Normalizer: flattens a VirusTotal file report into behavior-report text.

The output is the default content of the editable report box and the input the
provider adapters expect. Sections are always emitted in the same order with
their headers, so a missing piece of data shows up as a placeholder line rather
than a missing section.

This is the one component that never raises: VirusTotal reports are incomplete
by nature, so every nested access degrades to a default.
"""

from __future__ import annotations

import math
from typing import Any

NO_ATTRIBUTES_MESSAGE = "No attributes found in the VirusTotal response."

HEADER_OVERVIEW = "[File Overview]"
HEADER_DETECTIONS = "[Detection Summary]"
HEADER_DETECTION_NAMES = "[Detection Names]"
HEADER_SANDBOX = "[Sandbox Verdicts]"
HEADER_IMPORTS = "[Imported Libraries]"

SECTION_HEADERS = (
    HEADER_OVERVIEW,
    HEADER_DETECTIONS,
    HEADER_DETECTION_NAMES,
    HEADER_SANDBOX,
    HEADER_IMPORTS,
)

MAX_DETECTION_NAMES = 5
MAX_IMPORTED_LIBRARIES = 5
MAX_ACTIVITY_LINES = 10

# Imports worth calling out because they hint at network capability.
_NETWORK_IMPORTS: dict[str, frozenset[str]] = {
    "ws2_32.dll": frozenset({"socket", "connect", "send", "recv", "WSAStartup"}),
    "wininet.dll": frozenset({
        "InternetOpenA", "InternetOpenW", "InternetOpenUrlA", "InternetOpenUrlW",
        "InternetConnectA", "InternetConnectW", "HttpSendRequestA", "HttpSendRequestW",
    }),
}


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _list(value: Any) -> list:
    return value if isinstance(value, list) else []


def _text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def _count(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return 0


def normalize_report(raw: Any) -> str:
    """
    Convert a raw VirusTotal v3 file report into plain behavior-report text.

    Args:
        raw: Decoded JSON body of GET /files/{id} (any shape is tolerated)

    Returns:
        Multi-section report text, or a single explanatory line when the
        response carries no `data.attributes` object.
    """
    attrs = _dict(_dict(raw).get("data")).get("attributes")
    if not isinstance(attrs, dict):
        return NO_ATTRIBUTES_MESSAGE

    sections = [
        _overview_section(attrs),
        _detection_summary_section(attrs),
        _detection_names_section(attrs),
        _sandbox_section(attrs),
        _imports_section(attrs),
    ]
    return "\n\n".join("\n".join(lines) for lines in sections)


# ── Sections ─────────────────────────────────────────────────────────────────

def _overview_section(attrs: dict) -> list[str]:
    names = [n for n in (_text(v) for v in _list(attrs.get("names"))) if n]
    file_name = names[0] if names else _text(attrs.get("meaningful_name")) or "Unknown"

    size = attrs.get("size")
    size_text = f"{_count(size)} bytes" if _text(size) else "Unknown"

    lines = [
        HEADER_OVERVIEW,
        f"File name: {file_name}",
        f"File type: {_text(attrs.get('type_description')) or 'Unknown'}",
        f"Size: {size_text}",
    ]
    sha256 = _text(attrs.get("sha256"))
    if sha256:
        lines.append(f"SHA256: {sha256}")
    return lines


def _detection_summary_section(attrs: dict) -> list[str]:
    stats = _dict(attrs.get("last_analysis_stats"))
    summary = (
        f"Malicious: {_count(stats.get('malicious'))}, "
        f"Suspicious: {_count(stats.get('suspicious'))}, "
        f"Harmless: {_count(stats.get('harmless'))}"
    )
    if "undetected" in stats:
        summary += f", Undetected: {_count(stats.get('undetected'))}"

    lines = [HEADER_DETECTIONS, summary]
    label = _text(_dict(attrs.get("popular_threat_classification")).get("suggested_threat_label"))
    if label:
        lines.append(f"Suggested threat label: {label}")
    return lines


def _detection_names_section(attrs: dict) -> list[str]:
    lines = [HEADER_DETECTION_NAMES]
    seen: set[str] = set()
    for engine, result in _dict(attrs.get("last_analysis_results")).items():
        verdict = _text(_dict(result).get("result"))
        if not verdict or verdict in seen:
            continue
        seen.add(verdict)
        engine_name = _text(_dict(result).get("engine_name")) or _text(engine) or "Unknown engine"
        lines.append(f"- {engine_name}: {verdict}")
        if len(seen) >= MAX_DETECTION_NAMES:
            break

    if len(lines) == 1:
        lines.append("- No engine reported a named detection.")
    return lines


def _sandbox_section(attrs: dict) -> list[str]:
    lines = [HEADER_SANDBOX]
    raw_verdicts = attrs.get("sandbox_verdicts")
    if isinstance(raw_verdicts, dict):
        entries = [(key, _dict(v)) for key, v in raw_verdicts.items()]
    else:
        entries = [("", _dict(v)) for v in _list(raw_verdicts)]

    for key, verdict in entries:
        name = _text(verdict.get("sandbox_name")) or _text(key) or "Unknown sandbox"
        category = _text(verdict.get("category")) or "unknown"
        tags = [t for t in (_text(v) for v in _list(verdict.get("malware_classification"))) if t]
        lines.append(f"- {name}: {category} ({', '.join(tags) if tags else 'no classification'})")

    lines.extend(_activity_lines(attrs))

    if len(lines) == 1:
        lines.append("- No sandbox verdicts available.")
    return lines


def _activity_lines(attrs: dict) -> list[str]:
    """
    File, registry and network activity carried by behavior entries.

    Each entry's data sits under its own `attributes` object when present.
    Lines are deduplicated and each kind is capped at MAX_ACTIVITY_LINES.
    """
    files: dict[str, None] = {}
    registry: dict[str, None] = {}
    network: dict[str, None] = {}

    for entry in _list(attrs.get("crowdsourced_ids_results")):
        entry = _dict(entry)
        behavior = _dict(entry.get("attributes")) or entry

        for path in (_text(v) for v in _list(behavior.get("files_written"))):
            if path:
                files[f"- Writes file: {path}"] = None
        for dropped in (_dict(v) for v in _list(behavior.get("files_dropped"))):
            filename = _text(dropped.get("filename")) or _text(dropped.get("path"))
            if not filename:
                continue
            sha256 = _text(dropped.get("sha256"))
            files[f"- Drops file: {filename}" + (f" (SHA256: {sha256})" if sha256 else "")] = None
        for key in (_text(v) for v in _list(behavior.get("registry_keys_set"))):
            if key:
                registry[f"- Sets registry key: {key}"] = None
        for comm in (_dict(v) for v in _list(behavior.get("network_communications"))):
            ip = _text(comm.get("destination_ip"))
            if not ip:
                continue
            port = _text(comm.get("destination_port")) or "?"
            protocol = _text(comm.get("transport_layer_protocol")) or "unknown"
            network[f"- Connects to IP: {ip} port {port} ({protocol})"] = None

    lines: list[str] = []
    for group in (files, registry, network):
        lines.extend(list(group)[:MAX_ACTIVITY_LINES])
    return lines


def _imports_section(attrs: dict) -> list[str]:
    lines = [HEADER_IMPORTS]
    seen: set[str] = set()
    for entry in _list(_dict(attrs.get("pe_info")).get("import_list")):
        entry = _dict(entry)
        library = _text(entry.get("library_name"))
        if not library or library.lower() in seen:
            continue
        seen.add(library.lower())
        lines.append(f"- {library}")

        watched = _NETWORK_IMPORTS.get(library.lower(), frozenset())
        functions = [_text(f) for f in _list(entry.get("imported_functions"))]
        network_funcs = [f for f in functions if f in watched]
        if network_funcs:
            lines.append(f"  network functions: {', '.join(network_funcs)}")

        if len(seen) >= MAX_IMPORTED_LIBRARIES:
            break

    if len(lines) == 1:
        lines.append("- No import information available.")
    return lines
