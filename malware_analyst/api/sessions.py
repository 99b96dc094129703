"""
Analysis session API endpoints.

POST   /api/sessions                  → Create a session
GET    /api/sessions/{id}             → Current session snapshot
DELETE /api/sessions/{id}             → Discard a session
POST   /api/sessions/{id}/reset       → Clear sample, report and results
PUT    /api/sessions/{id}/report      → Replace the report text (user edit)
POST   /api/sessions/{id}/sample      → Upload a sample: hash + VirusTotal report
POST   /api/sessions/{id}/hash        → VirusTotal report for an entered hash
POST   /api/sessions/{id}/analysis    → Structured extraction + YARA rule
POST   /api/sessions/{id}/rule        → Regenerate the YARA rule for the stored result

Endpoints are plain `def`: upstream calls block, so FastAPI runs them in its
threadpool. Credentials arrive with each request and are never stored.
"""

from __future__ import annotations

from fastapi import APIRouter, File, Form, UploadFile

from malware_analyst.dependencies import Analysis, Sessions
from malware_analyst.models.schemas import (
    AnalysisRequest,
    HashLookupRequest,
    ReportUpdate,
    SessionSnapshot,
)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@router.post("", status_code=201)
def create_session(sessions: Sessions) -> SessionSnapshot:
    """Start a new, empty demo session."""
    return sessions.create().snapshot()


@router.get("/{session_id}")
def get_session(session_id: str, sessions: Sessions) -> SessionSnapshot:
    return sessions.get(session_id).snapshot()


@router.delete("/{session_id}", status_code=204)
def delete_session(session_id: str, sessions: Sessions) -> None:
    sessions.delete(session_id)


@router.post("/{session_id}/reset")
def reset_session(session_id: str, sessions: Sessions) -> SessionSnapshot:
    session = sessions.get(session_id)
    session.reset()
    return session.snapshot()


@router.put("/{session_id}/report")
def update_report(session_id: str, request: ReportUpdate, sessions: Sessions) -> SessionSnapshot:
    """Replace the report text with the user's edit."""
    session = sessions.get(session_id)
    session.edit_report(request.report_text)
    return session.snapshot()


@router.post("/{session_id}/sample")
def upload_sample(
    session_id: str,
    sessions: Sessions,
    service: Analysis,
    file: UploadFile = File(...),
    vt_api_key: str = Form(""),
) -> SessionSnapshot:
    """Hash an uploaded sample and load its VirusTotal report."""
    session = sessions.get(session_id)
    service.load_from_file(session, file.file, file.filename, vt_api_key)
    return session.snapshot()


@router.post("/{session_id}/hash")
def lookup_hash(
    session_id: str,
    request: HashLookupRequest,
    sessions: Sessions,
    service: Analysis,
) -> SessionSnapshot:
    """Load the VirusTotal report for a user-entered digest."""
    session = sessions.get(session_id)
    service.load_from_hash(session, request.hash, request.vt_api_key)
    return session.snapshot()


@router.post("/{session_id}/analysis")
def run_analysis(
    session_id: str,
    request: AnalysisRequest,
    sessions: Sessions,
    service: Analysis,
) -> SessionSnapshot:
    """Run structured extraction and rule synthesis with the selected provider."""
    session = sessions.get(session_id)
    service.analyze(session, request.provider, request.credentials)
    return session.snapshot()


@router.post("/{session_id}/rule")
def regenerate_rule(
    session_id: str,
    request: AnalysisRequest,
    sessions: Sessions,
    service: Analysis,
) -> SessionSnapshot:
    session = sessions.get(session_id)
    service.regenerate_rule(session, request.provider, request.credentials)
    return session.snapshot()
