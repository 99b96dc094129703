"""
FastAPI dependency injection.

Endpoints declare what they need via Depends() and FastAPI wires it up.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from malware_analyst.config import Settings, get_settings
from malware_analyst.services.analysis_service import AnalysisService
from malware_analyst.workflow.session import SessionStore, get_session_store


def get_analysis_service(settings: Annotated[Settings, Depends(get_settings)]) -> AnalysisService:
    return AnalysisService(settings)


# Type aliases for clean endpoint signatures
AppSettings = Annotated[Settings, Depends(get_settings)]
Sessions = Annotated[SessionStore, Depends(get_session_store)]
Analysis = Annotated[AnalysisService, Depends(get_analysis_service)]
