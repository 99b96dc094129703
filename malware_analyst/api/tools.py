"""
Stateless helper endpoints.

GET  /api/providers      → Selectable AI providers and their defaults
GET  /api/demo/report    → Built-in sample sandbox report
POST /api/tools/hash     → SHA-256 of an uploaded file (no lookup)
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, File, UploadFile

from malware_analyst.analyst.providers import available_providers
from malware_analyst.constants import DEFAULT_MALWARE_REPORT
from malware_analyst.dependencies import AppSettings
from malware_analyst.models.schemas import DigestResponse, ProviderInfo
from malware_analyst.utils.hashing import sha256_fileobj

router = APIRouter(tags=["tools"])
logger = logging.getLogger(__name__)


@router.get("/api/providers")
def list_providers(settings: AppSettings) -> list[ProviderInfo]:
    return available_providers(settings)


@router.get("/api/demo/report")
def demo_report() -> dict:
    """Sample report so the analysis step can be tried without a VirusTotal key."""
    return {"report_text": DEFAULT_MALWARE_REPORT}


@router.post("/api/tools/hash")
def hash_file(file: UploadFile = File(...)) -> DigestResponse:
    digest = sha256_fileobj(file.file)
    size = file.size if file.size is not None else file.file.tell()
    logger.info(f"Hashed {file.filename or '<unnamed>'} ({size} bytes): {digest}")
    return DigestResponse(file_name=file.filename, size=size, sha256=digest)
