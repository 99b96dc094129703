"""
Pydantic schemas: the data contract for the entire application.

Three categories:
1. Analysis schemas (the provider-agnostic extraction result)
2. Credential schemas (user-supplied, per request, never persisted)
3. API schemas (request/response models)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from malware_analyst.models.enums import ProviderKind, WorkflowState


# ═════════════════════════════════════════════════
# 1. ANALYSIS SCHEMAS (provider output)
# ═════════════════════════════════════════════════

# Every field is required and strings are never coerced: a payload missing a
# group, or carrying the wrong JSON type, is rejected instead of defaulted.
_PAYLOAD = ConfigDict(extra="ignore")


class KeyBehaviors(BaseModel):
    model_config = _PAYLOAD

    file_system: list[StrictStr]
    registry: list[StrictStr]
    network: list[StrictStr]


class MitreTechnique(BaseModel):
    model_config = _PAYLOAD

    technique_id: StrictStr  # e.g. "T1059.001", not validated
    technique_name: StrictStr
    description: StrictStr


class IndicatorsOfCompromise(BaseModel):
    model_config = _PAYLOAD

    files: list[StrictStr]
    domains: list[StrictStr]
    ips: list[StrictStr]
    registry_keys: list[StrictStr]


class AnalysisResult(BaseModel):
    """Unified structured record every provider adapter must produce."""
    model_config = _PAYLOAD

    malware_family_guess: StrictStr
    summary: StrictStr
    key_behaviors: KeyBehaviors
    mitre_attack_techniques: list[MitreTechnique]
    indicators_of_compromise: IndicatorsOfCompromise


# ═════════════════════════════════════════════════
# 2. CREDENTIALS
# ═════════════════════════════════════════════════

class ProviderCredentials(BaseModel):
    """Access details for one AI provider, supplied by the user at run time."""
    api_key: str = Field(default="", repr=False)
    base_url: str = ""               # only the OpenAI-compatible provider needs it
    model: Optional[str] = None      # overrides the configured default model


# ═════════════════════════════════════════════════
# 3. API SCHEMAS
# ═════════════════════════════════════════════════

class HashLookupRequest(BaseModel):
    hash: str
    vt_api_key: str = Field(default="", repr=False)


class ReportUpdate(BaseModel):
    report_text: str


class AnalysisRequest(BaseModel):
    provider: ProviderKind = ProviderKind.GEMINI
    credentials: ProviderCredentials = Field(default_factory=ProviderCredentials)


class DigestResponse(BaseModel):
    file_name: Optional[str] = None
    size: int
    sha256: str


class ProviderInfo(BaseModel):
    kind: ProviderKind
    default_model: str
    author_tag: str
    requires_base_url: bool


class SessionSnapshot(BaseModel):
    """Everything the front end needs to render a session. Never carries credentials."""
    id: str
    state: WorkflowState
    identifier: Optional[str] = None
    file_name: Optional[str] = None
    report_text: str = ""
    provider: Optional[ProviderKind] = None
    result: Optional[AnalysisResult] = None
    rule_text: str = ""
    error: Optional[str] = None
    updated_at: datetime
