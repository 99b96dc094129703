"""
Shared enums: single source of truth for provider and workflow values.

These are used by Pydantic models, the provider registry and API responses.
"""

import enum


class ProviderKind(str, enum.Enum):
    """AI completion services an analysis can be routed to."""
    GEMINI = "gemini"
    DASHSCOPE = "dashscope"
    OPENAI_COMPATIBLE = "openai_compatible"   # any endpoint speaking the OpenAI chat API
    ANTHROPIC = "anthropic"


class WorkflowState(str, enum.Enum):
    """Demo session lifecycle states."""
    EMPTY = "empty"
    SAMPLE_PROVIDED = "sample_provided"   # File hashed or digest entered
    REPORT_READY = "report_ready"         # Report text available (fetched or typed)
    ANALYZING = "analyzing"               # Provider call in flight
    RESULT_READY = "result_ready"
    FAILED = "failed"                     # Recoverable; a new sample or edit moves on
