"""
Application configuration.

Loads from environment variables / .env file.

Only non-secret settings live here (upstream endpoints, model names, timeouts).
API keys for VirusTotal and the AI providers are supplied by the user on every
request and are never read from the environment.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Resolve .env relative to the project root, not the process CWD.
_PROJECT_DIR = Path(__file__).resolve().parent.parent
_ENV_FILE = str(_PROJECT_DIR / ".env")

# override=False means OS env vars (if set manually) still take priority.
load_dotenv(_ENV_FILE, override=False)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # silently ignore unknown env vars
    )

    # —— VirusTotal ———
    # Point this at a same-origin reverse proxy if the upstream must not be hit directly.
    virustotal_base_url: str = "https://www.virustotal.com/api/v3"

    # —— AI Providers ———
    gemini_model: str = "gemini-2.5-flash"
    dashscope_url: str = (
        "https://dashscope.aliyuncs.com/api/v1/services/aigc/text-generation/generation"
    )
    dashscope_model: str = "qwen-plus"
    openai_compatible_model: str = "custom-model"
    openai_compatible_text_fallback: bool = False
    anthropic_model: str = "claude-sonnet-4-20250514"
    rule_temperature: float = 0.2
    max_output_tokens: int = 8192

    # —— Transport ———
    request_timeout: float = 120.0

    # —— Sessions ———
    session_ttl_seconds: int = 3600
    max_sessions: int = 1000

    # —— App ———
    app_env: str = "development"
    cors_origins: str = "http://localhost:3000,http://localhost:5173"
    log_level: str = "INFO"

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def virustotal_base(self) -> str:
        return self.virustotal_base_url.rstrip("/")

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    s = Settings()
    logger.debug(f"Settings loaded: VirusTotal base: {s.virustotal_base}")
    return s
