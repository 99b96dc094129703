"""
AI Malware Analyst API.

Wires the session and tool routers into one FastAPI app and renders every
AnalystError as {"detail": <message>, "error": <class name>}.

Run with:  uvicorn malware_analyst.main:app --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from malware_analyst.analyst.providers import PROVIDER_REGISTRY
from malware_analyst.api.router import api_router
from malware_analyst.config import get_settings
from malware_analyst.exceptions import AnalystError, NotFound, SessionNotFound

VERSION = "1.0.0"

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"AI Malware Analyst {VERSION} ({settings.app_env})")
    logger.info(f"VirusTotal endpoint: {settings.virustotal_base}")
    for kind, provider_cls in PROVIDER_REGISTRY.items():
        logger.info(f"Provider {kind.value}: default model {provider_cls(settings).default_model}")
    if settings.openai_compatible_text_fallback:
        logger.warning("Plain-text JSON fallback is enabled for the OpenAI-compatible provider")
    yield
    logger.info("AI Malware Analyst stopped")


app = FastAPI(
    title="AI Malware Analyst",
    version=VERSION,
    description="Sandbox report normalization, AI threat extraction and YARA rule generation",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.is_development else None,
    redoc_url=None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Accept"],
)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.update(_SECURITY_HEADERS)
    if not settings.is_development:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


@app.exception_handler(AnalystError)
async def analyst_error_handler(request: Request, exc: AnalystError) -> JSONResponse:
    """Expected failures: the message is shown to the user as-is."""
    expected = isinstance(exc, (NotFound, SessionNotFound))
    (logger.info if expected else logger.warning)(
        f"{request.method} {request.url.path} -> {exc.status_code} {type(exc).__name__}: {exc.message}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything outside the AnalystError taxonomy is a bug; details only leak in development."""
    logger.exception(f"{request.method} {request.url.path} failed with {type(exc).__name__}")
    detail = f"{type(exc).__name__}: {exc}" if settings.is_development else "Internal server error."
    return JSONResponse(status_code=500, content={"detail": detail, "error": "InternalError"})


app.include_router(api_router)


@app.get("/api/health")
async def health():
    return {
        "status": "ok",
        "version": VERSION,
        "providers": [kind.value for kind in PROVIDER_REGISTRY],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
