"""
Top-level API router: aggregates all endpoint modules.
"""

from fastapi import APIRouter

from malware_analyst.api.sessions import router as sessions_router
from malware_analyst.api.tools import router as tools_router

api_router = APIRouter()

api_router.include_router(sessions_router)
api_router.include_router(tools_router)
