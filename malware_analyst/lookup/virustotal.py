"""
VirusTotal client: fetches the v3 file report for a sample digest.

One GET per lookup, no retries, no caching. The raw JSON is handed straight
to the report normalizer and not retained.

Free tier: 4 requests/min, 500/day.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from malware_analyst.config import get_settings
from malware_analyst.exceptions import MissingCredential, NotFound, RemoteError, Unauthorized

logger = logging.getLogger(__name__)


class VirusTotalClient:

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        settings = get_settings()
        self.api_key = api_key
        self.base_url = (base_url or settings.virustotal_base).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout

    def lookup(self, identifier: str) -> dict[str, Any]:
        """
        Query VT API v3 for a file report.

        Args:
            identifier: MD5 / SHA-1 / SHA-256 digest of the sample

        Returns:
            The decoded JSON body, unmodified

        Raises:
            MissingCredential: no API key was supplied
            NotFound: VirusTotal has no record of the file
            Unauthorized: the key was rejected (401/403)
            RemoteError: any other non-2xx status or transport failure
        """
        if not self.api_key:
            raise MissingCredential("Please enter your VirusTotal API key to fetch the report.")

        logger.info(f"VirusTotal lookup for {identifier}")
        try:
            resp = requests.get(
                f"{self.base_url}/files/{identifier}",
                headers={"x-apikey": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RemoteError(None, f"{type(e).__name__}: {e}") from e

        if resp.status_code == 404:
            logger.info(f"VirusTotal has no record for {identifier}")
            raise NotFound(identifier)

        if not 200 <= resp.status_code < 300:
            message = _error_message(resp)
            logger.warning(f"VirusTotal returned {resp.status_code} for {identifier}: {message}")
            if resp.status_code in (401, 403):
                raise Unauthorized(resp.status_code, message)
            if resp.status_code == 429:
                raise RemoteError(429, message or "rate limit exceeded (4 req/min free tier)")
            raise RemoteError(resp.status_code, message)

        try:
            return resp.json()
        except ValueError as e:
            raise RemoteError(resp.status_code, "response body is not valid JSON") from e


def _error_message(resp: requests.Response) -> str:
    """Pull VT's {"error": {"code", "message"}} message, falling back to the raw body."""
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "")[:200]
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message") or error.get("code") or ""
    return (resp.text or "")[:200]
