"""
Hashing utilities for sample fingerprinting and digest validation.
"""

from __future__ import annotations

import hashlib
import re
from typing import BinaryIO

from malware_analyst.exceptions import InvalidIdentifier, UnsupportedEnvironment

_CHUNK_SIZE = 64 * 1024

# MD5, SHA-1 and SHA-256: the digests VirusTotal accepts as file identifiers.
_DIGEST_RE = re.compile(r"[0-9a-f]{32}|[0-9a-f]{40}|[0-9a-f]{64}")


def _new_sha256():
    if "sha256" not in hashlib.algorithms_available:
        raise UnsupportedEnvironment(
            "SHA-256 is not available in this environment; cannot fingerprint the file."
        )
    try:
        return hashlib.sha256()
    except ValueError as e:  # disabled by a restricted OpenSSL policy
        raise UnsupportedEnvironment(f"SHA-256 is disabled in this environment: {e}") from e


def sha256_bytes(data: bytes) -> str:
    """SHA-256 hash of raw bytes."""
    h = _new_sha256()
    h.update(data)
    return h.hexdigest()


def sha256_fileobj(fileobj: BinaryIO, chunk_size: int = _CHUNK_SIZE) -> str:
    """
    SHA-256 over the full content of a binary file-like object.

    Reads from the current position to EOF in chunks, so large samples are
    never held in memory at once.
    """
    h = _new_sha256()
    for chunk in iter(lambda: fileobj.read(chunk_size), b""):
        h.update(chunk)
    return h.hexdigest()


def normalize_hash(value: str) -> str:
    """
    Clean a user-entered digest into the form VirusTotal expects.

    Strips whitespace and an optional "md5:" / "sha1:" / "sha256:" prefix,
    lowercases, and rejects anything that is not a 32/40/64-char hex digest.
    """
    cleaned = (value or "").strip().lower()
    for prefix in ("md5:", "sha1:", "sha256:"):
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix):].strip()
            break

    if not _DIGEST_RE.fullmatch(cleaned):
        raise InvalidIdentifier("Please enter a valid MD5, SHA-1 or SHA-256 hash.")
    return cleaned
