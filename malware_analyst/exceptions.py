"""
Error taxonomy shared by the lookup client, the provider adapters and the workflow.

Every externally-facing operation raises one of these with a message that is
safe to show to the user verbatim. The API layer maps them to HTTP responses
through `status_code`.
"""

from __future__ import annotations

from typing import Optional


class AnalystError(Exception):
    """Base class for all expected, user-facing failures."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingCredential(AnalystError):
    status_code = 400


class MissingEndpoint(AnalystError):
    status_code = 400


class InvalidIdentifier(AnalystError):
    status_code = 400


class NotFound(AnalystError):
    """The reputation service has no record for the identifier. Recoverable."""

    status_code = 404

    def __init__(self, identifier: str):
        super().__init__(
            f"File hash {identifier} was not found on VirusTotal. "
            "You may need to upload the sample there first."
        )
        self.identifier = identifier


class RemoteError(AnalystError):
    """Non-2xx (other than 404) or transport failure from the reputation service."""

    status_code = 502

    def __init__(self, status: Optional[int], message: str):
        prefix = f"VirusTotal API error {status}" if status else "VirusTotal request failed"
        super().__init__(f"{prefix}: {message}" if message else prefix)
        self.status = status
        self.remote_message = message


class Unauthorized(RemoteError):
    status_code = 401


class UpstreamError(AnalystError):
    """Transport fault or non-2xx response from an AI provider."""

    status_code = 502

    def __init__(self, provider: str, status: Optional[int], message: str):
        prefix = f"{provider} API error"
        if status:
            prefix = f"{prefix} {status}"
        super().__init__(f"{prefix}: {message}" if message else prefix)
        self.provider = provider
        self.status = status
        self.remote_message = message


class SchemaViolation(AnalystError):
    """The model did not return the expected structured payload."""

    status_code = 502


class EmptyCompletion(AnalystError):
    status_code = 502


class UnsupportedEnvironment(AnalystError):
    status_code = 500


class InvalidTransition(AnalystError):
    status_code = 409


class SessionNotFound(AnalystError):
    status_code = 404

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id
