"""
Analysis session: the step-by-step demo workflow held in memory.

    empty → sample_provided → report_ready → analyzing → result_ready
                   │                              │
                   └──────────→ failed ←──────────┘

`failed` and `result_ready` are not terminal: a new sample or an edited report
moves the session on. While `analyzing`, every other transition is refused,
which is how a second analysis on the same session is prevented.

Endpoints run in FastAPI's threadpool, so every transition holds the
session's lock. Upstream calls happen outside it: a lookup is tied to the
sample token returned by `provide_sample`, and a report arriving for a sample
that has since been replaced, edited over or reset is discarded.

The report text is a plain mutable slot: whether it came from VirusTotal or
was typed by the user makes no difference downstream.

Sessions are never persisted, and never hold credentials.
"""

from __future__ import annotations

import functools
import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from malware_analyst.config import get_settings
from malware_analyst.exceptions import InvalidTransition, SessionNotFound
from malware_analyst.models.enums import ProviderKind, WorkflowState
from malware_analyst.models.schemas import AnalysisResult, SessionSnapshot

logger = logging.getLogger(__name__)

_ANALYZABLE = frozenset({
    WorkflowState.REPORT_READY,
    WorkflowState.RESULT_READY,
    WorkflowState.FAILED,
})


def _locked(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class AnalysisSession:

    def __init__(self, session_id: Optional[str] = None):
        self.id = session_id or uuid.uuid4().hex
        self.state = WorkflowState.EMPTY
        self.identifier: Optional[str] = None
        self.file_name: Optional[str] = None
        self.report_text = ""
        self.provider: Optional[ProviderKind] = None
        self.result: Optional[AnalysisResult] = None
        self.rule_text = ""
        self.error: Optional[str] = None
        self.updated_at = datetime.now(timezone.utc)
        self._lock = threading.RLock()
        self._sample_token = 0

    # ── Sample & report ──────────────────────────────────────────────────────

    @_locked
    def provide_sample(self, identifier: str, file_name: Optional[str] = None) -> int:
        """
        A file was hashed or a digest was entered. Clears everything downstream.

        Returns the sample token the lookup result must be delivered with.
        """
        self._refuse_while_analyzing("provide a new sample")
        self._clear_outputs()
        self.report_text = ""
        self.identifier = identifier
        self.file_name = file_name
        self._sample_token += 1
        self._move(WorkflowState.SAMPLE_PROVIDED)
        return self._sample_token

    @_locked
    def report_loaded(self, report_text: str, token: Optional[int] = None) -> bool:
        """Store a fetched report. Returns False, changing nothing, if the sample is stale."""
        if self._is_stale(token):
            logger.info(f"[session {self.id}] Discarding report for a replaced sample")
            return False
        self._require(WorkflowState.SAMPLE_PROVIDED, "load a report")
        self.report_text = report_text
        self.error = None
        self._move(WorkflowState.REPORT_READY)
        return True

    @_locked
    def lookup_failed(self, message: str, token: Optional[int] = None) -> bool:
        """Lookup failed; the identifier stays visible, the report stays empty."""
        if self._is_stale(token):
            logger.info(f"[session {self.id}] Discarding lookup failure for a replaced sample")
            return False
        self._require(WorkflowState.SAMPLE_PROVIDED, "record a lookup failure")
        self.report_text = ""
        self.error = message
        self._move(WorkflowState.FAILED)
        return True

    @_locked
    def edit_report(self, report_text: str) -> None:
        """User override of the report text; previous results no longer apply."""
        self._refuse_while_analyzing("edit the report")
        self._clear_outputs()
        self.report_text = report_text
        self._sample_token += 1
        self._move(WorkflowState.REPORT_READY)

    # ── Analysis ─────────────────────────────────────────────────────────────

    @_locked
    def begin_analysis(self, provider: ProviderKind) -> str:
        """Enter `analyzing` and return the report text to send."""
        if self.state not in _ANALYZABLE:
            raise InvalidTransition(
                f"Cannot start an analysis while the session is {self.state.value}."
            )
        self._clear_outputs()
        self.provider = provider
        self._move(WorkflowState.ANALYZING)
        return self.report_text

    @_locked
    def result_ready(self, result: AnalysisResult) -> None:
        """Store the structured result; the rule follows separately."""
        self._require(WorkflowState.ANALYZING, "store an analysis result")
        self.result = result
        self._touch()

    @_locked
    def rule_ready(self, rule_text: str) -> None:
        self._require(WorkflowState.ANALYZING, "store a rule")
        self.rule_text = rule_text
        self._move(WorkflowState.RESULT_READY)

    @_locked
    def analysis_failed(self, message: str) -> None:
        """Any provider failure. An already stored result is kept."""
        self._require(WorkflowState.ANALYZING, "record an analysis failure")
        self.error = message
        self._move(WorkflowState.FAILED)

    @_locked
    def begin_rule_regeneration(self, provider: ProviderKind) -> AnalysisResult:
        """Re-enter `analyzing` to synthesize a new rule for the stored result."""
        if self.result is None or self.state not in (WorkflowState.RESULT_READY, WorkflowState.FAILED):
            raise InvalidTransition("There is no analysis result to generate a rule from.")
        self.provider = provider
        self.rule_text = ""
        self.error = None
        self._move(WorkflowState.ANALYZING)
        return self.result

    @_locked
    def reset(self) -> None:
        self._refuse_while_analyzing("reset")
        self._clear_outputs()
        self.report_text = ""
        self.identifier = None
        self.file_name = None
        self.provider = None
        self._sample_token += 1
        self._move(WorkflowState.EMPTY)

    # ── Views ────────────────────────────────────────────────────────────────

    @_locked
    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            id=self.id,
            state=self.state,
            identifier=self.identifier,
            file_name=self.file_name,
            report_text=self.report_text,
            provider=self.provider,
            result=self.result,
            rule_text=self.rule_text,
            error=self.error,
            updated_at=self.updated_at,
        )

    # ── Internals ────────────────────────────────────────────────────────────

    def _is_stale(self, token: Optional[int]) -> bool:
        return token is not None and token != self._sample_token

    def _clear_outputs(self) -> None:
        self.result = None
        self.rule_text = ""
        self.error = None

    def _require(self, state: WorkflowState, action: str) -> None:
        if self.state != state:
            raise InvalidTransition(f"Cannot {action} while the session is {self.state.value}.")

    def _refuse_while_analyzing(self, action: str) -> None:
        if self.state == WorkflowState.ANALYZING:
            raise InvalidTransition(f"Cannot {action} while an analysis is in progress.")

    def _move(self, state: WorkflowState) -> None:
        logger.debug(f"[session {self.id}] {self.state.value} -> {state.value}")
        self.state = state
        self._touch()

    def _touch(self) -> None:
        self.updated_at = datetime.now(timezone.utc)


class SessionStore:
    """
    In-memory registry of live sessions, keyed by id.

    Sessions idle for longer than `ttl_seconds` are dropped whenever the store
    is used. When `max_sessions` is reached, creating a session evicts the
    least recently updated ones. A session in `analyzing` is never evicted.
    """

    def __init__(self, ttl_seconds: float = 3600, max_sessions: int = 1000):
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_sessions = max_sessions
        self._sessions: dict[str, AnalysisSession] = {}
        self._lock = threading.Lock()

    def create(self) -> AnalysisSession:
        session = AnalysisSession()
        with self._lock:
            self._evict_expired()
            self._evict_oldest(len(self._sessions) - self.max_sessions + 1)
            self._sessions[session.id] = session
        logger.info(f"Created session {session.id}")
        return session

    def get(self, session_id: str) -> AnalysisSession:
        with self._lock:
            self._evict_expired()
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def delete(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            raise SessionNotFound(session_id)
        logger.info(f"Discarded session {session_id}")

    def __len__(self) -> int:
        return len(self._sessions)

    def _evict_expired(self) -> None:
        cutoff = datetime.now(timezone.utc) - self.ttl
        expired = [
            sid for sid, s in self._sessions.items()
            if s.updated_at < cutoff and s.state != WorkflowState.ANALYZING
        ]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info(f"Expired {len(expired)} idle session(s)")

    def _evict_oldest(self, count: int) -> None:
        if count <= 0:
            return
        candidates = sorted(
            (s for s in self._sessions.values() if s.state != WorkflowState.ANALYZING),
            key=lambda s: s.updated_at,
        )
        for session in candidates[:count]:
            del self._sessions[session.id]
        logger.warning(f"Session limit {self.max_sessions} reached; evicted {min(count, len(candidates))}")


@functools.lru_cache()
def get_session_store() -> SessionStore:
    """Process-wide session store (FastAPI dependency)."""
    settings = get_settings()
    return SessionStore(
        ttl_seconds=settings.session_ttl_seconds,
        max_sessions=settings.max_sessions,
    )
