"""Record store contract."""

from __future__ import annotations

from datetime import datetime
from typing import Any, ContextManager, Protocol, runtime_checkable

from ..schemas import Application, ApplicationSession, Job, SessionStatus


class DuplicateKeyError(Exception):
    """Raised when a write violates a unique constraint."""

    def __init__(self, table: str, key: tuple[Any, ...]):
        super().__init__(f"Duplicate key in {table}: {key!r}")
        self.table = table
        self.key = key


@runtime_checkable
class RecordStore(Protocol):
    """Transactional record store consumed by the gate engine.

    Implementations must apply ``transition_session``, ``link_application``,
    ``sweep_sessions`` and ``expire_jobs`` as single conditional updates, and
    must enforce uniqueness of applications on (job_id, candidate_email) and
    of gate answers on (candidate_email, question_key).
    """

    def transaction(self) -> ContextManager[None]:
        """Group the enclosed calls into one atomic unit."""

    def add_job(self, job: Job) -> None:
        """Insert or replace a job and its questionnaire."""

    def get_job(self, job_id: str) -> Job | None:
        """Return the job or None."""

    def expire_jobs(self, now: datetime) -> int:
        """Mark ACTIVE jobs past expiry as EXPIRED; return the row count."""

    def add_session(self, session: ApplicationSession) -> None:
        """Insert a new session."""

    def get_session(self, session_token: str) -> ApplicationSession | None:
        """Return the session or None."""

    def transition_session(
        self,
        session_token: str,
        *,
        expected_status: SessionStatus,
        status: SessionStatus,
        answers: dict[str, Any],
        completed_at: datetime,
    ) -> bool:
        """Update only if the current status equals ``expected_status``."""

    def link_application(self, session_token: str, application_id: str) -> bool:
        """Link an application to a PASSED, unlinked session."""

    def sweep_sessions(
        self,
        *,
        status: SessionStatus,
        created_before: datetime,
        new_status: SessionStatus,
        completed_at: datetime,
        unlinked_only: bool = False,
    ) -> int:
        """Bulk conditional status change; return the row count."""

    def session_status_counts(self) -> dict[str, int]:
        """Return session counts keyed by status."""

    def add_application(self, application: Application) -> None:
        """Insert an application, raising DuplicateKeyError on conflict."""

    def get_application(self, application_id: str) -> Application | None:
        """Return the application or None."""

    def find_application(self, job_id: str, candidate_email: str) -> Application | None:
        """Return the application filed for the job and email, if any."""

    def get_gate_answers(self, candidate_email: str) -> dict[str, Any]:
        """Return saved answers keyed by question key."""

    def upsert_gate_answer(
        self,
        candidate_email: str,
        question_key: str,
        answer: Any,
        updated_at: datetime,
    ) -> None:
        """Insert or overwrite the saved answer for the email and key."""
