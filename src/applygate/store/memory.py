"""Process-local record store."""

from __future__ import annotations

import copy
import threading
from collections import Counter
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator

from .base import DuplicateKeyError
from ..schemas import (
    Application,
    ApplicationSession,
    CandidateGateAnswer,
    Job,
    JobStatus,
    SessionStatus,
)


class InMemoryStore:
    """Dictionary-backed store serialising every operation under one lock.

    ``transaction`` snapshots the tables and restores them if the block
    raises. Records are replaced rather than mutated, so shallow table copies
    are enough for the snapshot.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._jobs: dict[str, Job] = {}
        self._sessions: dict[str, ApplicationSession] = {}
        self._applications: dict[str, Application] = {}
        self._application_index: dict[tuple[str, str], str] = {}
        self._gate_answers: dict[tuple[str, str], CandidateGateAnswer] = {}

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            snapshot = self._snapshot()
            try:
                yield
            except BaseException:
                self._restore(snapshot)
                raise

    def add_job(self, job: Job) -> None:
        with self._lock:
            self._jobs[job.job_id] = job.model_copy(deep=True)

    def get_job(self, job_id: str) -> Job | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def expire_jobs(self, now: datetime) -> int:
        with self._lock:
            expired = [
                job_id
                for job_id, job in self._jobs.items()
                if job.status == JobStatus.ACTIVE and job.expires_at <= now
            ]
            for job_id in expired:
                self._jobs[job_id] = self._jobs[job_id].model_copy(
                    update={"status": JobStatus.EXPIRED}
                )
            return len(expired)

    def add_session(self, session: ApplicationSession) -> None:
        with self._lock:
            if session.session_token in self._sessions:
                raise DuplicateKeyError("application_sessions", (session.session_token,))
            self._sessions[session.session_token] = session.model_copy(deep=True)

    def get_session(self, session_token: str) -> ApplicationSession | None:
        with self._lock:
            session = self._sessions.get(session_token)
            return session.model_copy(deep=True) if session else None

    def transition_session(
        self,
        session_token: str,
        *,
        expected_status: SessionStatus,
        status: SessionStatus,
        answers: dict[str, Any],
        completed_at: datetime,
    ) -> bool:
        with self._lock:
            session = self._sessions.get(session_token)
            if session is None or session.status != expected_status:
                return False
            self._sessions[session_token] = session.model_copy(
                update={
                    "status": status,
                    "answers": copy.deepcopy(answers),
                    "completed_at": completed_at,
                }
            )
            return True

    def link_application(self, session_token: str, application_id: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_token)
            if (
                session is None
                or session.status != SessionStatus.PASSED
                or session.application_id is not None
            ):
                return False
            self._sessions[session_token] = session.model_copy(
                update={"application_id": application_id}
            )
            return True

    def sweep_sessions(
        self,
        *,
        status: SessionStatus,
        created_before: datetime,
        new_status: SessionStatus,
        completed_at: datetime,
        unlinked_only: bool = False,
    ) -> int:
        with self._lock:
            matched = [
                token
                for token, session in self._sessions.items()
                if session.status == status
                and session.created_at < created_before
                and (not unlinked_only or session.application_id is None)
            ]
            for token in matched:
                self._sessions[token] = self._sessions[token].model_copy(
                    update={"status": new_status, "completed_at": completed_at}
                )
            return len(matched)

    def session_status_counts(self) -> dict[str, int]:
        with self._lock:
            counts = Counter(session.status.value for session in self._sessions.values())
            return dict(counts)

    def add_application(self, application: Application) -> None:
        key = (application.job_id, application.candidate_email)
        with self._lock:
            if key in self._application_index:
                raise DuplicateKeyError("applications", key)
            self._applications[application.application_id] = application.model_copy(deep=True)
            self._application_index[key] = application.application_id

    def get_application(self, application_id: str) -> Application | None:
        with self._lock:
            application = self._applications.get(application_id)
            return application.model_copy(deep=True) if application else None

    def find_application(self, job_id: str, candidate_email: str) -> Application | None:
        with self._lock:
            application_id = self._application_index.get((job_id, candidate_email))
            if application_id is None:
                return None
            return self._applications[application_id].model_copy(deep=True)

    def get_gate_answers(self, candidate_email: str) -> dict[str, Any]:
        with self._lock:
            return {
                key: copy.deepcopy(record.answer)
                for (email, key), record in self._gate_answers.items()
                if email == candidate_email
            }

    def upsert_gate_answer(
        self,
        candidate_email: str,
        question_key: str,
        answer: Any,
        updated_at: datetime,
    ) -> None:
        with self._lock:
            self._gate_answers[(candidate_email, question_key)] = CandidateGateAnswer(
                candidate_email=candidate_email,
                question_key=question_key,
                answer=copy.deepcopy(answer),
                updated_at=updated_at,
            )

    def _snapshot(self) -> tuple[dict, ...]:
        return (
            dict(self._jobs),
            dict(self._sessions),
            dict(self._applications),
            dict(self._application_index),
            dict(self._gate_answers),
        )

    def _restore(self, snapshot: tuple[dict, ...]) -> None:
        (
            self._jobs,
            self._sessions,
            self._applications,
            self._application_index,
            self._gate_answers,
        ) = snapshot
