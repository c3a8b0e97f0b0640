"""Application session lifecycle."""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import pendulum
import structlog

from .core import Evaluator, FailureDetail, GateEvaluator, validate_answers
from .errors import DuplicateApplication, JobExpired, NotFound, StateError
from .schemas import (
    Application,
    ApplicationSession,
    ApplicationSubmission,
    Job,
    SessionStatus,
)
from .store import DuplicateKeyError, RecordStore


@dataclass(slots=True)
class SessionEvaluation:
    """Result of evaluating (or replaying) a session."""

    passed: bool
    status: SessionStatus
    failed_rules: list[FailureDetail] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "status": self.status.value,
            "failed_rules": [detail.to_dict() for detail in self.failed_rules],
        }


def new_session_token() -> str:
    return secrets.token_hex(32)


class SessionStateMachine:
    """Owns the IN_PROGRESS -> PASSED/FAILED -> linked lifecycle.

    Every status change goes through a conditional store update keyed on
    the expected prior status, so concurrent callers cannot both win.
    """

    def __init__(
        self,
        *,
        store: RecordStore,
        evaluator: Evaluator | None = None,
        now_provider: Callable[[], pendulum.DateTime] | None = None,
        token_factory: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._evaluator = evaluator or GateEvaluator()
        self._now = now_provider or (lambda: pendulum.now("UTC"))
        self._token_factory = token_factory or new_session_token
        self._logger = structlog.get_logger(__name__)

    def start(self, job_id: str) -> ApplicationSession:
        job = self._load_job(job_id)
        now = self._now()
        if not job.is_live(now):
            raise JobExpired(job.job_id)

        session = ApplicationSession(
            session_token=self._token_factory(),
            job_id=job.job_id,
            status=SessionStatus.IN_PROGRESS,
            questionnaire_version=job.questionnaire_version,
            created_at=now,
        )
        self._store.add_session(session)
        self._logger.info(
            "session.started",
            job_id=job.job_id,
            questionnaire_version=session.questionnaire_version,
        )
        return session

    def get(self, session_token: str) -> ApplicationSession:
        session = self._store.get_session(session_token)
        if session is None:
            raise NotFound("Session", session_token)
        return session

    def status(self, session_token: str) -> SessionStatus:
        return self.get(session_token).status

    def evaluate(
        self,
        session: ApplicationSession,
        answers: Mapping[str, Any],
    ) -> SessionEvaluation:
        """Decide the session once; later calls replay the stored decision."""
        job = self._load_job(session.job_id)

        if session.status != SessionStatus.IN_PROGRESS:
            return self._replay(session, job)

        now = self._now()
        if not job.is_live(now):
            raise JobExpired(job.job_id)

        validate_answers(answers, job.questions)
        evaluation = self._evaluator.evaluate(job.gate_rules, answers, job.questions)
        status = SessionStatus.PASSED if evaluation.passed else SessionStatus.FAILED

        won = self._store.transition_session(
            session.session_token,
            expected_status=SessionStatus.IN_PROGRESS,
            status=status,
            answers=dict(answers),
            completed_at=now,
        )
        if not won:
            # another request decided the session first
            current = self.get(session.session_token)
            self._logger.info(
                "session.transition_lost",
                job_id=job.job_id,
                status=current.status.value,
            )
            return self._replay(current, job)

        self._logger.info(
            "session.evaluated",
            job_id=job.job_id,
            status=status.value,
            failed_rule_count=len(evaluation.failed_rules),
        )
        return SessionEvaluation(
            passed=evaluation.passed,
            status=status,
            failed_rules=evaluation.failed_rules,
        )

    def submit(
        self,
        session: ApplicationSession,
        submission: ApplicationSubmission,
    ) -> ApplicationSession:
        """Create the application and link it to a PASSED session atomically."""
        if session.status != SessionStatus.PASSED:
            raise StateError(session.status)
        if session.application_id is not None:
            raise StateError(
                session.status,
                f"Application session already submitted (application: {session.application_id})",
            )

        application = Application(
            application_id=uuid.uuid4().hex,
            job_id=session.job_id,
            candidate_email=submission.email,
            candidate_name=submission.name,
            candidate_phone=submission.phone,
            candidate_linkedin=submission.linkedin or None,
            resume_file_id=submission.resume_file_id,
            answers=dict(session.answers or {}),
            created_at=self._now(),
        )

        with self._store.transaction():
            if self._store.find_application(session.job_id, submission.email) is not None:
                raise DuplicateApplication(session.job_id, submission.email)
            try:
                self._store.add_application(application)
            except DuplicateKeyError as exc:
                raise DuplicateApplication(session.job_id, submission.email) from exc
            if not self._store.link_application(session.session_token, application.application_id):
                current = self.get(session.session_token)
                raise StateError(current.status)

        self._logger.info(
            "application.created",
            job_id=session.job_id,
            application_id=application.application_id,
        )
        return self.get(session.session_token)

    def _replay(self, session: ApplicationSession, job: Job) -> SessionEvaluation:
        # stored answers against current rules; labels follow current questions
        evaluation = self._evaluator.evaluate(job.gate_rules, session.answers or {}, job.questions)
        self._logger.debug("session.replayed", job_id=job.job_id, status=session.status.value)
        return SessionEvaluation(
            passed=session.status == SessionStatus.PASSED,
            status=session.status,
            failed_rules=evaluation.failed_rules,
        )

    def _load_job(self, job_id: str) -> Job:
        job = self._store.get_job(job_id)
        if job is None:
            raise NotFound("Job", job_id)
        return job
